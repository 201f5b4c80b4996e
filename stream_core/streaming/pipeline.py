"""Transport → Frame Parser → Event Interpreter → Throttle Gate。

stream_events 是一个异步生成器：会话层在单个 async for 循环中消费 StreamEvent，
顺序与背压都由生成器自然保证，不依赖回调副作用。

- text 协议下每个帧直接作为文本片段；data 协议下交给 interpret_payload。
- 后端下发的 error 事件在这里转成 BackendError 抛出，交给重试控制器处理。
- 流正常结束但后端没有发送 done 时，补发一个 DoneEvent。
"""

from typing import AsyncIterator, Optional

from stream_core.domain.exceptions import BackendError
from stream_core.domain.models import (
    DoneEvent,
    ErrorEvent,
    ExchangeRequest,
    MessagePartEvent,
    StreamEvent,
    StreamProtocol,
)
from stream_core.infrastructure.clock import Clock
from stream_core.providers.base import ByteSource
from stream_core.streaming.frames import FrameParser
from stream_core.streaming.interpreter import interpret_payload, text_event
from stream_core.streaming.throttle import ThrottleGate


def frame_to_event(frame: str, protocol: StreamProtocol) -> Optional[StreamEvent]:
    if protocol == "text":
        return text_event(frame)
    return interpret_payload(frame)


async def _frames(chunks: AsyncIterator[bytes], parser: FrameParser, request: ExchangeRequest) -> AsyncIterator[str]:
    async for chunk in chunks:
        request.signal.raise_if_aborted()
        for frame in parser.feed(chunk):
            yield frame
    for frame in parser.flush():
        yield frame


async def stream_events(
    source: ByteSource,
    request: ExchangeRequest,
    clock: Optional[Clock] = None,
    gate: Optional[ThrottleGate] = None,
) -> AsyncIterator[StreamEvent]:
    parser = FrameParser(request.protocol)
    gate = gate or ThrottleGate(request.throttle, clock)
    seen_done = False
    chunks = source.stream(request)
    try:
        async for frame in _frames(chunks, parser, request):
            event = frame_to_event(frame, request.protocol)
            if event is None:
                continue
            if isinstance(event, ErrorEvent):
                raise BackendError(code="BACKEND_ERROR", message=event.error, http_status=502)
            if isinstance(event, MessagePartEvent):
                await gate.wait()
                request.signal.raise_if_aborted()
            elif isinstance(event, DoneEvent):
                seen_done = True
            yield event
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    if not seen_done:
        yield DoneEvent()
