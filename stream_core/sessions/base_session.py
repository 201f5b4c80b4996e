"""会话状态机核心模块。

三种消费模式（chat / completion / object）共享同一套生命周期：

    ready → submitted（提交）→ streaming（message-start 或首个 part）
          → ready（message-end / 流结束）| error（终止性错误）

- 同一会话同一时间只允许一个 exchange，忙时再次提交立即抛出 ConcurrencyError，且不改变任何状态。
- exchange 在独立的 Task 中运行，stop() 可以随时取消；已经合并的内容保留，不回滚。
- 重试由 RetryController 负责，每次重试前清空本次 exchange 已累积的内容，避免重复投递。
- 关闭会话（aclose / async with）时取消进行中的 exchange 并释放传输资源。

子类只需要实现 _reset_live / _on_part / _on_end / _finalize 四个钩子。
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

from stream_core.domain.exceptions import BusinessError, CancellationError, ConcurrencyError
from stream_core.domain.models import (
    AbortSignal,
    BodyInput,
    CredentialsMode,
    DoneEvent,
    ExchangeRequest,
    HeadersInput,
    Message,
    MessageEndEvent,
    MessagePartEvent,
    MessageStartEvent,
    Part,
    RetryPolicy,
    SessionStatus,
    StreamEvent,
    StreamProtocol,
)
from stream_core.infrastructure.clock import Clock, SystemClock
from stream_core.infrastructure.logging.logger import logger
from stream_core.providers import create_source
from stream_core.providers.base import ByteSource, resolve_value
from stream_core.providers.registry import (
    ProviderConfig,
    SessionMode,
    merge_headers,
    provider_from_settings,
    resolve_endpoint,
)
from stream_core.streaming.pipeline import stream_events
from stream_core.streaming.retry import RetryController
from stream_core.streaming.throttle import ThrottleGate

Callback = Callable[..., Any]


@dataclass
class Exchange:
    """一次进行中的 exchange：id、取消句柄与承载它的 Task。"""

    id: str
    signal: AbortSignal = field(default_factory=AbortSignal)
    task: Optional[asyncio.Task] = None
    log_ctx: Dict[str, Any] = field(default_factory=dict)


class StreamSession:
    mode: SessionMode = "chat"

    def __init__(
        self,
        *,
        api: Optional[str] = None,
        provider: Optional[ProviderConfig] = None,
        source: Optional[ByteSource] = None,
        headers: Optional[HeadersInput] = None,
        body: Optional[BodyInput] = None,
        credentials: Optional[CredentialsMode] = None,
        throttle: Optional[float] = None,
        retry: Optional[RetryPolicy] = None,
        protocol: StreamProtocol = "data",
        id: Optional[str] = None,
        on_finish: Optional[Callback] = None,
        on_error: Optional[Callback] = None,
        on_update: Optional[Callback] = None,
        clock: Optional[Clock] = None,
    ):
        self._provider = provider or provider_from_settings()
        self._source = source or create_source()
        self._clock = clock or SystemClock()
        self._api = api
        self._headers = headers
        self._body = body
        self._credentials: CredentialsMode = credentials or self._provider.credentials
        self._throttle = throttle if throttle is not None else self._provider.throttle
        self._retry = retry or self._provider.retry
        self._protocol = protocol
        self._gate = ThrottleGate(self._throttle, self._clock)
        self.id = id
        self.on_finish = on_finish
        self.on_error = on_error
        self.on_update = on_update
        self.input = ""

        self._status: SessionStatus = "ready"
        self._error: Optional[BaseException] = None
        self._data: Any = None
        self._exchange: Optional[Exchange] = None
        self._retry_count = 0
        self._closed = False

    # ---- 状态访问 ----

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def data(self) -> Any:
        """后端在 message-start 中附带的 metadata。"""
        return self._data

    @property
    def is_loading(self) -> bool:
        return self._status in ("submitted", "streaming")

    @property
    def is_busy(self) -> bool:
        return self._exchange is not None

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def endpoint(self) -> str:
        return resolve_endpoint(self._api, self._provider, self.mode)

    # ---- 生命周期 ----

    def stop(self) -> None:
        """取消当前 exchange 并立即回到 ready，已合并的内容保持可见。"""

        exchange = self._exchange
        if exchange is not None:
            exchange.signal.abort()
            if exchange.task is not None and not exchange.task.done():
                exchange.task.cancel()
            self._exchange = None
            self._log(logging.INFO, "Exchange stopped", exchange.log_ctx)
        self._status = "ready"
        self._notify()

    async def aclose(self) -> None:
        exchange = self._exchange
        self.stop()
        self._closed = True
        if exchange is not None and exchange.task is not None:
            await asyncio.gather(exchange.task, return_exceptions=True)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
        return False

    async def submit_input(self) -> Any:
        """提交当前 input（非空时），并清空 input。"""

        text = self.input
        if not text.strip():
            return None
        self.input = ""
        return await self._submit_text(text)

    async def reload(self) -> Any:
        raise NotImplementedError

    # ---- 子类钩子 ----

    async def _submit_text(self, text: str) -> Any:
        raise NotImplementedError

    def _reset_live(self) -> None:
        """清空本次 exchange 的累积内容（新的提交或重试前调用）。"""
        raise NotImplementedError

    def _on_part(self, part: Part) -> None:
        raise NotImplementedError

    def _on_end(self, message: Message) -> None:
        pass

    def _finalize(self) -> Tuple[Any, bool]:
        """返回 (最终值, 是否调用 on_finish)。"""
        raise NotImplementedError

    # ---- exchange 执行 ----

    def _ensure_idle(self) -> None:
        if self._closed:
            raise BusinessError(code="SESSION_CLOSED", message="Session has been closed")
        if self._exchange is not None:
            raise ConcurrencyError()

    def _begin(self) -> Exchange:
        self._ensure_idle()
        exchange = Exchange(id=f"ex-{uuid4().hex}")
        exchange.log_ctx = {"exchange_id": exchange.id, "mode": self.mode}
        if self.id:
            exchange.log_ctx["session_id"] = self.id
        self._exchange = exchange
        self._status = "submitted"
        self._error = None
        return exchange

    def _is_current(self, exchange: Exchange) -> bool:
        return self._exchange is exchange and not exchange.signal.aborted

    def _build_request(self, exchange: Exchange, mode_body: Dict[str, Any]) -> ExchangeRequest:
        provider = self._provider
        caller_headers = self._headers
        caller_body = self._body
        session_id = self.id

        async def headers() -> Dict[str, str]:
            return merge_headers(await resolve_value(caller_headers), provider)

        async def body() -> Dict[str, Any]:
            payload: Dict[str, Any] = dict(provider.body)
            payload.update(await resolve_value(caller_body) or {})
            payload.update(mode_body)
            payload["exchangeId"] = exchange.id
            if session_id:
                payload.setdefault("sessionId", session_id)
            return payload

        return ExchangeRequest(
            endpoint=self.endpoint,
            body=body,
            headers=headers,
            credentials=self._credentials,
            signal=exchange.signal,
            throttle=self._throttle,
            retry=self._retry,
            protocol=self._protocol,
        )

    async def _execute(self, exchange: Exchange, mode_body: Dict[str, Any]) -> Any:
        """运行一次 exchange 直到结束；被 stop() 取消时返回 None。"""

        request = self._build_request(exchange, mode_body)
        controller = RetryController(request.retry, self._clock, exchange.signal, exchange.log_ctx)
        self._reset_live()
        self._notify()

        async def attempt() -> None:
            async for event in stream_events(self._source, request, self._clock, self._gate):
                if not self._is_current(exchange):
                    raise CancellationError()
                self._apply(event)

        def on_retry(retry: int, error: BaseException) -> None:
            if self._is_current(exchange):
                self._reset_live()
                self._status = "submitted"
                self._retry_count = retry
                self._notify()

        self._log(logging.INFO, "Exchange started", exchange.log_ctx, endpoint=request.endpoint)
        exchange.task = asyncio.ensure_future(controller.run(attempt, on_retry=on_retry))
        try:
            await exchange.task
        except (asyncio.CancelledError, CancellationError):
            if exchange.signal.aborted:
                return None
            # 外层调用方自身被取消：同样终止 exchange，再把取消向上传递
            exchange.signal.abort()
            if self._exchange is exchange:
                self._exchange = None
                self._status = "ready"
            raise
        except Exception as e:
            if self._exchange is exchange:
                self._exchange = None
                self._retry_count = controller.retry_count
                await self._fail(exchange, e)
            raise

        if self._exchange is not exchange:
            return None
        self._exchange = None
        self._retry_count = controller.retry_count
        value, deliver = self._finalize()
        self._status = "ready"
        self._log(logging.INFO, "Exchange finished", exchange.log_ctx, retries=controller.retry_count)
        self._notify()
        if deliver:
            await _invoke(self.on_finish, value)
        return value

    def _apply(self, event: StreamEvent) -> None:
        if isinstance(event, MessageStartEvent):
            self._status = "streaming"
            metadata = event.message.get("metadata")
            if metadata:
                self._data = metadata
        elif isinstance(event, MessagePartEvent):
            if self._status == "submitted":
                self._status = "streaming"
            self._on_part(event.part)
        elif isinstance(event, MessageEndEvent):
            self._on_end(event.message)
        elif isinstance(event, DoneEvent):
            return
        self._notify()

    async def _fail(self, exchange: Exchange, error: BaseException) -> None:
        self._error = error
        self._status = "error"
        self._log(
            logging.ERROR,
            "Exchange failed",
            exchange.log_ctx,
            error=str(error),
            code=getattr(error, "code", None),
        )
        self._notify()
        await _invoke(self.on_error, error)

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


async def _invoke(callback: Optional[Callback], *args: Any) -> None:
    """回调既可以是普通函数，也可以是协程函数。"""

    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
