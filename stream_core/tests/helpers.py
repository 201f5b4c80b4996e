import asyncio
import json

from stream_core.providers.base import resolve_value


class FakeClock:
    """虚拟时钟：sleep 只记录时长并推进时间。"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeSource:
    """按尝试次数回放脚本的字节源。

    每个脚本是一个列表，元素可以是：bytes（产出）、异常（抛出）、asyncio.Event（等待）。
    脚本用完后重复最后一个。
    """

    name = "fake"

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.requests = []
        self.bodies = []
        self.headers = []
        self.closed = 0

    @property
    def attempts(self):
        return len(self.requests)

    async def stream(self, request):
        self.requests.append(request)
        self.bodies.append(await resolve_value(request.body))
        self.headers.append(await resolve_value(request.headers))
        script = self.scripts.pop(0) if len(self.scripts) > 1 else self.scripts[0]
        try:
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                if isinstance(item, asyncio.Event):
                    await item.wait()
                    continue
                await asyncio.sleep(0)
                yield item
        finally:
            self.closed += 1


def sse(obj):
    return f"data: {json.dumps(obj, ensure_ascii=False)}\n\n".encode("utf-8")


def text_part(text):
    return sse({"type": "message-part", "part": {"type": "text", "text": text}})


def start(metadata=None):
    message = {"role": "assistant"}
    if metadata:
        message["metadata"] = metadata
    return sse({"type": "message-start", "message": message})


def end(parts=None):
    return sse({"type": "message-end", "message": {"id": "m-end", "role": "assistant", "parts": parts or []}})


DONE = b"data: [DONE]\n\n"


async def wait_for(predicate, max_ticks=200):
    for _ in range(max_ticks):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
