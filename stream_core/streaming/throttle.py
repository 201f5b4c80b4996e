"""可选的转发节流。

只延迟、不丢弃、不重排：两次 wait() 返回之间至少间隔 interval 秒。
每个会话各自持有一个 ThrottleGate，不会互相拖慢。
"""

from typing import Optional

from stream_core.infrastructure.clock import Clock, SystemClock


class ThrottleGate:
    def __init__(self, interval: Optional[float] = None, clock: Optional[Clock] = None):
        self.interval = interval or 0.0
        self._clock = clock or SystemClock()
        self._last: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    async def wait(self) -> None:
        if not self.enabled:
            return
        now = self._clock.monotonic()
        if self._last is not None:
            remaining = self.interval - (now - self._last)
            if remaining > 0:
                await self._clock.sleep(remaining)
        self._last = self._clock.monotonic()
