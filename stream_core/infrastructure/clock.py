"""可注入的时钟抽象。

节流与重试的等待都通过 Clock 完成，测试中可以替换为虚拟时钟，
直接推进时间而不真正 sleep。
"""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    def monotonic(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """基于事件循环的真实时钟，sleep 为协作式等待，不阻塞线程。"""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
