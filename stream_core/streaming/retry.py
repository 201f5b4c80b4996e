"""重试 / 容错控制器。

包住一次完整的 exchange 尝试（Transport → Parser → Interpreter）：

- 除取消以外的任何失败，等待固定的 retry_delay 后从头重来，最多 max_retries 次；
- 不做断点续传，每次重试前通过 on_retry 通知调用方清空本次尝试已经累积的内容；
- 取消（CancellationError / asyncio.CancelledError）永不重试；
- ValidationError、ConcurrencyError 重试也无法修复，直接抛出；
- 重试耗尽后抛出最后一次的错误。
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from stream_core.domain.exceptions import CancellationError, ConcurrencyError, ValidationError
from stream_core.domain.models import AbortSignal, RetryPolicy
from stream_core.infrastructure.clock import Clock, SystemClock
from stream_core.infrastructure.logging.logger import logger

T = TypeVar("T")

NON_RETRYABLE = (CancellationError, ValidationError, ConcurrencyError)


class RetryController:
    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        signal: Optional[AbortSignal] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._clock = clock or SystemClock()
        self._signal = signal
        self._log_ctx = dict(log_ctx or {})
        self.retry_count = 0

    async def run(
        self,
        attempt: Callable[[], Awaitable[T]],
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ) -> T:
        self.retry_count = 0
        while True:
            try:
                return await attempt()
            except asyncio.CancelledError:
                raise
            except NON_RETRYABLE:
                raise
            except Exception as e:
                if self._signal is not None and self._signal.aborted:
                    raise CancellationError() from e
                if self.retry_count >= self.policy.max_retries:
                    logger.log(
                        logging.ERROR,
                        "Exchange failed, retries exhausted",
                        extra={"extra": {**self._log_ctx, "retries": self.retry_count, "error": str(e)}},
                    )
                    raise
                self.retry_count += 1
                logger.log(
                    logging.WARNING,
                    "Exchange attempt failed, retrying",
                    extra={
                        "extra": {
                            **self._log_ctx,
                            "retry": self.retry_count,
                            "max_retries": self.policy.max_retries,
                            "error": str(e),
                        }
                    },
                )
                await self._clock.sleep(self.policy.retry_delay)
                if self._signal is not None:
                    self._signal.raise_if_aborted()
                if on_retry is not None:
                    on_retry(self.retry_count, e)
