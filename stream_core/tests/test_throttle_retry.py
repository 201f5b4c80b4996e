import asyncio

import pytest

from stream_core.domain.exceptions import CancellationError, TransportError, ValidationError
from stream_core.domain.models import AbortSignal, RetryPolicy
from stream_core.streaming.retry import RetryController
from stream_core.streaming.throttle import ThrottleGate


class Flaky:
    def __init__(self, failures, error=None):
        self.failures = failures
        self.error = error or TransportError(code="HTTP_ERROR", message="HTTP 503", http_status=503)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


@pytest.mark.asyncio
async def test_throttle_disabled_never_sleeps(clock):
    gate = ThrottleGate(None, clock)
    assert not gate.enabled
    for _ in range(3):
        await gate.wait()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_throttle_enforces_minimum_interval(clock):
    gate = ThrottleGate(0.05, clock)
    await gate.wait()
    assert clock.sleeps == []
    await gate.wait()
    assert clock.sleeps == [pytest.approx(0.05)]
    clock.now += 1.0
    await gate.wait()
    assert clock.sleeps == [pytest.approx(0.05)]


@pytest.mark.asyncio
async def test_retry_succeeds_after_two_failures(clock):
    attempt = Flaky(failures=2)
    retries = []
    controller = RetryController(RetryPolicy(max_retries=3, retry_delay=1.0), clock)
    result = await controller.run(attempt, on_retry=lambda n, e: retries.append(n))
    assert result == "ok"
    assert attempt.calls == 3
    assert controller.retry_count == 2
    assert retries == [1, 2]
    assert clock.sleeps == [1.0, 1.0]


@pytest.mark.asyncio
async def test_retry_exhausted_surfaces_last_error(clock):
    attempt = Flaky(failures=3)
    controller = RetryController(RetryPolicy(max_retries=2, retry_delay=0.5), clock)
    with pytest.raises(TransportError) as exc_info:
        await controller.run(attempt)
    assert exc_info.value is attempt.error
    assert attempt.calls == 3
    assert controller.retry_count == 2
    assert clock.sleeps == [0.5, 0.5]


@pytest.mark.asyncio
async def test_validation_error_not_retried(clock):
    attempt = Flaky(failures=5, error=ValidationError("bad"))
    controller = RetryController(RetryPolicy(max_retries=3), clock)
    with pytest.raises(ValidationError):
        await controller.run(attempt)
    assert attempt.calls == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_aborted_signal_stops_retrying(clock):
    signal = AbortSignal()
    attempt = Flaky(failures=5)

    async def aborting():
        signal.abort()
        return await attempt()

    controller = RetryController(RetryPolicy(max_retries=3), clock, signal)
    with pytest.raises(CancellationError):
        await controller.run(aborting)
    assert attempt.calls == 1


@pytest.mark.asyncio
async def test_cancelled_error_propagates(clock):
    async def cancelled():
        raise asyncio.CancelledError()

    controller = RetryController(RetryPolicy(max_retries=3), clock)
    with pytest.raises(asyncio.CancelledError):
        await controller.run(cancelled)
    assert clock.sleeps == []
