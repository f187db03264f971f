import pytest

from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.retry import (
    RetryOptions,
    compute_backoff_delay,
    retry_with_backoff,
)

NO_DELAY = RetryOptions(max_retries=3, base_delay_ms=0, max_delay_ms=0)


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [
    ErrorKind.VALIDATION,
    ErrorKind.AUTHENTICATION,
    ErrorKind.AUTHORIZATION,
    ErrorKind.CONFIGURATION,
])
async def test_non_retryable_error_invoked_once(kind):
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        raise ShippingError(kind, "permanent", "nope")

    with pytest.raises(ShippingError) as exc_info:
        await retry_with_backoff(operation, NO_DELAY, "test-op")

    assert calls == 1
    assert exc_info.value.kind == kind


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [1, 2, 3, 5])
async def test_retryable_error_invoked_max_retries_times(max_retries):
    calls = 0
    raised = []

    async def operation():
        nonlocal calls
        calls += 1
        error = ShippingError(ErrorKind.NETWORK, f"attempt {calls}", "try again")
        raised.append(error)
        raise error

    options = RetryOptions(max_retries=max_retries, base_delay_ms=0, max_delay_ms=0)
    with pytest.raises(ShippingError) as exc_info:
        await retry_with_backoff(operation, options, "test-op")

    assert calls == max_retries
    assert exc_info.value is raised[-1]
    assert exc_info.value.message == f"attempt {max_retries}"


@pytest.mark.asyncio
async def test_success_after_failures_returns_result():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ShippingError(ErrorKind.TIMEOUT, "slow", "timed out")
        return "ok"

    assert await retry_with_backoff(operation, NO_DELAY, "test-op") == "ok"
    assert calls == 3


@pytest.mark.asyncio
async def test_plain_exceptions_are_retried():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await retry_with_backoff(operation, NO_DELAY, "test-op")
    assert calls == 3


@pytest.mark.asyncio
async def test_sleeps_between_attempts_only(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("shipping_calculator.core.retry.asyncio.sleep", fake_sleep)
    monkeypatch.setattr("shipping_calculator.core.retry.random.random", lambda: 0.5)

    async def operation():
        raise ShippingError(ErrorKind.NETWORK, "down", "down")

    options = RetryOptions(max_retries=3, base_delay_ms=1000, max_delay_ms=10000)
    with pytest.raises(ShippingError):
        await retry_with_backoff(operation, options, "test-op")

    # 1000 + 500 jitter, then 2000 + 500 jitter; no sleep after the last attempt
    assert delays == [1.5, 2.5]


class TestBackoffDelay:
    def test_exponential_growth(self):
        options = RetryOptions(max_retries=5, base_delay_ms=1000, max_delay_ms=100000)
        assert compute_backoff_delay(1, options, jitter_ms=0) == 1000
        assert compute_backoff_delay(2, options, jitter_ms=0) == 2000
        assert compute_backoff_delay(3, options, jitter_ms=0) == 4000

    def test_capped_at_max_delay(self):
        options = RetryOptions(max_retries=5, base_delay_ms=2000, max_delay_ms=15000)
        assert compute_backoff_delay(4, options, jitter_ms=999) == 15000

    def test_jitter_within_bounds(self):
        options = RetryOptions(max_retries=3, base_delay_ms=1000, max_delay_ms=10000)
        for _ in range(200):
            delay = compute_backoff_delay(1, options)
            assert 1000 <= delay < 2000

    def test_invalid_options_rejected(self):
        with pytest.raises(ValueError):
            RetryOptions(max_retries=0)
