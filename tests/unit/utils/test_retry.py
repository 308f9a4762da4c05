"""Tests for metricspine.utils.retry."""

from __future__ import annotations

import pytest

from metricspine.utils.retry import RetryConfig, with_retry

pytestmark = pytest.mark.asyncio


class TestRetryConfig:
    async def test_exponential_delay(self) -> None:
        config = RetryConfig(base_delay=0.5, jitter=0)

        assert [config.calculate_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    async def test_delay_capped(self) -> None:
        config = RetryConfig(base_delay=10, max_delay=15, jitter=0)

        assert config.calculate_delay(4) == 15

    async def test_jitter_bounds(self) -> None:
        config = RetryConfig(base_delay=1.0, jitter=0.5)

        for _ in range(50):
            assert 0.5 <= config.calculate_delay(1) <= 1.5

    async def test_should_retry(self) -> None:
        config = RetryConfig(max_attempts=2, retry_on=(ConnectionError,))

        assert config.should_retry(ConnectionError(), 1) is True
        assert config.should_retry(ConnectionError(), 2) is False
        assert config.should_retry(ValueError(), 1) is False

    @pytest.mark.parametrize("max_attempts", [0, -1])
    async def test_at_least_one_attempt(self, max_attempts: int) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            RetryConfig(max_attempts=max_attempts)

    async def test_single_attempt_runs_once(self) -> None:
        calls = 0

        async def broken() -> None:
            nonlocal calls
            calls += 1
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            await with_retry(broken, RetryConfig(max_attempts=1))

        assert calls == 1


class TestWithRetry:
    async def test_returns_after_transient_failures(self) -> None:
        calls = 0

        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ConnectionError("reset")
            return "ok"

        config = RetryConfig(max_attempts=3, base_delay=0, jitter=0)

        assert await with_retry(flaky, config) == "ok"
        assert calls == 3

    async def test_reraises_last_error(self) -> None:
        async def broken() -> None:
            raise ConnectionError("still down")

        with pytest.raises(ConnectionError, match="still down"):
            await with_retry(broken, RetryConfig(max_attempts=2, base_delay=0, jitter=0))

    async def test_does_not_retry_other_errors(self) -> None:
        calls = 0

        async def invalid() -> None:
            nonlocal calls
            calls += 1
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await with_retry(invalid, RetryConfig(retry_on=(ConnectionError,), base_delay=0))

        assert calls == 1
