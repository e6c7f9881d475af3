"""Tests for retry utilities."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tripnav.errors import RouteError, RouteErrorKind
from tripnav.retry import RetryConfig, with_retry


def fast_config(**overrides) -> RetryConfig:
    settings = dict(base_delay=0.0, retryable_exceptions=(RouteError,))
    settings.update(overrides)
    return RetryConfig(**settings)


class TestRetryConfig:
    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.multiplier == 2.0
        assert config.max_delay == 30.0
        assert config.retryable_exceptions == (Exception,)
        assert config.retry_if is None

    def test_delay_grows_exponentially_up_to_cap(self):
        config = RetryConfig(base_delay=0.5, multiplier=2.0, max_delay=3.0)
        assert [config.delay_for(a) for a in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_succeeds_on_first_attempt(self):
        operation = AsyncMock(return_value="route")

        result = await with_retry(operation, fast_config())

        assert result == "route"
        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        operation = AsyncMock(side_effect=[
            RouteError(RouteErrorKind.TIMEOUT),
            RouteError(RouteErrorKind.PROVIDER_UNAVAILABLE),
            "route",
        ])
        on_retry = MagicMock()

        result = await with_retry(operation, fast_config(), "route A->B", on_retry)

        assert result == "route"
        assert operation.call_count == 3
        assert [c.args[1] for c in on_retry.call_args_list] == [0, 1]

    @pytest.mark.asyncio
    async def test_raises_after_max_attempts(self):
        error = RouteError(RouteErrorKind.PROVIDER_UNAVAILABLE, "down")
        operation = AsyncMock(side_effect=error)

        with pytest.raises(RouteError) as exc_info:
            await with_retry(operation, fast_config(max_attempts=4))

        assert exc_info.value is error
        assert operation.call_count == 4

    @pytest.mark.asyncio
    async def test_retry_if_rejects_error(self):
        operation = AsyncMock(side_effect=RouteError(RouteErrorKind.NO_PATH_FOUND))
        config = fast_config(retry_if=lambda e: e.is_retryable)

        with pytest.raises(RouteError):
            await with_retry(operation, config)

        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_other_exceptions_propagate_immediately(self):
        operation = AsyncMock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            await with_retry(operation, fast_config())

        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_non_positive_attempts_rejected(self):
        operation = AsyncMock(return_value="route")

        with pytest.raises(ValueError):
            await with_retry(operation, fast_config(max_attempts=0))

        operation.assert_not_called()
