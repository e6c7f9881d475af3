# retry.py
# Bounded retry with exponential backoff for async operations.

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable_exceptions: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (Exception,)
    )
    # Extra filter on caught exceptions; None retries all of them.
    retry_if: Optional[Callable[[Exception], bool]] = None

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (self.multiplier ** attempt), self.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    operation_name: str = "operation",
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> T:
    """
    Execute an async operation with exponential backoff retry.

    The last exception propagates once attempts are exhausted, or at once
    when `retry_if` rejects it.
    """
    if config is None:
        config = RetryConfig()

    for attempt in range(config.max_attempts):
        try:
            return await operation()
        except config.retryable_exceptions as e:
            if config.retry_if is not None and not config.retry_if(e):
                logger.warning(f"{operation_name} failed with non-retryable error: {e}")
                raise
            if attempt == config.max_attempts - 1:
                logger.error(f"{operation_name} failed after {config.max_attempts} attempts: {e}")
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{config.max_attempts}), "
                f"retrying in {delay:.1f}s: {e}"
            )

            if on_retry:
                on_retry(e, attempt)

            await asyncio.sleep(delay)

    raise ValueError(f"max_attempts must be positive, got {config.max_attempts}")
