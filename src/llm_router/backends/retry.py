"""Retry policy with exponential backoff."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from llm_router.exceptions import BackendError

logger = structlog.get_logger()

T = TypeVar("T")


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, BackendError) and error.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Uniform retry policy applied inside a backend call.

    Only ``BackendError`` instances flagged ``retryable`` are retried; the
    delay before attempt ``n + 1`` is ``base_delay * backoff_multiplier ** (n - 1)``.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        on_retry: Callable[[Exception, int], None] | None = None,
        **kwargs,
    ) -> T:
        """Execute ``func`` with retry logic; the last error is re-raised unchanged."""
        if self.max_attempts <= 1:
            return await func(*args, **kwargs)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.backoff_multiplier,
                max=self.max_delay,
            ),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    number = attempt.retry_state.attempt_number
                    if _is_retryable(e) and number < self.max_attempts:
                        logger.warning(
                            "Retrying backend call",
                            attempt=number,
                            max_attempts=self.max_attempts,
                            error=str(e),
                        )
                        if on_retry:
                            on_retry(e, number)
                    raise

        # This should never be reached
        raise RuntimeError("Retry loop completed without returning")

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    @classmethod
    def with_exponential_backoff(
        cls,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff_multiplier: float = 2.0,
    ) -> "RetryPolicy":
        """Create a retry policy with exponential backoff."""
        return cls(
            max_attempts=max_attempts,
            base_delay=base_delay,
            backoff_multiplier=backoff_multiplier,
        )
