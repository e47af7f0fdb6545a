"""
Bounded retry policy shared by the page fetcher and the accumulator.

A RetryPolicy is a value: maximum attempts plus a backoff curve. The page
fetcher calls ``policy.call(...)`` to retry a single request on retryable
errors; the accumulator only borrows ``max_attempts`` and ``delay_for`` to
space out whole fetch passes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from core.exceptions import RetryableError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds after the first failed attempt
        max_delay: Upper bound for any single delay
        multiplier: Growth factor for exponential backoff
        linear: Scale the delay by the attempt number instead of exponentially
        sleep: Awaitable used for waiting (injected in tests)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    multiplier: float = 2.0
    linear: bool = False
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after ``attempt`` (1-based) has failed."""
        if self.linear:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
        retry_on: Tuple[Type[BaseException], ...] = (RetryableError,),
    ) -> T:
        """
        Run ``operation`` until it succeeds or attempts run out.

        Exceptions outside ``retry_on`` propagate immediately. Exhausting the
        attempts raises RetryExhaustedError chained to the last failure.
        """
        last_exception = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except retry_on as e:
                last_exception = e
                if attempt >= self.max_attempts:
                    break

                delay = self.delay_for(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed for {description}: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self.sleep(delay)

        raise RetryExhaustedError(
            f"{description} failed after {self.max_attempts} attempts",
            context={"operation": description, "attempts": self.max_attempts},
            original_exception=last_exception,
        )
