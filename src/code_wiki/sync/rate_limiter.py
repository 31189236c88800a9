"""Rate limiter with exponential backoff for remote API calls."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUSES = frozenset({403, 429})


def is_rate_limit_error(error: BaseException) -> bool:
    """True for HTTP 403/429 style errors (PyGithub exceptions carry ``status``)."""
    status = getattr(error, "status", None)
    return status in RATE_LIMIT_STATUSES


class RateLimiter:
    """
    Spaces out remote calls and retries rate-limited ones.

    Logic:
    - Every attempt waits until ``min_interval_ms`` has passed since the previous call
    - Rate-limit errors back off: base * 2^(retry_count-1), capped at max_delay_ms
    - After max_retries, or on any other error, the error propagates
    """

    def __init__(
        self,
        max_retries: int = 5,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60000,
        min_interval_ms: int = 100,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.min_interval_ms = min_interval_ms
        self._sleep = sleep
        self._clock = clock
        self._last_call: Optional[float] = None

    @classmethod
    def from_config(cls, config) -> "RateLimiter":
        return cls(
            max_retries=config.max_retries,
            base_delay_ms=config.base_delay_ms,
            max_delay_ms=config.max_delay_ms,
            min_interval_ms=config.min_interval_ms,
        )

    def calculate_backoff(self, retry_count: int) -> int:
        """
        Backoff in milliseconds for the given (1-based) retry.

        Formula: base * 2^(retry_count-1), capped at max_delay_ms
        """
        delay = self.base_delay_ms * (2 ** (retry_count - 1))
        return min(delay, self.max_delay_ms)

    async def with_backoff(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str = "API",
    ) -> T:
        retry_count = 0

        while True:
            await self._wait_for_interval()
            try:
                self._last_call = self._clock()
                return await operation()
            except Exception as e:
                if not is_rate_limit_error(e) or retry_count >= self.max_retries:
                    raise
                retry_count += 1
                delay = self.calculate_backoff(retry_count)
                logger.warning(
                    f"{context} rate limited, retry {retry_count}/{self.max_retries} after {delay}ms"
                )
                await self._sleep(delay / 1000)

    async def _wait_for_interval(self) -> None:
        if self._last_call is None:
            return
        elapsed_ms = (self._clock() - self._last_call) * 1000
        if elapsed_ms < self.min_interval_ms:
            await self._sleep((self.min_interval_ms - elapsed_ms) / 1000)
