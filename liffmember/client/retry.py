import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import RetryConfig
from .connectivity import ConnectivityMonitor
from .errors import NetworkError, RateLimitError, RequestTimeoutError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExecutor:
    """Runs an async operation, retrying transient failures with backoff + jitter.

    ``sleep`` and ``rand`` are injectable so tests can run without real delays.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.config = config or RetryConfig()
        self.monitor = monitor
        self._sleep = sleep
        self._rand = rand

    def delay_for(
        self,
        attempt: int,
        base_delay: float,
        exponential: bool,
        error: Optional[BaseException] = None,
    ) -> float:
        delay = base_delay * (2 ** attempt) if exponential else base_delay
        delay += self._rand() * self.config.jitter
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay

    async def _attempt(
        self, operation: Callable[[], Awaitable[T]], timeout: Optional[float]
    ) -> T:
        if self.monitor is not None and not self.monitor.is_online:
            raise NetworkError("No network connectivity")
        if not timeout:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Request timeout after {timeout:g}s") from e

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        exponential: Optional[bool] = None,
        attempt_timeout: Optional[float] = None,
    ) -> T:
        cfg = self.config
        max_retries = cfg.max_retries if max_retries is None else max_retries
        base_delay = cfg.base_delay if base_delay is None else base_delay
        exponential = cfg.exponential if exponential is None else exponential
        timeout = cfg.attempt_timeout if attempt_timeout is None else attempt_timeout

        attempt = 0
        while True:
            try:
                return await self._attempt(operation, timeout)
            except Exception as e:
                if attempt >= max_retries or not is_retryable(e):
                    raise
                delay = self.delay_for(attempt, base_delay, exponential, e)
                attempt += 1
                logger.info(
                    "Retry attempt %d/%d after %.2fs (%s)", attempt, max_retries, delay, e
                )
                await self._sleep(delay)
