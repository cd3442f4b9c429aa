# smas/infrastructure/rate_limiter.py
"""
Retry with exponential backoff for rate-limited (HTTP 429) provider calls.

Only idempotent reads go through here. Playlist mutations are attempted once:
replaying an add-tracks call would insert the tracks twice.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RateLimitedError(Exception):
    def __init__(self, retry_after: Optional[float] = None):
        super().__init__("rate limited")
        self.retry_after = retry_after


@dataclass
class RateLimiterConfig:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0


class RateLimiter:
    def __init__(self, config: Optional[RateLimiterConfig] = None, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config or RateLimiterConfig()
        self._sleep = sleep

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        if retry_after is not None:
            return min(retry_after, self.config.max_delay)
        delay = self.config.base_delay * (self.config.backoff_multiplier ** attempt)
        return min(delay, self.config.max_delay)

    async def execute_with_retry(self, fn: Callable[[], Awaitable[T]], name: str = "request") -> T:
        attempt = 0
        while True:
            try:
                return await fn()
            except RateLimitedError as exc:
                if attempt >= self.config.max_retries:
                    logger.warning("rate_limit_retries_exhausted", request=name, attempts=attempt + 1)
                    raise
                delay = self.backoff_delay(attempt, exc.retry_after)
                logger.info("rate_limited_retrying", request=name, attempt=attempt + 1, delay=delay)
                await self._sleep(delay)
                attempt += 1
