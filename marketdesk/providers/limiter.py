"""Token-bucket admission control, one bucket per upstream provider."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from marketdesk.config import DEFAULT_LIMITS, LimiterSettings
from marketdesk.logging import log


@dataclass
class Permit:
    """Proof of admission returned by acquire()."""

    provider_id: str
    waited: float = 0.0
    granted_at: float = 0.0


class TokenBucket:
    """
    Reservoir-style token bucket.

    The bucket starts full. Every `refill_interval` seconds the reservoir is
    reset to `refill_amount` (capped at capacity), and consecutive grants are
    spaced at least `min_interval` apart. acquire() only ever waits.
    """

    def __init__(
        self,
        capacity: int,
        refill_amount: int | None = None,
        refill_interval: float = 60.0,
        min_interval: float = 0.0,
        *,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_interval <= 0:
            raise ValueError("refill_interval must be positive")

        self.name = name
        self.capacity = capacity
        self.refill_amount = capacity if refill_amount is None else refill_amount
        self.refill_interval = refill_interval
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

        self._tokens = capacity
        self._window_start = clock()
        self._next_grant = self._window_start

    @classmethod
    def from_settings(cls, name: str, settings: LimiterSettings, **kwargs: Any) -> "TokenBucket":
        return cls(
            capacity=settings.capacity,
            refill_amount=settings.refill_amount,
            refill_interval=settings.refill_interval,
            min_interval=settings.min_interval,
            name=name,
            **kwargs,
        )

    @property
    def tokens(self) -> int:
        self._refill(self._clock())
        return self._tokens

    def _refill(self, now: float) -> None:
        elapsed = now - self._window_start
        if elapsed < self.refill_interval:
            return
        periods = int(elapsed // self.refill_interval)
        self._window_start += periods * self.refill_interval
        self._tokens = min(self.capacity, self.refill_amount)

    async def acquire(self) -> Permit:
        """Wait until a token is available and take it."""
        async with self._lock:
            started = self._clock()
            while True:
                now = self._clock()
                self._refill(now)

                if self._tokens > 0:
                    spacing = self._next_grant - now
                    if spacing > 0:
                        await self._sleep(spacing)
                        continue
                    self._tokens -= 1
                    self._next_grant = now + self.min_interval
                    waited = now - started
                    if waited > 0:
                        log("limiter", f"Granted {self.name} after wait", waited=round(waited, 3))
                    return Permit(self.name, waited=waited, granted_at=now)

                wait = self._window_start + self.refill_interval - now
                log("limiter", f"Bucket {self.name} empty", wait=round(wait, 3))
                await self._sleep(max(wait, 0.0))


class RateLimiters:
    """Registry of token buckets keyed by provider id."""

    def __init__(
        self,
        buckets: dict[str, TokenBucket] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._buckets = dict(buckets or {})
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: dict[str, LimiterSettings] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "RateLimiters":
        settings = DEFAULT_LIMITS if settings is None else settings
        buckets = {
            provider_id: TokenBucket.from_settings(provider_id, s, clock=clock, sleep=sleep)
            for provider_id, s in settings.items()
        }
        return cls(buckets, clock=clock)

    def get(self, provider_id: str) -> TokenBucket | None:
        return self._buckets.get(provider_id)

    async def acquire(self, provider_id: str) -> Permit:
        """Acquire a permit; unregistered providers are not limited."""
        bucket = self._buckets.get(provider_id)
        if bucket is None:
            return Permit(provider_id, waited=0.0, granted_at=self._clock())
        return await bucket.acquire()
