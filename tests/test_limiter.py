"""Tests for token-bucket rate limiting."""

import asyncio

import pytest

from marketdesk.config import LimiterSettings
from marketdesk.providers.limiter import RateLimiters, TokenBucket

from conftest import FakeClock


def test_bucket_starts_full():
    """A new bucket grants its whole capacity without waiting."""
    clock = FakeClock()
    bucket = TokenBucket(5, 5, 60.0, clock=clock, sleep=clock.sleep)

    assert bucket.tokens == 5


def test_back_to_back_acquires_wait_for_refill():
    """Capacity 5 refilling 5 per 60s: calls 6-10 are delayed a full interval, never rejected."""
    clock = FakeClock()
    bucket = TokenBucket(5, 5, 60.0, clock=clock, sleep=clock.sleep)

    async def run():
        return await asyncio.gather(*(bucket.acquire() for _ in range(10)))

    permits = asyncio.run(run())

    assert len(permits) == 10
    assert all(p.granted_at == 0.0 for p in permits[:5])
    assert all(p.granted_at >= 60.0 for p in permits[5:])
    assert permits[5].waited >= 60.0


def test_min_interval_spaces_grants():
    """Grants are spaced by the minimum interval."""
    clock = FakeClock()
    bucket = TokenBucket(10, 10, 60.0, min_interval=0.5, clock=clock, sleep=clock.sleep)

    async def run():
        return [await bucket.acquire() for _ in range(3)]

    permits = asyncio.run(run())

    assert [p.granted_at for p in permits] == [0.0, 0.5, 1.0]


def test_refill_resets_reservoir_without_exceeding_capacity():
    """Refill tops the reservoir up to capacity, never past it."""
    clock = FakeClock()
    bucket = TokenBucket(3, 10, 60.0, clock=clock, sleep=clock.sleep)

    asyncio.run(bucket.acquire())
    assert bucket.tokens == 2

    clock.now = 180.0
    assert bucket.tokens == 3


def test_invalid_bucket_settings():
    """Non-positive settings are rejected."""
    with pytest.raises(ValueError):
        TokenBucket(0)
    with pytest.raises(ValueError):
        TokenBucket(1, refill_interval=0)


def test_registry_builds_buckets_from_settings():
    """The registry has one bucket per configured provider."""
    clock = FakeClock()
    limiters = RateLimiters.from_settings(
        {"fmp": LimiterSettings(capacity=2, refill_amount=2, refill_interval=10.0)},
        clock=clock,
        sleep=clock.sleep,
    )

    bucket = limiters.get("fmp")
    assert bucket is not None
    assert bucket.capacity == 2
    assert limiters.get("alpha_vantage") is None


def test_unregistered_provider_is_not_limited():
    """Acquiring for an unknown provider returns at once."""
    clock = FakeClock(start=42.0)
    limiters = RateLimiters({}, clock=clock)

    permit = asyncio.run(limiters.acquire("gdelt"))

    assert permit.provider_id == "gdelt"
    assert permit.waited == 0.0
    assert permit.granted_at == 42.0
    assert clock.sleeps == []
