"""
Tests for the login attempt limiter and its counter stores.

Run with: pytest tests/test_throttle.py -v
"""
from __future__ import annotations

import asyncio
from typing import Tuple

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from coaching.auth.throttle import (
    CounterStoreError,
    InMemoryCounterStore,
    RateLimiter,
    RedisCounterStore,
    build_rate_limiter,
)
from coaching.config import settings


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStore:
    async def incr(self, key: str, ttl_seconds: float) -> Tuple[int, float]:
        raise CounterStoreError("connection refused")


def _admit(limiter: RateLimiter, key: str = "10.0.0.1", max_requests: int = 5, window: float = 60):
    return asyncio.run(limiter.admit(key, max_requests, window, prefix="login"))


def _fake_redis() -> FakeAsyncRedis:
    # Own server per test so keys never leak between tests
    return FakeAsyncRedis(server=FakeServer(), decode_responses=True)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

def test_five_requests_admitted_sixth_limited():
    limiter = RateLimiter(InMemoryCounterStore(clock=FakeClock()))
    results = [_admit(limiter) for _ in range(6)]
    assert [r.limited for r in results] == [False] * 5 + [True]
    assert [r.remaining for r in results] == [4, 3, 2, 1, 0, 0]


def test_counter_resets_after_window():
    clock = FakeClock()
    limiter = RateLimiter(InMemoryCounterStore(clock=clock))
    for _ in range(6):
        _admit(limiter, window=60)
    assert _admit(limiter, window=60).limited

    clock.advance(60)
    result = _admit(limiter, window=60)
    assert not result.limited
    assert result.remaining == 4  # count is back to 1


def test_window_is_anchored_at_first_attempt():
    clock = FakeClock()
    limiter = RateLimiter(InMemoryCounterStore(clock=clock))
    for _ in range(5):
        _admit(limiter, window=60)
        clock.advance(10)
    # 50s in, still inside the first window
    assert _admit(limiter, window=60).limited


def test_keys_are_independent():
    limiter = RateLimiter(InMemoryCounterStore(clock=FakeClock()))
    for _ in range(6):
        _admit(limiter, key="10.0.0.1")
    assert _admit(limiter, key="10.0.0.1").limited
    assert not _admit(limiter, key="10.0.0.2").limited


def test_prefix_scopes_counters():
    store = InMemoryCounterStore(clock=FakeClock())
    limiter = RateLimiter(store)
    for _ in range(3):
        asyncio.run(limiter.admit("ip", 2, 60, prefix="login"))
    assert asyncio.run(limiter.admit("ip", 2, 60, prefix="login")).limited
    assert not asyncio.run(limiter.admit("ip", 2, 60, prefix="parent-login")).limited


def test_purge_expired_drops_elapsed_windows():
    clock = FakeClock()
    store = InMemoryCounterStore(clock=clock)
    asyncio.run(store.incr("a", 10))
    asyncio.run(store.incr("b", 100))
    clock.advance(50)
    assert store.purge_expired() == 1
    assert len(store) == 1


def test_elapsed_windows_are_swept_during_admit():
    clock = FakeClock()
    store = InMemoryCounterStore(clock=clock)
    limiter = RateLimiter(store)
    for i in range(1000):
        asyncio.run(limiter.admit(f"10.1.{i // 256}.{i % 256}", 5, 60, prefix="login"))
        clock.advance(120)
    # only the most recent window is still open
    assert len(store) == 1


def test_sweep_keeps_open_windows():
    clock = FakeClock()
    store = InMemoryCounterStore(clock=clock, sweep_interval=30)
    limiter = RateLimiter(store)
    _admit(limiter, key="slow", window=600)
    clock.advance(45)
    _admit(limiter, key="other", window=10)
    assert len(store) == 2


def test_reset_after_counts_down_within_window():
    clock = FakeClock()
    limiter = RateLimiter(InMemoryCounterStore(clock=clock))
    assert _admit(limiter, window=900).reset_after == 900
    clock.advance(600.5)
    result = _admit(limiter, window=900)
    assert result.reset_after == pytest.approx(299.5)
    assert result.retry_after == 300


# ---------------------------------------------------------------------------
# Store failure policy
# ---------------------------------------------------------------------------

def test_store_failure_fails_closed_by_default():
    result = _admit(RateLimiter(BrokenStore()))
    assert result.limited
    assert result.degraded
    assert result.remaining == 0


def test_store_failure_can_fail_open():
    result = _admit(RateLimiter(BrokenStore(), fail_open=True))
    assert not result.limited
    assert result.degraded


def test_unreachable_redis_raises_store_error():
    store = RedisCounterStore.from_url("redis://127.0.0.1:1/0", timeout=0.2)
    with pytest.raises(CounterStoreError):
        asyncio.run(store.incr("login:ip", 60))


def test_unreachable_redis_is_rejected_by_limiter():
    store = RedisCounterStore.from_url("redis://127.0.0.1:1/0", timeout=0.2)
    result = _admit(RateLimiter(store, fail_open=False))
    assert result.limited and result.degraded


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------

def test_build_uses_memory_store_by_default():
    limiter = build_rate_limiter(settings)
    assert isinstance(limiter.store, InMemoryCounterStore)
    assert limiter.fail_open is settings.rate_limit_fail_open


def test_build_uses_redis_store_when_configured():
    configured = settings.model_copy(update={"rate_limit_backend": "redis", "rate_limit_fail_open": True})
    limiter = build_rate_limiter(configured)
    assert isinstance(limiter.store, RedisCounterStore)
    assert limiter.fail_open is True


def test_build_accepts_injected_store():
    store = InMemoryCounterStore()
    assert build_rate_limiter(settings, store=store).store is store


# ---------------------------------------------------------------------------
# Redis store
# ---------------------------------------------------------------------------

def test_redis_store_counts_within_one_window():
    async def scenario():
        client = _fake_redis()
        store = RedisCounterStore(client)
        counts = [(await store.incr("login:ip", 60))[0] for _ in range(3)]
        ttl_ms = await client.pttl("login:ip")
        await store.close()
        return counts, ttl_ms

    counts, ttl_ms = asyncio.run(scenario())
    assert counts == [1, 2, 3]
    assert 0 < ttl_ms <= 60_000


def test_redis_store_sets_expiry_only_once_per_window():
    async def scenario():
        client = _fake_redis()
        store = RedisCounterStore(client)
        await store.incr("login:ip", 60)
        count, seconds_left = await store.incr("login:ip", 3600)
        ttl_ms = await client.pttl("login:ip")
        await store.close()
        return count, seconds_left, ttl_ms

    count, seconds_left, ttl_ms = asyncio.run(scenario())
    assert count == 2
    assert 0 < seconds_left <= 60
    assert ttl_ms <= 60_000


def test_redis_store_resets_after_expiry():
    async def scenario():
        client = _fake_redis()
        store = RedisCounterStore(client)
        await store.incr("login:ip", 0.2)
        await store.incr("login:ip", 0.2)
        await asyncio.sleep(0.4)
        result = await store.incr("login:ip", 0.2)
        await store.close()
        return result

    count, _ = asyncio.run(scenario())
    assert count == 1


def test_limiter_over_redis_store():
    async def scenario():
        client = _fake_redis()
        limiter = RateLimiter(RedisCounterStore(client))
        results = [await limiter.admit("10.0.0.1", 5, 900, prefix="login") for _ in range(6)]
        stored = await client.get("login:10.0.0.1")
        await limiter.close()
        return results, stored

    results, stored = asyncio.run(scenario())
    assert [r.limited for r in results] == [False] * 5 + [True]
    assert not any(r.degraded for r in results)
    assert results[-1].retry_after <= 900
    assert stored == "6"
