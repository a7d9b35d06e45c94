"""
auth/throttle.py: Windowed attempt counting for login endpoints
================================================================
Counts attempts per client key in a fixed window that opens on the first
attempt and closes ``window`` seconds later. The counter lives in an
injected ``CounterStore``:

  * ``InMemoryCounterStore``  process-local dict, enough for one instance.
                               Elapsed windows are swept from inside ``incr``.
  * ``RedisCounterStore``     INCR + PEXPIRE NX + PTTL in one pipeline,
                               shared by every instance on the same Redis.

Both stores report the seconds left in the window alongside the count,
which the login routes send back as ``Retry-After``.

slowapi (see ``coaching.rate_limit``) guards registration. Login goes
through here: callers get the remaining-attempt count, and the backend
and failure policy are set per deployment.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..config import Settings

logger = logging.getLogger("coaching.ratelimit")


class CounterStoreError(Exception):
    """The counter store could not be reached or did not answer in time."""


class CounterStore(Protocol):
    async def incr(self, key: str, ttl_seconds: float) -> Tuple[int, float]:
        """
        Increment ``key`` and return ``(count, seconds_left)``. The first
        increment opens a ``ttl_seconds`` window; later ones keep its expiry.
        """
        ...


class InMemoryCounterStore:
    """Process-local counters. Not shared between workers or instances."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
    ) -> None:
        self._clock = clock
        self._lock = Lock()
        self._counts: Dict[str, Tuple[int, float]] = {}  # key -> (count, expires_at)
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    async def incr(self, key: str, ttl_seconds: float) -> Tuple[int, float]:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._purge_locked(now)
                self._next_sweep = now + self._sweep_interval
            entry = self._counts.get(key)
            if entry is None or entry[1] <= now:
                self._counts[key] = (1, now + ttl_seconds)
                return 1, float(ttl_seconds)
            count, expires_at = entry[0] + 1, entry[1]
            self._counts[key] = (count, expires_at)
            return count, expires_at - now

    def _purge_locked(self, now: float) -> int:
        stale = [k for k, (_, expires_at) in self._counts.items() if expires_at <= now]
        for k in stale:
            del self._counts[k]
        return len(stale)

    def purge_expired(self) -> int:
        """Drop elapsed windows. Returns how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def __len__(self) -> int:
        return len(self._counts)


class RedisCounterStore:
    """Counters shared through Redis. Every call is bounded by ``timeout`` seconds."""

    def __init__(self, client: Redis, timeout: float = 0.5) -> None:
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_url(cls, url: str, timeout: float = 0.5) -> "RedisCounterStore":
        client = Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        return cls(client, timeout=timeout)

    async def incr(self, key: str, ttl_seconds: float) -> Tuple[int, float]:
        ttl_ms = max(1, int(ttl_seconds * 1000))
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.pexpire(key, ttl_ms, nx=True)
                pipe.pttl(key)
                count, _, pttl = await asyncio.wait_for(pipe.execute(), timeout=self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise CounterStoreError(f"Counter store unavailable: {exc}") from exc
        # PTTL is negative when the key has no expiry or is gone
        seconds_left = pttl / 1000.0 if pttl is not None and pttl > 0 else float(ttl_seconds)
        return int(count), seconds_left

    async def close(self) -> None:
        await self._client.aclose()


@dataclass(frozen=True)
class RateLimitResult:
    limited: bool
    remaining: int
    # Seconds until the current window closes
    reset_after: float = 0.0
    # True when the store failed and the fail-open/fail-closed policy decided
    degraded: bool = False

    @property
    def retry_after(self) -> int:
        """Whole seconds for a ``Retry-After`` header, never below 1."""
        return max(1, math.ceil(self.reset_after))


class RateLimiter:
    """Admit or reject attempts against a ``CounterStore``."""

    def __init__(self, store: CounterStore, fail_open: bool = False) -> None:
        self.store = store
        self.fail_open = fail_open

    async def admit(
        self,
        client_key: str,
        max_requests: int,
        window_seconds: float,
        prefix: str = "rl",
    ) -> RateLimitResult:
        key = f"{prefix}:{client_key}"
        try:
            count, reset_after = await self.store.incr(key, window_seconds)
        except CounterStoreError as exc:
            logger.warning(
                "Rate limit store failed for %s (%s); failing %s",
                key, exc, "open" if self.fail_open else "closed",
            )
            return RateLimitResult(
                limited=not self.fail_open,
                remaining=0,
                reset_after=float(window_seconds),
                degraded=True,
            )

        limited = count > max_requests
        if limited:
            logger.warning("Rate limit exceeded for %s (%d/%d)", key, count, max_requests)
        return RateLimitResult(
            limited=limited,
            remaining=max(0, max_requests - count),
            reset_after=reset_after,
        )

    async def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


def build_rate_limiter(settings: Settings, store: Optional[CounterStore] = None) -> RateLimiter:
    """Choose the counter store from configuration unless one is given."""
    if store is None:
        if settings.rate_limit_backend == "redis":
            store = RedisCounterStore.from_url(settings.redis_url, timeout=settings.redis_timeout_seconds)
        else:
            store = InMemoryCounterStore()
    return RateLimiter(store, fail_open=settings.rate_limit_fail_open)
