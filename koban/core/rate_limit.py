"""
Login attempt limiting.

Fixed window per client identity: the window opens on the first failure and
the identity is blocked once max_attempts failures land inside it. A
successful login clears the window.

Backends:
- MemoryAttemptStore: process local, clock injected (default)
- RedisAttemptStore: shared across workers through the cache manager
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

from koban.config import Settings, settings
from koban.core.cache import CacheManager, cache_manager
from koban.utils.datetime import Clock, utcnow

logger = logging.getLogger(__name__)

LOGIN_NAMESPACE = "admin_login"


@dataclass
class AttemptWindow:
    """Failures recorded for one identity."""

    count: int
    retry_after: int  # Seconds until the window resets


class AttemptStore(ABC):
    """Where failure counts live."""

    @abstractmethod
    async def get(self, identity: str) -> AttemptWindow:
        ...

    @abstractmethod
    async def hit(self, identity: str, window_seconds: int) -> AttemptWindow:
        ...

    @abstractmethod
    async def reset(self, identity: str) -> None:
        ...


class MemoryAttemptStore(AttemptStore):
    """Per-process store. Fine for a single worker and for tests."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self.clock = clock
        self._windows: dict[str, tuple[int, datetime]] = {}
        self._lock = asyncio.Lock()

    def _current(self, identity: str) -> tuple[int, datetime] | None:
        entry = self._windows.get(identity)
        if entry and entry[1] <= self.clock():
            del self._windows[identity]
            return None
        return entry

    def _window(self, entry: tuple[int, datetime] | None) -> AttemptWindow:
        if entry is None:
            return AttemptWindow(count=0, retry_after=0)
        seconds = (entry[1] - self.clock()).total_seconds()
        return AttemptWindow(count=entry[0], retry_after=max(1, int(seconds + 0.999)))

    async def get(self, identity: str) -> AttemptWindow:
        async with self._lock:
            return self._window(self._current(identity))

    def _sweep(self) -> None:
        now = self.clock()
        for identity in [i for i, (_, resets_at) in self._windows.items() if resets_at <= now]:
            del self._windows[identity]

    async def hit(self, identity: str, window_seconds: int) -> AttemptWindow:
        async with self._lock:
            self._sweep()
            entry = self._current(identity)
            if entry is None:
                entry = (1, self.clock() + timedelta(seconds=window_seconds))
            else:
                entry = (entry[0] + 1, entry[1])
            self._windows[identity] = entry
            return self._window(entry)

    async def reset(self, identity: str) -> None:
        async with self._lock:
            self._windows.pop(identity, None)


class RedisAttemptStore(AttemptStore):
    """
    Shared store on Redis counters with a TTL.

    If Redis is down, fail open (don't block logins).
    """

    def __init__(self, cache: CacheManager = cache_manager) -> None:
        self.cache = cache

    async def get(self, identity: str) -> AttemptWindow:
        try:
            count = await self.cache.get_count(LOGIN_NAMESPACE, identity)
            ttl = await self.cache.get_ttl(LOGIN_NAMESPACE, identity) if count else 0
        except Exception as e:
            logger.error(f"Login attempt lookup failed: {e}")
            return AttemptWindow(count=0, retry_after=0)
        return AttemptWindow(count=count, retry_after=max(ttl, 0))

    async def hit(self, identity: str, window_seconds: int) -> AttemptWindow:
        try:
            count = await self.cache.increment(LOGIN_NAMESPACE, identity, ttl=window_seconds)
            ttl = await self.cache.get_ttl(LOGIN_NAMESPACE, identity)
        except Exception as e:
            logger.error(f"Login attempt record failed: {e}")
            return AttemptWindow(count=0, retry_after=0)
        return AttemptWindow(count=count, retry_after=max(ttl, 0))

    async def reset(self, identity: str) -> None:
        await self.cache.delete(LOGIN_NAMESPACE, identity)


class LoginRateLimiter:
    """Counts failed admin logins per client identity."""

    def __init__(self, store: AttemptStore, max_attempts: int, window_seconds: int) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    async def check(self, identity: str) -> int | None:
        """
        Return seconds to wait if the identity is blocked, None otherwise.
        """
        window = await self.store.get(identity)
        if window.count >= self.max_attempts:
            return window.retry_after or self.window_seconds
        return None

    async def record_failure(self, identity: str) -> AttemptWindow:
        window = await self.store.hit(identity, self.window_seconds)
        if window.count >= self.max_attempts:
            logger.warning(
                f"Login attempts exhausted: {identity} "
                f"{window.count}/{self.max_attempts}"
            )
        return window

    async def reset(self, identity: str) -> None:
        await self.store.reset(identity)


def build_login_rate_limiter(config: Settings = settings, clock: Clock = utcnow) -> LoginRateLimiter:
    """Limiter for the configured backend."""
    if config.login_rate_limit_backend == "redis":
        store: AttemptStore = RedisAttemptStore()
    else:
        store = MemoryAttemptStore(clock=clock)

    return LoginRateLimiter(
        store=store,
        max_attempts=config.admin_login_max_attempts,
        window_seconds=config.admin_login_window_minutes * 60,
    )
