"""
Endpoint cache with pluggable eviction and one writer per domain.

Entries are EndpointInfo records keyed by normalized domain. A loader runs
under the domain's lock, so concurrent first lookups of one domain issue a
single fetch; later callers read what the first one stored. Loader failures
leave no entry behind.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Protocol, runtime_checkable

from .models import EndpointInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached record and the monotonic time it was stored."""
    info: EndpointInfo
    stored_at: float


@runtime_checkable
class CachePolicy(Protocol):
    """Decides whether a cached entry may still be served."""

    def is_fresh(self, entry: CacheEntry, now: float) -> bool:
        ...


class NoExpiry:
    """Entries live until invalidated or the process exits."""

    def is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return True


class TimeToLive:
    """Entries expire a fixed number of seconds after being stored."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError("TTL must be positive")
        self.seconds = seconds

    def is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at < self.seconds


def policy_from_ttl(ttl_seconds: Optional[float]) -> CachePolicy:
    """NoExpiry for None, TimeToLive otherwise."""
    if ttl_seconds is None:
        return NoExpiry()
    return TimeToLive(ttl_seconds)


class EndpointCache:
    """Per-domain EndpointInfo store."""

    def __init__(
        self,
        policy: Optional[CachePolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._policy = policy or NoExpiry()
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    def _lock_for(self, domain: str) -> asyncio.Lock:
        lock = self._locks.get(domain)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[domain] = lock
        return lock

    def get(self, domain: str) -> Optional[EndpointInfo]:
        """Return a fresh entry, evicting it if the policy says it is stale."""
        entry = self._entries.get(domain)
        if entry is None:
            return None
        if not self._policy.is_fresh(entry, self._clock()):
            logger.debug(f"Evicting stale endpoint entry for {domain}")
            del self._entries[domain]
            return None
        return entry.info

    def put(self, info: EndpointInfo) -> None:
        self._entries[info.domain] = CacheEntry(info=info, stored_at=self._clock())

    async def get_or_load(
        self,
        domain: str,
        loader: Callable[[str], Awaitable[EndpointInfo]],
    ) -> EndpointInfo:
        """Serve from cache or run ``loader`` once under the domain lock."""
        cached = self.get(domain)
        if cached is not None:
            return cached

        async with self._lock_for(domain):
            # Another caller may have loaded it while we waited
            cached = self.get(domain)
            if cached is not None:
                return cached

            info = await loader(domain)
            self.put(info)
            return info

    def set_token(
        self,
        domain: str,
        token: str,
        info: Optional[EndpointInfo] = None,
    ) -> EndpointInfo:
        """
        Replace the domain's entry with one carrying ``token``.

        If the entry was evicted or invalidated meanwhile, ``info`` (the
        record the caller resolved) is stored again with the token.

        Raises:
            KeyError: If there is no entry and no ``info`` to fall back to.
        """
        entry = self._entries.get(domain)
        if entry is None:
            if info is None:
                raise KeyError(f"No endpoint entry cached for {domain}")
            updated = info.with_token(token)
            self.put(updated)
            return updated
        updated = entry.info.with_token(token)
        # Keep the original storage time so the token does not extend the TTL
        self._entries[domain] = CacheEntry(info=updated, stored_at=entry.stored_at)
        return updated

    def invalidate(self, domain: str) -> None:
        self._entries.pop(domain, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, domain: object) -> bool:
        return domain in self._entries

    def __len__(self) -> int:
        return len(self._entries)
