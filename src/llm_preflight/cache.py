"""
cache.py — Model status cache for llm-preflight.

Per-base-URL TTL cache of model-id lists. The local inference server's model
list changes rarely, but querying it costs a round trip on every chat
request; this cache bounds that request rate.

Policy:
  • Fresh entry (age < ttl)  → served from memory, no I/O
  • Expired / missing        → refetch; store a copy; return a copy
  • Refetch fails            → serve the previous list if there is one
                               (logged as stale); drop it afterwards when it
                               is older than stale_factor × ttl
  • Over capacity            → drop entries older than stale_factor × ttl,
                               then oldest-first until back at the bound
  • Per-key asyncio.Lock     → concurrent callers for one expired key share
                               a single refetch

Memory only. Nothing survives a process restart.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from llm_preflight.config import settings
from llm_preflight.models import CacheEntry, CacheEntryStats, CacheStats

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Sequence[str]]]


class ModelStatusCache:
    """
    TTL cache of model-id lists keyed by base URL.

    Usage::

        cache = ModelStatusCache(default_ttl=15.0, max_entries=50)
        models = await cache.get_models(base, lambda: client.fetch_model_ids(base))
        cache.invalidate(base)
        stats = cache.get_stats()
    """

    def __init__(
        self,
        default_ttl: Optional[float] = None,
        max_entries: Optional[int] = None,
        stale_factor: Optional[float] = None,
        single_flight: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = float(default_ttl if default_ttl is not None else settings.cache_ttl)
        self.max_entries = int(max_entries if max_entries is not None else settings.cache_max_entries)
        self.stale_factor = float(
            stale_factor if stale_factor is not None else settings.cache_stale_factor
        )
        self._single_flight = settings.single_flight if single_flight is None else single_flight
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        # Per-key locks live only while some caller holds or awaits them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    # ── Read ───────────────────────────────────────────────────────────────────

    async def get_models(self, base_url: str, fetch_fn: FetchFn) -> List[str]:
        """Return the model ids for ``base_url``, fetching only when expired."""
        hit = self._lookup(base_url)
        if hit is not None:
            return hit

        async with self._serialised(base_url):
            # Another caller may have refreshed while we waited
            hit = self._lookup(base_url)
            if hit is not None:
                return hit
            return await self._refresh(base_url, fetch_fn)

    async def force_refresh(self, base_url: str, fetch_fn: FetchFn) -> List[str]:
        """Refetch regardless of freshness.

        The current entry stays in place until the fetch succeeds, so a failed
        refetch still falls back to it.
        """
        async with self._serialised(base_url):
            return await self._refresh(base_url, fetch_fn)

    def is_valid(self, base_url: str) -> bool:
        entry = self._entries.get(base_url)
        return entry is not None and entry.is_fresh(self._clock())

    def entry_age(self, base_url: str) -> Optional[float]:
        entry = self._entries.get(base_url)
        return entry.age(self._clock()) if entry is not None else None

    def get_stats(self) -> CacheStats:
        now = self._clock()
        return CacheStats(
            size=len(self._entries),
            entries=[
                CacheEntryStats(
                    key=key,
                    age=entry.age(now),
                    model_count=len(entry.models),
                    ttl=entry.ttl,
                )
                for key, entry in self._entries.items()
            ],
        )

    # ── Write ──────────────────────────────────────────────────────────────────

    def invalidate(self, base_url: str) -> None:
        if self._entries.pop(base_url, None) is not None:
            logger.debug("Invalidated model cache entry for %s", base_url)

    def invalidate_all(self) -> None:
        size = len(self._entries)
        self._entries.clear()
        logger.debug("Cleared model cache (%d entries)", size)

    def set_ttl(self, base_url: str, ttl: float) -> None:
        entry = self._entries.get(base_url)
        if entry is None:
            return
        entry.ttl = float(ttl)
        logger.debug("TTL for %s set to %.1fs", base_url, ttl)

    # ── Internal ───────────────────────────────────────────────────────────────

    def _lookup(self, base_url: str) -> Optional[List[str]]:
        entry = self._entries.get(base_url)
        if entry is not None and entry.is_fresh(self._clock()):
            logger.debug("Model cache hit for %s (%d models)", base_url, len(entry.models))
            return entry.snapshot()
        return None

    @asynccontextmanager
    async def _serialised(self, base_url: str) -> AsyncIterator[None]:
        if not self._single_flight:
            yield
            return

        lock = self._locks.get(base_url)
        if lock is None:
            lock = self._locks[base_url] = asyncio.Lock()
        self._lock_users[base_url] = self._lock_users.get(base_url, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[base_url] -= 1
            if not self._lock_users[base_url]:
                del self._lock_users[base_url]
                del self._locks[base_url]

    async def _refresh(self, base_url: str, fetch_fn: FetchFn) -> List[str]:
        try:
            models = await fetch_fn()
        except Exception as exc:
            previous = self._entries.get(base_url)
            if previous is None:
                raise
            now = self._clock()
            age = previous.age(now)
            logger.warning(
                "Using stale model list for %s (age %.1fs) after fetch error: %s",
                base_url,
                age,
                exc,
            )
            if age > previous.ttl * self.stale_factor:
                self._entries.pop(base_url, None)
                logger.debug("Evicted stale model cache entry for %s", base_url)
            return previous.snapshot()

        entry = CacheEntry(
            key=base_url,
            models=list(models),
            fetched_at=self._clock(),
            ttl=self.default_ttl,
        )
        self._entries[base_url] = entry
        if len(self._entries) > self.max_entries:
            self._cleanup()
        return entry.snapshot()

    def _cleanup(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.age(now) > entry.ttl * self.stale_factor
        ]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self.max_entries
        evicted: List[str] = []
        if overflow > 0:
            oldest = sorted(self._entries.values(), key=lambda e: e.fetched_at)[:overflow]
            for entry in oldest:
                del self._entries[entry.key]
                evicted.append(entry.key)

        if expired or evicted:
            logger.debug(
                "Model cache cleanup: %d expired, %d over capacity, %d remaining",
                len(expired),
                len(evicted),
                len(self._entries),
            )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, base_url: object) -> bool:
        return base_url in self._entries
