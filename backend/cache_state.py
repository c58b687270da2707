"""In-memory response cache with TTL expiry and a periodic sweep."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from constants import CACHE_SWEEP_INTERVAL_SECONDS, CACHE_TTL_SECONDS

HeaderList = List[Tuple[str, str]]


@dataclass(frozen=True)
class CacheEntry:
    body: bytes
    status: int
    headers: HeaderList = field(default_factory=list)
    captured_at: float = 0.0


def cache_key(method: str, path_query: str) -> str:
    return f"{method.upper()}:{path_query}"


class ResponseCache:
    """Process-wide mapping of ``METHOD:path?query`` to captured responses.

    Expiry is purely time-based: an entry is gone once its age reaches the
    TTL, whether or not the sweep has run yet. No size bound, no per-key
    locking; every call runs on the event loop thread.
    """

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.metrics = {"hits": 0, "misses": 0, "expired": 0, "stores": 0}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, count=False) is not None

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.captured_at >= self.ttl_seconds

    def get(self, key: str, count: bool = True) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            if count:
                self.metrics["misses"] += 1
            return None
        if self._is_expired(entry, self._clock()):
            self._entries.pop(key, None)
            self.metrics["expired"] += 1
            if count:
                self.metrics["misses"] += 1
            return None
        if count:
            self.metrics["hits"] += 1
        return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry
        self.metrics["stores"] += 1

    def store(self, key: str, *, body: bytes, status: int, headers: HeaderList) -> CacheEntry:
        """Capture a finished response; the body buffer is copied."""
        entry = CacheEntry(
            body=bytes(body),
            status=int(status),
            headers=list(headers),
            captured_at=self._clock(),
        )
        self.set(key, entry)
        return entry

    def sweep(self) -> int:
        """Evict every expired entry; returns how many were removed."""
        now = self._clock()
        stale = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for k in stale:
            del self._entries[k]
        self.metrics["expired"] += len(stale)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        return {**self.metrics, "entries": len(self._entries), "ttlSeconds": self.ttl_seconds}


async def run_sweep_loop(
    cache: ResponseCache,
    logger: logging.Logger,
    interval_seconds: float = CACHE_SWEEP_INTERVAL_SECONDS,
) -> None:
    """Sweep *cache* every *interval_seconds* until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        evicted = cache.sweep()
        logger.debug(f"Cache sweep evicted={evicted} stats={cache.stats()}")
