"""
Snapshot cache.

An in-process read cache whose whole content is rebuilt from the backing
store and published with a single reference swap, so concurrent readers
see either the previous snapshot or the new one, never a half-filled map.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Mapping, Optional, TypeVar

from contract_sla.core.clock import utcnow

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheSnapshot(Generic[K, V]):
    """Immutable cache content plus the moment it was loaded."""
    entries: Mapping[K, V]
    inserted_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.inserted_at


class SnapshotCache(Generic[K, V]):
    """
    Key/value cache refreshed wholesale from a loader coroutine.

    Args:
        name: Cache name used in logs and stats
        loader: Coroutine returning the complete key -> value mapping
        ttl: Default time-to-live; None means the snapshot never expires
            and is only replaced by an explicit refresh
        clock: Callable returning the current naive UTC time
    """

    def __init__(
        self,
        name: str,
        loader: Callable[[], Awaitable[Dict[K, V]]],
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.name = name
        self.ttl = ttl
        self._loader = loader
        self._clock = clock
        self._snapshot: Optional[CacheSnapshot[K, V]] = None

    @property
    def snapshot(self) -> Optional[CacheSnapshot[K, V]]:
        return self._snapshot

    def is_stale(self, ttl: Optional[timedelta] = None) -> bool:
        """True when nothing is loaded or the snapshot is older than ttl."""
        snapshot = self._snapshot
        if snapshot is None:
            return True
        ttl = ttl if ttl is not None else self.ttl
        if ttl is None:
            return False
        return snapshot.age(self._clock()) > ttl

    async def refresh(self) -> CacheSnapshot[K, V]:
        """
        Reload everything from the loader and publish the new snapshot.

        Loader errors propagate and leave the previous snapshot in place.
        Overlapping refreshes are independent; the last one to finish wins.
        """
        entries = await self._loader()
        snapshot = CacheSnapshot(
            entries=MappingProxyType(dict(entries)),
            inserted_at=self._clock()
        )
        self._snapshot = snapshot
        logger.debug(f"Cache '{self.name}' refreshed with {len(snapshot.entries)} entries")
        return snapshot

    async def current(self, ttl: Optional[timedelta] = None) -> CacheSnapshot[K, V]:
        """Return the live snapshot, refreshing first when stale."""
        if self.is_stale(ttl):
            return await self.refresh()
        return self._snapshot

    async def get_or_refresh(self, key: K, ttl: Optional[timedelta] = None) -> Optional[V]:
        """Look up key, refreshing the whole snapshot first when stale."""
        snapshot = await self.current(ttl)
        return snapshot.entries.get(key)

    def get(self, key: K) -> Optional[V]:
        """Look up key in the current snapshot without refreshing."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return snapshot.entries.get(key)

    def clear(self) -> None:
        self._snapshot = None

    def stats(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        return {
            "name": self.name,
            "entries": len(snapshot.entries) if snapshot else 0,
            "loaded_at": snapshot.inserted_at.isoformat() if snapshot else None,
            "ttl_seconds": self.ttl.total_seconds() if self.ttl else None,
        }
