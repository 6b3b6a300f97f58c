"""
Cache manager for remote content collections.

Owns one CacheEntry per configured collection and decides when a collection
has to be synchronized with the remote store:

- Fresh and non-empty (age < TTL): served from memory, no I/O
- Synchronization already running: served from memory, no second fetch
- Otherwise: full paginated fetch, then the entry is replaced

A failed synchronization leaves the entry at its last-known-good state and
raises SyncError. Nothing is retried automatically.
"""

import asyncio
import time
from typing import Callable, Iterable, Optional

from shared.logging import get_logger

from .exceptions import StoreError, SyncError, UnknownCollectionError
from .fetcher import PaginatedFetcher
from .models import CacheEntry, CacheInfo, Record

log = get_logger("datastore", "cache")

# Default time-to-live for a synchronized collection
DEFAULT_TTL_SECONDS = 5 * 60


def _unique_by_id(records: list[Record]) -> tuple[list[Record], int]:
    """Drop later records that repeat an id. Returns (records, dropped)."""
    seen = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique, len(records) - len(unique)


class CacheManager:
    """
    Mirrors named remote collections in memory.

    Usage:
        cache = CacheManager(fetcher, {"press_releases": "NO"})
        records = await cache.refresh("press_releases")
        records = cache.get_collection("press_releases")  # never blocks

    Args:
        fetcher: PaginatedFetcher used for full synchronizations
        collections: Collection name -> order key (or CacheEntry-ready dicts
                     with "order_key" and optional "title_field")
        ttl_seconds: Age after which a collection is stale
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        fetcher: PaginatedFetcher,
        collections: dict,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

        for name, settings in collections.items():
            if isinstance(settings, str):
                entry = CacheEntry(name=name, order_key=settings)
            else:
                entry = CacheEntry(
                    name=name,
                    order_key=settings["order_key"],
                    title_field=settings.get("title_field"),
                )
            self._entries[name] = entry

        log.info(
            "datastore.cache.initialized",
            collections=",".join(self._entries),
            ttl_seconds=ttl_seconds,
            batch_size=fetcher.batch_size,
        )

    @property
    def collections(self) -> list[str]:
        return list(self._entries)

    def entry(self, name: str) -> CacheEntry:
        """The CacheEntry for a collection. Raises UnknownCollectionError."""
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownCollectionError(name) from None

    def get_collection(self, name: str) -> list[Record]:
        """
        Current snapshot of a collection, fresh or not.

        The returned list must be treated as read-only.
        """
        return self.entry(name).records

    def is_fresh(self, name: str) -> bool:
        return self.entry(name).is_fresh(self._clock(), self.ttl_seconds)

    def is_syncing(self, name: str) -> bool:
        return self.entry(name).sync_in_progress

    async def refresh(self, name: str, force: bool = False) -> list[Record]:
        """
        Synchronize a collection if needed and return its snapshot.

        Args:
            name: Collection name
            force: Ignore the TTL (an in-flight sync is still never doubled)

        Returns:
            The new snapshot, or the existing one when no sync was needed or
            one was already running

        Raises:
            SyncError: The synchronization failed; the cache is unchanged
        """
        entry = self.entry(name)
        now = self._clock()

        if not force and entry.is_fresh(now, self.ttl_seconds):
            log.debug("datastore.cache.hit", collection=name, age_seconds=round(entry.age(now), 1))
            return entry.records

        if entry.sync_in_progress:
            log.debug("datastore.cache.sync_in_flight", collection=name, count=len(entry.records))
            return entry.records

        entry.sync_in_progress = True
        log.info("datastore.sync.started", collection=name, force=force)
        try:
            records = await self.fetcher.fetch_all(name, entry.order_key)
        except (StoreError, ValueError) as e:
            entry.last_error = str(e)
            log.error(
                "datastore.sync.failed",
                collection=name,
                error=str(e),
                status=getattr(e, "status", None),
                kept_records=len(entry.records),
            )
            raise SyncError(name, e) from e
        finally:
            entry.sync_in_progress = False

        records, dropped = _unique_by_id(records)
        if dropped:
            log.warning("datastore.sync.duplicate_ids_dropped", collection=name, dropped=dropped)

        entry.records = records
        entry.last_synced_at = now
        entry.last_error = None
        entry.sync_count += 1
        log.info("datastore.sync.complete", collection=name, count=len(records))
        return entry.records

    async def refresh_all(self, force: bool = False, names: Optional[Iterable[str]] = None) -> None:
        """
        Refresh every known collection concurrently.

        Each collection keeps its own in-flight guard. All refreshes run to
        completion; the first SyncError is then re-raised.
        """
        targets = list(names) if names is not None else self.collections
        results = await asyncio.gather(
            *(self.refresh(name, force) for name in targets),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def cache_info(self, name: str) -> CacheInfo:
        entry = self.entry(name)
        now = self._clock()
        return CacheInfo(
            name=name,
            count=len(entry.records),
            age_seconds=entry.age(now),
            fresh=entry.is_fresh(now, self.ttl_seconds),
            syncing=entry.sync_in_progress,
            sync_count=entry.sync_count,
            last_error=entry.last_error,
        )

    def cache_info_all(self) -> list[CacheInfo]:
        return [self.cache_info(name) for name in self._entries]
