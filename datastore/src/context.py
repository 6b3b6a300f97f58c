"""
The data context handed to every UI collaborator.

Built once at application start and passed by reference; it owns the cache,
the mutation layer and the duplicate gate for one remote store.
"""

from typing import Any, Iterable, Optional, Union

from shared.deduplication import (
    DuplicateCheckResult,
    LocalMatch,
    check_local_duplicate,
    get_duplicate_gate,
)
from shared.logging import get_logger

from .cache import CacheManager
from .config import DashboardConfig
from .fetcher import PaginatedFetcher
from .models import CacheInfo, Record
from .mutations import MutationApplier
from .store import RemoteStore

log = get_logger("datastore", "context")


class DataContext:
    """
    Single entry point to the data layer.

    Usage:
        async with DataContext(PostgrestStore.from_env(), load_config()) as data:
            await data.refresh_all()
            releases = data.get_collection("press_releases")
            result = await data.check_duplicates(title, "press_releases")
    """

    def __init__(self, store: RemoteStore, config: Optional[DashboardConfig] = None, clock=None):
        self.store = store
        self.config = config or DashboardConfig()
        ds = self.config.datastore

        self.fetcher = PaginatedFetcher(store, batch_size=ds.batch_size, id_field=ds.id_field)
        cache_kwargs = {"clock": clock} if clock is not None else {}
        self.cache = CacheManager(
            self.fetcher,
            {name: c.model_dump() for name, c in ds.collections.items()},
            ttl_seconds=ds.ttl_seconds,
            **cache_kwargs,
        )
        self.mutations = MutationApplier(self.cache, id_field=ds.id_field)
        self.gate = get_duplicate_gate(store, self.config.deduplication)

    async def __aenter__(self) -> "DataContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Cancel pending duplicate checks and close the store."""
        await self.gate.close()
        await self.store.close()

    # --- Reads ---

    def get_collection(self, name: str) -> list[Record]:
        return self.cache.get_collection(name)

    async def refresh(self, name: str, force: bool = False) -> list[Record]:
        return await self.cache.refresh(name, force)

    async def refresh_all(self, force: bool = False) -> None:
        await self.cache.refresh_all(force)

    def cache_info(self) -> list[CacheInfo]:
        return self.cache.cache_info_all()

    # --- Local mutations (after a successful remote write) ---

    def apply_create(self, name: str, record: Union[Record, dict]) -> Record:
        return self.mutations.apply_create(name, record)

    def apply_update(self, name: str, record_id: Any, partial_fields: dict) -> bool:
        return self.mutations.apply_update(name, record_id, partial_fields)

    def apply_delete(self, name: str, record_id: Any) -> bool:
        return self.mutations.apply_delete(name, record_id)

    def apply_delete_many(self, name: str, record_ids: Iterable[Any]) -> int:
        return self.mutations.apply_delete_many(name, record_ids)

    # --- Duplicate detection ---

    async def check_duplicates(
        self,
        title: str,
        collection: str,
        title_field: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> DuplicateCheckResult:
        """
        Debounced duplicate check for a title being entered.

        title_field defaults to the collection's configured title field.
        """
        if title_field is None:
            title_field = self.cache.entry(collection).title_field
            if title_field is None:
                raise ValueError(f"No title_field configured for {collection}")
        return await self.gate.check(title, collection, title_field, threshold)

    def check_local_duplicate(
        self,
        value: str,
        existing_values: Iterable[str],
        threshold: Optional[float] = None,
    ) -> Optional[LocalMatch]:
        """Exact/similar check of a value against values already in memory."""
        if threshold is None:
            threshold = self.config.deduplication.local_threshold
        return check_local_duplicate(value, existing_values, threshold)

    def field_values(self, name: str, field: str) -> list[str]:
        """Distinct non-empty values of a field in the cached collection, in cache order."""
        seen = set()
        values = []
        for record in self.cache.get_collection(name):
            value = record.get(field)
            if value is None or value == "":
                continue
            text = str(value)
            if text not in seen:
                seen.add(text)
                values.append(text)
        return values
