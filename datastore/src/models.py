"""Data models for the datastore cache."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Record:
    """
    One content item.

    Identity is by ``id``; everything else lives in ``fields``. ``id_field``
    names the column the id was read from, so ``record.get(id_field)`` and
    ``record["id"]`` both return it. Records are immutable so a snapshot
    handed to a reader never changes underneath it.
    """
    id: Any
    fields: dict = field(default_factory=dict, hash=False, compare=True)
    id_field: str = field(default="id", compare=False)

    @classmethod
    def from_row(cls, row: dict, id_field: str = "id") -> "Record":
        """Build a record from a raw store row."""
        data = dict(row)
        if id_field not in data:
            raise ValueError(f"Row has no {id_field!r} field")
        record_id = data.pop(id_field)
        return cls(id=record_id, fields=data, id_field=id_field)

    def _is_id(self, name: str) -> bool:
        return name == self.id_field or name == "id"

    def get(self, name: str, default: Any = None) -> Any:
        if self._is_id(name):
            return self.id
        return self.fields.get(name, default)

    def __getitem__(self, name: str) -> Any:
        if self._is_id(name):
            return self.id
        return self.fields[name]

    def merged(self, partial_fields: dict) -> "Record":
        """Return a copy with partial_fields merged in. The id never changes."""
        updates = {k: v for k, v in partial_fields.items() if not self._is_id(k)}
        return Record(id=self.id, fields={**self.fields, **updates}, id_field=self.id_field)


@dataclass
class CacheEntry:
    """
    Cached state for one collection.

    ``records`` is replaced (never edited in place) on every sync or local
    mutation. ``last_synced_at`` is a clock reading and only moves on a
    successful full synchronization.
    """
    name: str
    order_key: str
    title_field: Optional[str] = None
    records: list[Record] = field(default_factory=list)
    last_synced_at: Optional[float] = None
    sync_in_progress: bool = False
    last_error: Optional[str] = None
    sync_count: int = 0

    def age(self, now: float) -> Optional[float]:
        """Seconds since the last successful sync, or None if never synced."""
        if self.last_synced_at is None:
            return None
        return now - self.last_synced_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        """Fresh means synced less than ttl_seconds ago and non-empty."""
        age = self.age(now)
        return age is not None and age < ttl_seconds and len(self.records) > 0


@dataclass
class CacheInfo:
    """Read-only summary of one collection's cache, for status displays."""
    name: str
    count: int
    age_seconds: Optional[float]
    fresh: bool
    syncing: bool
    sync_count: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "count": self.count,
            "age_seconds": self.age_seconds,
            "fresh": self.fresh,
            "syncing": self.syncing,
            "sync_count": self.sync_count,
            "last_error": self.last_error,
        }
