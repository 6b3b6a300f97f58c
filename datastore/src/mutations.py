"""
Optimistic local mutations.

After the UI has written to the remote store, the same change is applied to
the cached collection so the view is consistent without a refetch. None of
these operations touch ``last_synced_at``: the edited cache stays "fresh"
until the TTL expires or a forced refresh reconciles it with the store.
There is no rollback if the remote write later turns out to have failed.
"""

from typing import Any, Iterable, Union

from shared.logging import get_logger

from .cache import CacheManager
from .models import Record

log = get_logger("datastore", "mutations")


class MutationApplier:
    """Applies create/update/delete to cached collections, in memory only."""

    def __init__(self, cache: CacheManager, id_field: str = "id"):
        self.cache = cache
        self.id_field = id_field

    def _as_record(self, record: Union[Record, dict]) -> Record:
        if isinstance(record, Record):
            return record
        return Record.from_row(record, self.id_field)

    def apply_create(self, name: str, record: Union[Record, dict]) -> Record:
        """
        Prepend a newly created record (newest-first order).

        A cached record with the same id is replaced, so ids stay unique.
        """
        entry = self.cache.entry(name)
        new_record = self._as_record(record)
        remainder = [r for r in entry.records if r.id != new_record.id]
        if len(remainder) != len(entry.records):
            log.debug("datastore.mutation.create_replaced", collection=name, record_id=new_record.id)
        entry.records = [new_record, *remainder]
        log.debug("datastore.mutation.created", collection=name, record_id=new_record.id)
        return new_record

    def apply_update(self, name: str, record_id: Any, partial_fields: dict) -> bool:
        """
        Merge partial_fields into the cached record with record_id.

        Returns:
            True if a record was updated, False if the id is not cached
        """
        entry = self.cache.entry(name)
        updated = False
        records = []
        for record in entry.records:
            if record.id == record_id:
                record = record.merged(partial_fields)
                updated = True
            records.append(record)

        if not updated:
            log.debug("datastore.mutation.miss", collection=name, op="update", record_id=record_id)
            return False

        entry.records = records
        log.debug(
            "datastore.mutation.updated",
            collection=name,
            record_id=record_id,
            fields=",".join(partial_fields),
        )
        return True

    def apply_delete(self, name: str, record_id: Any) -> bool:
        """Remove one record. Returns False if the id is not cached."""
        return self.apply_delete_many(name, [record_id]) > 0

    def apply_delete_many(self, name: str, record_ids: Iterable[Any]) -> int:
        """
        Remove every record whose id is in record_ids, keeping the order of the rest.

        Returns:
            Number of records removed
        """
        entry = self.cache.entry(name)
        wanted = set(record_ids)
        if not wanted:
            return 0

        remainder = [r for r in entry.records if r.id not in wanted]
        removed = len(entry.records) - len(remainder)
        if removed == 0:
            log.debug("datastore.mutation.miss", collection=name, op="delete", requested=len(wanted))
            return 0

        entry.records = remainder
        log.debug("datastore.mutation.deleted", collection=name, removed=removed, requested=len(wanted))
        return removed
