"""
Paginated full-table fetch.

Reads an entire collection from the remote store in bounded pages so that no
single request exceeds the store's row limit.
"""

import time

from shared.logging import get_logger

from .models import Record
from .store import RemoteStore

log = get_logger("datastore", "fetcher")

# Rows per page; matches the store's default max-rows setting
BATCH_SIZE = 1000


class PaginatedFetcher:
    """
    Fetches every row of a collection, newest first.

    The row count is read once up front; pages of ``batch_size`` rows are
    then requested until the offset passes that count. If rows are added or
    removed remotely while the pages are being read, the result can miss or
    repeat rows. That race is accepted: the next refresh corrects it.
    """

    def __init__(self, store: RemoteStore, batch_size: int = BATCH_SIZE, id_field: str = "id"):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.id_field = id_field

    async def fetch_all(self, collection: str, order_key: str) -> list[Record]:
        """
        Fetch the whole collection ordered descending by order_key.

        Any error from the store aborts the fetch and propagates; no partial
        result is ever returned.

        Args:
            collection: Collection (table) name
            order_key: Field to order by, descending

        Returns:
            All records, in page order
        """
        start_time = time.time()
        total = await self.store.count(collection) or 0

        rows: list[dict] = []
        offset = 0
        pages = 0
        while offset < total:
            batch = await self.store.page(collection, order_key, offset, self.batch_size)
            pages += 1
            if batch:
                rows.extend(batch)
            offset += self.batch_size

        log.debug(
            "datastore.fetch.complete",
            collection=collection,
            total=total,
            rows=len(rows),
            pages=pages,
            time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return [Record.from_row(row, self.id_field) for row in rows]
