"""
Remote store interface and an in-memory implementation.

The cache only ever reads from the store: it counts rows, reads pages and
runs narrow title searches. Inserts, updates and deletes are issued by the
UI directly and reflected locally through the MutationApplier.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Optional

from shared.logging import get_logger

from .exceptions import StoreError

log = get_logger("datastore", "store")


def like_to_regex(pattern: str) -> "re.Pattern[str]":
    """
    Compile a SQL LIKE pattern for case-insensitive substring matching.

    ``%`` matches any run of characters and ``_`` any single character. The
    pattern is matched anywhere in the value, as ``ILIKE '%pattern%'`` would.
    """
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


class RemoteStore(ABC):
    """The operations the datastore needs from the remote data store."""

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Total number of rows in a collection."""

    @abstractmethod
    async def page(self, collection: str, order_key: str, offset: int, limit: int) -> list[dict]:
        """Rows [offset, offset + limit) ordered descending by order_key."""

    @abstractmethod
    async def search(self, collection: str, field: str, pattern: str, limit: int) -> list[dict]:
        """Up to ``limit`` rows whose ``field`` matches the LIKE ``pattern`` (case-insensitive)."""

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None


class InMemoryStore(RemoteStore):
    """
    RemoteStore backed by plain lists of dicts.

    Used for local development and tests. Every call is recorded in
    ``calls`` so tests can assert how much I/O an operation performed.

    Args:
        collections: Initial rows per collection name
        latency: Seconds each call sleeps before answering (simulates I/O)
    """

    def __init__(self, collections: Optional[dict[str, list[dict]]] = None, latency: float = 0.0):
        self._rows: dict[str, list[dict]] = {
            name: [dict(row) for row in rows] for name, rows in (collections or {}).items()
        }
        self.latency = latency
        self.calls: list[tuple] = []

    def _collection(self, collection: str) -> list[dict]:
        if collection not in self._rows:
            raise StoreError(f"relation \"{collection}\" does not exist", status=404)
        return self._rows[collection]

    async def _simulate_io(self) -> None:
        await asyncio.sleep(self.latency)

    async def count(self, collection: str) -> int:
        self.calls.append(("count", collection))
        await self._simulate_io()
        return len(self._collection(collection))

    async def page(self, collection: str, order_key: str, offset: int, limit: int) -> list[dict]:
        self.calls.append(("page", collection, offset, limit))
        await self._simulate_io()
        rows = sorted(
            self._collection(collection),
            key=lambda r: (r.get(order_key) is not None, r.get(order_key)),
            reverse=True,
        )
        return [dict(row) for row in rows[offset:offset + limit]]

    async def search(self, collection: str, field: str, pattern: str, limit: int) -> list[dict]:
        self.calls.append(("search", collection, field, pattern, limit))
        await self._simulate_io()
        regex = like_to_regex(pattern)
        matches = []
        for row in self._collection(collection):
            value = row.get(field)
            if value is not None and regex.search(str(value)):
                matches.append(dict(row))
                if len(matches) >= limit:
                    break
        return matches

    # --- Helpers for seeding and simulating external writes ---

    def add_rows(self, collection: str, rows: list[dict]) -> None:
        self._rows.setdefault(collection, []).extend(dict(row) for row in rows)

    def remove_rows(self, collection: str, ids: list, id_field: str = "id") -> None:
        wanted = set(ids)
        self._rows[collection] = [r for r in self._collection(collection) if r.get(id_field) not in wanted]

    def call_count(self, op: str, collection: Optional[str] = None) -> int:
        return sum(
            1 for call in self.calls
            if call[0] == op and (collection is None or call[1] == collection)
        )

    def reset_calls(self) -> None:
        self.calls.clear()
