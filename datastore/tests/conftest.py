"""Shared fixtures for datastore tests."""

import pytest

from datastore.src.cache import CacheManager
from datastore.src.config import DashboardConfig
from datastore.src.fetcher import PaginatedFetcher
from datastore.src.mutations import MutationApplier
from datastore.src.store import InMemoryStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_rows(count: int, title_prefix: str = "Press release", start: int = 1) -> list[dict]:
    """Rows with ids and NO equal, so descending NO order is descending id."""
    return [
        {"id": i, "NO": i, "JUDUL BERITA": f"{title_prefix} {i}", "PENULIS": "Humas"}
        for i in range(start, start + count)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Store with two small collections."""
    return InMemoryStore({
        "press_releases": make_rows(5),
        "commando_contents": make_rows(3, title_prefix="Konten"),
    })


@pytest.fixture
def slow_store():
    """Store whose calls take long enough to overlap."""
    return InMemoryStore(
        {
            "press_releases": make_rows(5),
            "commando_contents": make_rows(3, title_prefix="Konten"),
        },
        latency=0.05,
    )


@pytest.fixture
def collections():
    return {
        "press_releases": {"order_key": "NO", "title_field": "JUDUL BERITA"},
        "commando_contents": {"order_key": "NO", "title_field": "JUDUL BERITA"},
    }


@pytest.fixture
def cache(store, collections, clock):
    return CacheManager(PaginatedFetcher(store), collections, ttl_seconds=300, clock=clock)


@pytest.fixture
def mutations(cache):
    return MutationApplier(cache)


@pytest.fixture
def sample_config():
    """Configuration with no debounce so duplicate checks resolve immediately."""
    return DashboardConfig.from_dict({
        "datastore": {
            "ttl_seconds": 300,
            "batch_size": 2,
            "collections": {
                "press_releases": {"order_key": "NO", "title_field": "JUDUL BERITA"},
                "commando_contents": {"order_key": "NO"},
            },
        },
        "deduplication": {
            "debounce_seconds": 0,
            "threshold": 0.7,
        },
    })


@pytest.fixture
def row_factory():
    """Access to make_rows from tests."""
    return make_rows
