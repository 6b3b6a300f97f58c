"""Tests for the debounced duplicate gate."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.deduplication import DuplicateCheckResult, DuplicateGate, MatchKind

FIELD = "JUDUL BERITA"


def _row(title, row_id=1):
    return {"id": row_id, FIELD: title}


@pytest.fixture
def mock_store():
    """Store whose search finds nothing unless a test says otherwise."""
    store = MagicMock()
    store.search = AsyncMock(return_value=[])
    return store


@pytest.fixture
def gate(mock_store):
    """Gate with a short debounce."""
    return DuplicateGate(mock_store, debounce_seconds=0.05)


@pytest.fixture
def blocking_store():
    """Store whose search waits until the test sets ``release``."""
    store = MagicMock()
    store.release = asyncio.Event()

    async def search(collection, field, pattern, limit):
        await store.release.wait()
        return []

    store.search = search
    return store


class TestShortTitles:
    """Titles under the minimum length are never checked."""

    @pytest.mark.asyncio
    async def test_returns_unchecked_without_io(self, gate, mock_store):
        """A five-character title is rejected without touching the store."""
        result = await gate.check("Tokyo", "press_releases", FIELD)

        assert result == DuplicateCheckResult(loading=False, checked=False, duplicates=[])
        mock_store.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_title(self, gate, mock_store):
        """An empty title is rejected without touching the store."""
        result = await gate.check("", "press_releases", FIELD)

        assert result.checked is False
        mock_store.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_ten_characters_is_checked(self, gate, mock_store):
        """A title of exactly the minimum length is checked."""
        result = await gate.check("Tokyo Olym", "press_releases", FIELD)

        assert result.checked is True
        mock_store.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_short_title_supersedes_pending_check(self, gate, mock_store):
        """Shortening the title cancels the pending check."""
        pending = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0)

        short = await gate.check("Tokyo", "press_releases", FIELD)
        earlier = await pending

        assert short.checked is False
        assert earlier.checked is False
        mock_store.search.assert_not_called()


class TestDebounce:
    """Tests for trailing-edge debouncing per field."""

    @pytest.mark.asyncio
    async def test_last_call_wins(self, gate, mock_store):
        """Both callers get the result of the newest title's check."""
        mock_store.search.return_value = [_row("Tokyo Olympics Recap")]

        first = asyncio.ensure_future(gate.check("Tokyo Olym", "press_releases", FIELD))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))

        r1, r2 = await asyncio.gather(first, second)

        mock_store.search.assert_awaited_once_with(
            "press_releases", FIELD, "tokyo%olympics%recap", 5
        )
        assert r1 is r2
        assert r2.duplicates[0].match_kind == MatchKind.EXACT
        assert gate.get_stats()["superseded"] == 1

    @pytest.mark.asyncio
    async def test_burst_of_keystrokes_searches_once(self, gate, mock_store):
        """One call per keystroke still produces a single search."""
        title = "Tokyo Olympics recap day one"
        calls = []
        for end in range(10, len(title) + 1):
            calls.append(asyncio.ensure_future(gate.check(title[:end], "press_releases", FIELD)))
            await asyncio.sleep(0)

        results = await asyncio.gather(*calls)

        assert mock_store.search.await_count == 1
        assert all(r is results[-1] for r in results)

    @pytest.mark.asyncio
    async def test_cancelled_earlier_caller_keeps_latest_check(self, gate, mock_store):
        """Cancelling a superseded caller does not cancel the newest check."""
        mock_store.search.return_value = [_row("Tokyo Olympics Recap")]

        first = asyncio.ensure_future(gate.check("Tokyo Olym", "press_releases", FIELD))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0.01)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        result = await second

        assert result.checked is True
        assert len(result.duplicates) == 1
        mock_store.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancelled_caller_leaves_check_running(self, gate, mock_store):
        """The check still completes and records its status after its caller is cancelled."""
        caller = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0.01)

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)

        assert gate.status("press_releases", FIELD).checked is True
        mock_store.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fields_debounce_independently(self, gate, mock_store):
        """A check on one field never supersedes a check on another."""
        press = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0)
        commando = asyncio.ensure_future(gate.check("Konten nomor satu", "commando_contents", "JUDUL"))

        await asyncio.gather(press, commando)

        assert mock_store.search.await_count == 2

    @pytest.mark.asyncio
    async def test_waits_for_debounce_before_searching(self, gate, mock_store):
        """No search runs until the debounce delay has passed."""
        task = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0.01)

        assert gate.is_pending("press_releases", FIELD)
        mock_store.search.assert_not_called()

        await task
        assert gate.is_pending("press_releases", FIELD) is False


class TestSearchAndScoring:
    """Tests for candidate search and Jaccard scoring."""

    @pytest.mark.asyncio
    async def test_search_pattern_uses_leading_long_tokens(self, gate, mock_store):
        """The search pattern joins the first three tokens longer than three characters."""
        await gate.check("The Tokyo Olympics recap of day one", "press_releases", FIELD)

        args = mock_store.search.await_args.args
        assert args[2] == "tokyo%olympics%recap"

    @pytest.mark.asyncio
    async def test_no_searchable_tokens(self, gate, mock_store):
        """A title with no long token is checked without a search."""
        result = await gate.check("ab cd ef gh ij", "press_releases", FIELD)

        assert result.checked is True
        assert result.duplicates == []
        mock_store.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_candidates_below_threshold_dropped(self, gate, mock_store):
        """Candidates scoring under the threshold are not reported."""
        mock_store.search.return_value = [
            _row("Tokyo Olympics recap", 1),
            _row("Tokyo Olympics recap day one", 2),
        ]

        result = await gate.check("Tokyo Olympics recap day one", "press_releases", FIELD)

        # 3/5 shared tokens is below 0.7
        assert [d.record["id"] for d in result.duplicates] == [2]

    @pytest.mark.asyncio
    async def test_threshold_override(self, gate, mock_store):
        """A per-call threshold replaces the gate's."""
        mock_store.search.return_value = [_row("Tokyo Olympics recap", 1)]

        result = await gate.check("Tokyo Olympics recap day one", "press_releases", FIELD, threshold=0.5)

        assert len(result.duplicates) == 1
        assert result.duplicates[0].score == pytest.approx(0.6)
        assert result.duplicates[0].match_kind == MatchKind.SIMILAR

    def test_score_candidates_sorted_best_first(self):
        """Kept candidates are ordered by descending score."""
        candidates = [
            _row("Tokyo Olympics recap", 1),
            _row("tokyo  olympics recap DAY one", 2),
            _row("Tokyo Olympics schedule", 3),
        ]

        scored = DuplicateGate.score_candidates("Tokyo Olympics recap day one", candidates, FIELD, 0.5)

        assert [c.record["id"] for c in scored] == [2, 1]
        assert scored[0].match_kind == MatchKind.EXACT
        assert scored[0].percent == 100
        assert scored[1].percent == 60

    def test_score_candidates_missing_title(self):
        """A candidate without the title field scores 0."""
        scored = DuplicateGate.score_candidates("Tokyo Olympics recap", [{"id": 1}], FIELD, 0.0)

        assert scored[0].score == 0.0
        assert scored[0].title == ""

    @pytest.mark.asyncio
    async def test_loading_while_searching(self, gate, mock_store):
        """status() reports loading while the search runs."""
        seen = []

        async def search(collection, field, pattern, limit):
            seen.append(gate.status(collection, field))
            return []

        mock_store.search = search

        result = await gate.check("Tokyo Olympics recap", "press_releases", FIELD)

        assert seen[0].loading is True
        assert seen[0].checked is False
        assert result.loading is False
        assert gate.status("press_releases", FIELD) is result


class TestFailOpen:
    """A failing store never blocks content entry."""

    @pytest.mark.asyncio
    async def test_store_error_reports_no_duplicates(self, gate, mock_store, caplog):
        """A search error is logged and reported as checked with no duplicates."""
        caplog.set_level(logging.WARNING, logger="dashboard")
        mock_store.search.side_effect = RuntimeError("connection reset")

        result = await gate.check("Tokyo Olympics recap", "press_releases", FIELD)

        assert result.checked is True
        assert result.loading is False
        assert result.duplicates == []
        assert "deduplication.gate.search_failed" in caplog.text
        assert gate.get_stats()["search_errors"] == 1


class TestCancelAndClose:
    """Tests for cancelling pending checks."""

    @pytest.mark.asyncio
    async def test_cancel_pending(self, mock_store):
        """cancel() resolves the waiting caller as unchecked."""
        gate = DuplicateGate(mock_store, debounce_seconds=10)
        task = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0)

        assert gate.cancel("press_releases", FIELD) is True
        result = await task

        assert result.checked is False
        assert gate.is_pending("press_releases", FIELD) is False
        mock_store.search.assert_not_called()

    def test_cancel_without_pending(self, gate):
        """cancel() with nothing pending reports False."""
        assert gate.cancel("press_releases", FIELD) is False

    @pytest.mark.asyncio
    async def test_close_cancels_everything(self, mock_store):
        """close() resolves every waiting caller."""
        gate = DuplicateGate(mock_store, debounce_seconds=10)
        tasks = [
            asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD)),
            asyncio.ensure_future(gate.check("Konten nomor satu", "commando_contents", "JUDUL")),
        ]
        await asyncio.sleep(0)

        await gate.close()
        results = await asyncio.gather(*tasks)

        assert all(r.checked is False for r in results)
        assert gate.get_stats()["pending"] == 0
        mock_store.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_during_search_clears_loading(self, blocking_store):
        """Closing mid-search leaves the field's status not loading."""
        gate = DuplicateGate(blocking_store, debounce_seconds=0)
        task = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0.01)
        assert gate.status("press_releases", FIELD).loading is True

        await gate.close()
        result = await task

        assert result.loading is False
        assert gate.status("press_releases", FIELD).loading is False

    @pytest.mark.asyncio
    async def test_cancel_during_search_clears_loading(self, blocking_store):
        """Cancelling mid-search leaves the field's status not loading."""
        gate = DuplicateGate(blocking_store, debounce_seconds=0)
        task = asyncio.ensure_future(gate.check("Tokyo Olympics recap", "press_releases", FIELD))
        await asyncio.sleep(0.01)

        assert gate.cancel("press_releases", FIELD) is True
        result = await task

        assert result == DuplicateCheckResult()
        assert gate.status("press_releases", FIELD) == DuplicateCheckResult()
