"""
Debounced duplicate gate.

Checks a candidate title against existing content before it is submitted.
Input arrives in bursts (one call per keystroke), so each logical field gets
a trailing-edge debounce: a new call cancels the pending one and only the
latest title is ever evaluated against the remote store.
"""

import asyncio
import time
from typing import Any, Optional, Protocol

from shared.logging import get_logger

from .models import (
    DuplicateCandidate,
    DuplicateCheckError,
    DuplicateCheckResult,
    MatchKind,
)
from .text_processing import (
    SEARCH_TOKEN_COUNT,
    SEARCH_TOKEN_MIN_LENGTH,
    build_search_pattern,
    normalize_text,
    token_jaccard,
)

log = get_logger("shared", "deduplication.gate")

DEFAULT_MIN_TITLE_LENGTH = 10
DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_THRESHOLD = 0.7
DEFAULT_CANDIDATE_LIMIT = 5

FieldKey = tuple[str, str]


class CandidateSearch(Protocol):
    """The part of the remote store the gate needs."""

    async def search(self, collection: str, field: str, pattern: str, limit: int) -> list:
        ...


def _title_of(record: Any, title_field: str) -> str:
    value = record.get(title_field) if record is not None else None
    return "" if value is None else str(value)


class DuplicateGate:
    """
    Debounced "is this a duplicate" check for content entry forms.

    Flow for one call:
    1. Titles shorter than ``min_title_length`` are rejected immediately
    2. Wait ``debounce_seconds``; a newer call for the same field cancels this one
    3. Search the store for a few candidates matching the leading title words
    4. Score candidates with token Jaccard and keep those above the threshold

    A store failure during the search is logged and reported as
    "no duplicates found" so that content entry is never blocked.
    """

    def __init__(
        self,
        store: CandidateSearch,
        *,
        min_title_length: int = DEFAULT_MIN_TITLE_LENGTH,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        threshold: float = DEFAULT_THRESHOLD,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
        search_token_min_length: int = SEARCH_TOKEN_MIN_LENGTH,
        search_token_count: int = SEARCH_TOKEN_COUNT,
    ):
        self.store = store
        self.min_title_length = min_title_length
        self.debounce_seconds = debounce_seconds
        self.threshold = threshold
        self.candidate_limit = candidate_limit
        self.search_token_min_length = search_token_min_length
        self.search_token_count = search_token_count

        self._pending: dict[FieldKey, asyncio.Task] = {}
        self._status: dict[FieldKey, DuplicateCheckResult] = {}

        self._stats = {
            "checks": 0,
            "searches": 0,
            "superseded": 0,
            "search_errors": 0,
            "duplicates_found": 0,
        }

    async def check(
        self,
        title: str,
        collection: str,
        title_field: str,
        threshold: Optional[float] = None,
    ) -> DuplicateCheckResult:
        """
        Check whether ``title`` looks like existing content in ``collection``.

        If a newer call for the same (collection, title_field) arrives while
        this one is still debouncing, this call resolves to the newer call's
        result.

        Args:
            title: Candidate title as typed by the user
            collection: Collection to search
            title_field: Field holding titles in that collection
            threshold: Minimum token Jaccard score (defaults to the gate's)

        Returns:
            DuplicateCheckResult with loading=False
        """
        key = (collection, title_field)
        self._stats["checks"] += 1
        title = title or ""

        if len(title) < self.min_title_length:
            self.cancel(collection, title_field)
            result = DuplicateCheckResult(loading=False, checked=False, duplicates=[])
            self._status[key] = result
            return result

        previous = self._pending.get(key)
        if previous is not None and not previous.done():
            previous.cancel()
            self._stats["superseded"] += 1

        current = asyncio.ensure_future(
            self._run_after_delay(key, title, threshold if threshold is not None else self.threshold)
        )
        self._pending[key] = current

        # Callers can share one check; cancelling a caller must not
        # cancel the check the others wait on
        while True:
            try:
                return await asyncio.shield(current)
            except asyncio.CancelledError:
                if not current.cancelled():
                    # This caller was cancelled, the check itself goes on
                    raise
                latest = self._pending.get(key)
                if latest is None or latest is current:
                    # Cancelled, or superseded by a title too short to check
                    return self._status.get(key) or DuplicateCheckResult()
                current = latest

    async def _run_after_delay(self, key: FieldKey, title: str, threshold: float) -> DuplicateCheckResult:
        try:
            if self.debounce_seconds > 0:
                await asyncio.sleep(self.debounce_seconds)
            self._status[key] = DuplicateCheckResult(loading=True, checked=False, duplicates=[])
            result = await self._evaluate(key, title, threshold)
            self._status[key] = result
            return result
        except asyncio.CancelledError:
            status = self._status.get(key)
            if status is not None and status.loading:
                self._status[key] = DuplicateCheckResult()
            raise
        finally:
            if self._pending.get(key) is asyncio.current_task():
                del self._pending[key]

    async def _evaluate(self, key: FieldKey, title: str, threshold: float) -> DuplicateCheckResult:
        collection, title_field = key
        start_time = time.time()

        pattern = build_search_pattern(
            title,
            min_length=self.search_token_min_length,
            count=self.search_token_count,
        )
        if pattern is None:
            log.debug("deduplication.gate.no_search_tokens", collection=collection, field=title_field)
            return DuplicateCheckResult(loading=False, checked=True, duplicates=[])

        try:
            candidates = await self._search_candidates(collection, title_field, pattern)
        except DuplicateCheckError as e:
            self._stats["search_errors"] += 1
            log.warning(
                "deduplication.gate.search_failed",
                collection=collection,
                field=title_field,
                error=str(e.cause),
                fail_open=True,
            )
            return DuplicateCheckResult(loading=False, checked=True, duplicates=[])

        duplicates = self.score_candidates(title, candidates, title_field, threshold)
        if duplicates:
            self._stats["duplicates_found"] += 1

        log.info(
            "deduplication.gate.checked",
            collection=collection,
            field=title_field,
            candidates=len(candidates),
            duplicates=len(duplicates),
            time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return DuplicateCheckResult(loading=False, checked=True, duplicates=duplicates)

    async def _search_candidates(self, collection: str, title_field: str, pattern: str) -> list:
        self._stats["searches"] += 1
        try:
            return list(await self.store.search(collection, title_field, pattern, self.candidate_limit))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise DuplicateCheckError(collection, title_field, e) from e

    @staticmethod
    def score_candidates(
        title: str,
        candidates: list,
        title_field: str,
        threshold: float,
    ) -> list[DuplicateCandidate]:
        """Score candidates against title, keep those >= threshold, best first."""
        normalized = normalize_text(title)
        scored = []
        for record in candidates:
            candidate_title = _title_of(record, title_field)
            score = token_jaccard(title, candidate_title)
            if score < threshold:
                continue
            kind = MatchKind.EXACT if normalize_text(candidate_title) == normalized else MatchKind.SIMILAR
            scored.append(DuplicateCandidate(
                record=record,
                score=score,
                match_kind=kind,
                title=candidate_title,
            ))
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored

    def status(self, collection: str, title_field: str) -> DuplicateCheckResult:
        """Latest known state for a field (loading is True while searching)."""
        return self._status.get((collection, title_field)) or DuplicateCheckResult()

    def is_pending(self, collection: str, title_field: str) -> bool:
        task = self._pending.get((collection, title_field))
        return task is not None and not task.done()

    def cancel(self, collection: str, title_field: str) -> bool:
        """Cancel the pending check for a field. Returns True if one was cancelled."""
        task = self._pending.pop((collection, title_field), None)
        if task is None or task.done():
            return False
        task.cancel()
        log.debug("deduplication.gate.cancelled", collection=collection, field=title_field)
        return True

    async def close(self) -> None:
        """Cancel every pending check and wait for them to unwind."""
        tasks = list(self._pending.values())
        for collection, title_field in list(self._pending):
            self.cancel(collection, title_field)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_stats(self) -> dict:
        """Get gate statistics."""
        return {
            **self._stats,
            "pending": sum(1 for t in self._pending.values() if not t.done()),
        }
