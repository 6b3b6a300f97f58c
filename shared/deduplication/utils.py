"""
Utility functions for duplicate detection.

Contains:
- Factory functions
- Local (in-memory) duplicate checks
"""

from typing import Iterable, Optional

from shared.logging import get_logger

from .config import DEFAULT_LOCAL_THRESHOLD, DeduplicationConfig
from .gate import CandidateSearch, DuplicateGate
from .models import LocalMatch, MatchKind
from .text_processing import bigram_dice

log = get_logger("shared", "deduplication.utils")


def get_duplicate_gate(store: CandidateSearch, config: Optional[DeduplicationConfig] = None) -> DuplicateGate:
    """
    Factory function to create a DuplicateGate.

    Args:
        store: Anything with an async ``search(collection, field, pattern, limit)``
        config: Deduplication settings. If None, the defaults are used

    Returns:
        Configured DuplicateGate
    """
    config = config or DeduplicationConfig()
    log.debug(
        "deduplication.gate.created",
        threshold=config.threshold,
        debounce_seconds=config.debounce_seconds,
    )
    return DuplicateGate(
        store,
        min_title_length=config.min_title_length,
        debounce_seconds=config.debounce_seconds,
        threshold=config.threshold,
        candidate_limit=config.candidate_limit,
        search_token_min_length=config.search_token_min_length,
        search_token_count=config.search_token_count,
    )


def check_local_duplicate(
    value: str,
    existing_values: Iterable[str],
    threshold: float = DEFAULT_LOCAL_THRESHOLD,
) -> Optional[LocalMatch]:
    """
    Check a field value against values already held in memory.

    An exact (case and surrounding-whitespace insensitive) match wins over
    any fuzzy one. Otherwise the first value whose bigram Dice score reaches
    ``threshold`` is returned.

    Args:
        value: Value being entered
        existing_values: Known values (e.g. author names from the cache)
        threshold: Minimum Dice coefficient for a "similar" match

    Returns:
        LocalMatch, or None when nothing matches
    """
    existing = [v for v in existing_values if v is not None]
    if not value or not existing:
        return None

    normalized = value.lower().strip()

    for candidate in existing:
        if candidate.lower().strip() == normalized:
            return LocalMatch(match_kind=MatchKind.EXACT, value=candidate, score=1.0)

    for candidate in existing:
        score = bigram_dice(normalized, candidate.lower().strip())
        if score >= threshold:
            return LocalMatch(match_kind=MatchKind.SIMILAR, value=candidate, score=score)

    return None
