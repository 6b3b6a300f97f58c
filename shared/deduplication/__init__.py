"""
Duplicate detection for dashboard content.

Two scoring functions cover the two call sites:
1. Token Jaccard - candidate titles vs. multi-word titles from the store
2. Bigram Dice - quick field-to-field checks against values in memory

Usage:
    from shared.deduplication import get_duplicate_gate, check_local_duplicate

    gate = get_duplicate_gate(store)
    result = await gate.check(title, "press_releases", "JUDUL BERITA")
    if result.duplicates:
        print(f"Similar: {result.duplicates[0].title}")

    match = check_local_duplicate("Humas Polda", known_authors)
"""

# Models
from .models import (
    MatchKind,
    DuplicateCandidate,
    DuplicateCheckResult,
    DuplicateCheckError,
    LocalMatch,
)

# Gate
from .gate import (
    DuplicateGate,
    CandidateSearch,
)

# Text processing functions
from .text_processing import (
    normalize_text,
    tokenize,
    extract_bigrams,
    jaccard_similarity,
    token_jaccard,
    bigram_dice,
    search_tokens,
    build_search_pattern,
)

# Configuration
from .config import DeduplicationConfig

# Utility functions
from .utils import (
    get_duplicate_gate,
    check_local_duplicate,
)

__all__ = [
    # Models
    "MatchKind",
    "DuplicateCandidate",
    "DuplicateCheckResult",
    "DuplicateCheckError",
    "LocalMatch",
    # Gate
    "DuplicateGate",
    "CandidateSearch",
    # Text processing
    "normalize_text",
    "tokenize",
    "extract_bigrams",
    "jaccard_similarity",
    "token_jaccard",
    "bigram_dice",
    "search_tokens",
    "build_search_pattern",
    # Config
    "DeduplicationConfig",
    # Utils
    "get_duplicate_gate",
    "check_local_duplicate",
]
