"""
Text processing functions for duplicate detection.

Contains:
- Text normalization
- Tokenization (scoring tokens and search tokens)
- Character bigram extraction
- Similarity calculations (token Jaccard, bigram Dice)

All functions are pure and deterministic.
"""

import re
from typing import Optional

# Tokens of this length or shorter are ignored when scoring titles
SCORE_TOKEN_MAX_IGNORED = 2

# Tokens must be at least this long to be used in a search pattern
SEARCH_TOKEN_MIN_LENGTH = 4

# Number of leading significant tokens joined into a search pattern
SEARCH_TOKEN_COUNT = 3


def normalize_text(text: str) -> str:
    """
    Normalize text for exact comparison.

    - Lowercase
    - Trim
    - Collapse internal whitespace
    """
    return re.sub(r"\s+", " ", text.lower()).strip()


def tokenize(text: str, min_length: int = SCORE_TOKEN_MAX_IGNORED + 1) -> list[str]:
    """Lower-case, split on whitespace and drop tokens shorter than min_length."""
    return [word for word in text.lower().split() if len(word) >= min_length]


def extract_bigrams(text: str) -> set[str]:
    """
    Extract the set of overlapping 2-character substrings.

    Spaces are kept, so word boundaries contribute bigrams too.
    """
    return {text[i:i + 2] for i in range(len(text) - 1)}


def jaccard_similarity(set1: set, set2: set) -> float:
    """Calculate Jaccard similarity between two sets."""
    if not set1 or not set2:
        return 0.0
    intersection = len(set1 & set2)
    union = len(set1 | set2)
    return intersection / union if union > 0 else 0.0


def token_jaccard(text1: str, text2: str) -> float:
    """
    Token-set Jaccard similarity between two titles.

    Tokens of length <= 2 are dropped before comparison, so short filler
    words ("of", "di", "ke") never count towards a match.

    Args:
        text1: First text
        text2: Second text

    Returns:
        Jaccard similarity between 0.0 and 1.0
    """
    return jaccard_similarity(set(tokenize(text1)), set(tokenize(text2)))


def bigram_dice(text1: str, text2: str) -> float:
    """
    Dice coefficient over character bigrams.

    Used for quick field-to-field comparisons against values already in
    memory. Identical strings score 1.0 before any bigram is built.
    """
    a = text1.lower()
    b = text2.lower()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    bigrams_a = extract_bigrams(a)
    bigrams_b = extract_bigrams(b)
    total = len(bigrams_a) + len(bigrams_b)
    if total == 0:
        return 0.0
    return 2 * len(bigrams_a & bigrams_b) / total


def search_tokens(
    text: str,
    min_length: int = SEARCH_TOKEN_MIN_LENGTH,
    count: int = SEARCH_TOKEN_COUNT,
) -> list[str]:
    """Leading significant tokens of a title, used for the server-side pre-filter."""
    return tokenize(text, min_length=min_length)[:count]


def build_search_pattern(
    text: str,
    min_length: int = SEARCH_TOKEN_MIN_LENGTH,
    count: int = SEARCH_TOKEN_COUNT,
) -> Optional[str]:
    """
    Build a LIKE pattern from the leading significant tokens.

    "Tokyo Olympics recap of day one" -> "tokyo%olympics%recap"

    Returns None when the title has no token long enough to search on.
    """
    tokens = search_tokens(text, min_length=min_length, count=count)
    if not tokens:
        return None
    return "%".join(tokens)
