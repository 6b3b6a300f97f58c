"""
Data models for duplicate detection.

Contains:
- MatchKind enum
- DuplicateCandidate dataclass
- DuplicateCheckResult dataclass
- LocalMatch dataclass
- DuplicateCheckError
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class MatchKind(str, Enum):
    """How closely a candidate matches the checked text."""
    EXACT = "exact"
    SIMILAR = "similar"


class DuplicateCheckError(Exception):
    """Raised when the candidate search against the remote store fails."""

    def __init__(self, collection: str, field_name: str, cause: Optional[BaseException] = None):
        self.collection = collection
        self.field_name = field_name
        self.cause = cause
        super().__init__(f"Duplicate search failed for {collection}.{field_name}: {cause}")


@dataclass
class DuplicateCandidate:
    """
    An existing record that looks like a duplicate of the checked title.

    ``record`` is whatever the remote store returned for the candidate
    (a ``Record`` from the datastore, or a raw row).
    """
    record: Any
    score: float
    match_kind: MatchKind = MatchKind.SIMILAR
    title: str = ""

    @property
    def percent(self) -> int:
        """Score as a rounded percentage for display."""
        return round(self.score * 100)


@dataclass
class DuplicateCheckResult:
    """Result of a duplicate check, in the shape the entry form renders."""
    loading: bool = False
    checked: bool = False
    duplicates: list[DuplicateCandidate] = field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)

    def to_dict(self) -> dict:
        return {
            "loading": self.loading,
            "checked": self.checked,
            "duplicates": [
                {
                    "title": d.title,
                    "score": d.score,
                    "match_kind": d.match_kind.value,
                }
                for d in self.duplicates
            ],
        }


@dataclass
class LocalMatch:
    """Result of checking a value against an in-memory list of values."""
    match_kind: MatchKind
    value: str
    score: float = 1.0
