"""Configuration for duplicate detection (the ``deduplication`` section of config.yaml)."""

from pydantic import BaseModel, Field

from .gate import (
    DEFAULT_CANDIDATE_LIMIT,
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_MIN_TITLE_LENGTH,
    DEFAULT_THRESHOLD,
)
from .text_processing import SEARCH_TOKEN_COUNT, SEARCH_TOKEN_MIN_LENGTH

DEFAULT_LOCAL_THRESHOLD = 0.8


class DeduplicationConfig(BaseModel):
    """Duplicate gate and local check settings."""
    min_title_length: int = Field(default=DEFAULT_MIN_TITLE_LENGTH, ge=0)
    debounce_seconds: float = Field(default=DEFAULT_DEBOUNCE_SECONDS, ge=0.0)
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0.0, le=1.0)
    candidate_limit: int = Field(default=DEFAULT_CANDIDATE_LIMIT, gt=0)
    search_token_min_length: int = Field(default=SEARCH_TOKEN_MIN_LENGTH, gt=0)
    search_token_count: int = Field(default=SEARCH_TOKEN_COUNT, gt=0)
    local_threshold: float = Field(default=DEFAULT_LOCAL_THRESHOLD, ge=0.0, le=1.0)
