"""
Configuration for the dashboard data layer.

Loaded from config.yaml at the repository root:

    datastore:
      ttl_seconds: 300
      batch_size: 1000
      collections:
        press_releases: {order_key: "NO", title_field: "JUDUL BERITA"}
    deduplication:
      threshold: 0.7
"""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from shared.deduplication import DeduplicationConfig
from shared.logging import get_logger

from .exceptions import ConfigError

log = get_logger("datastore", "config")

REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = REPO_ROOT / "config.yaml"


class CollectionConfig(BaseModel):
    """One cached collection."""
    order_key: str = "NO"
    title_field: Optional[str] = None


def _default_collections() -> dict[str, CollectionConfig]:
    return {
        "press_releases": CollectionConfig(order_key="NO", title_field="JUDUL BERITA"),
        "commando_contents": CollectionConfig(order_key="NO", title_field="JUDUL"),
    }


class DatastoreConfig(BaseModel):
    """Cache and synchronization settings."""
    ttl_seconds: float = 300.0
    batch_size: int = 1000
    id_field: str = "id"
    request_timeout_seconds: float = 30.0
    collections: dict[str, CollectionConfig] = Field(default_factory=_default_collections)

    @field_validator("batch_size")
    @classmethod
    def _positive_batch(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("batch_size must be positive")
        return value

    @field_validator("ttl_seconds")
    @classmethod
    def _non_negative_ttl(cls, value: float) -> float:
        if value < 0:
            raise ValueError("ttl_seconds must not be negative")
        return value


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class DashboardConfig(BaseModel):
    """The full configuration file."""
    datastore: DatastoreConfig = Field(default_factory=DatastoreConfig)
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DashboardConfig":
        """
        Validate a raw config dict.

        Raises:
            ConfigError: A section has invalid values
        """
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(config_path: Optional[Union[str, Path]] = None) -> DashboardConfig:
    """
    Load configuration from YAML.

    A missing or unreadable file yields the defaults. A file that parses but
    holds invalid values raises ConfigError.

    Args:
        config_path: Path to config file. If None, uses config.yaml at the repo root
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (FileNotFoundError, yaml.YAMLError) as e:
        log.warning("datastore.config.load_failed", config_path=str(path), error=str(e))
        return DashboardConfig()

    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return DashboardConfig.from_dict(raw)
