"""Exceptions raised by the datastore."""

from typing import Optional


class StoreError(Exception):
    """Raised when a remote store call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class SyncError(Exception):
    """
    Raised when a full-table synchronization fails.

    The cache for the collection is left at its last-known-good state.
    """

    def __init__(self, collection: str, cause: Optional[BaseException] = None):
        self.collection = collection
        self.cause = cause
        super().__init__(f"Synchronization of {collection} failed: {cause}")


class UnknownCollectionError(KeyError):
    """Raised when a collection name is not configured."""

    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(collection)

    def __str__(self) -> str:
        return f"Unknown collection: {self.collection}"


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""
    pass
