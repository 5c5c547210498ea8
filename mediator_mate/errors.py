"""
Shared error types.

Kept in one module so the store, the chat proxy and the API handlers all
raise and catch the same classes.
"""

from typing import Any, Dict, List, Optional


class MediatorMateError(Exception):
    """Base class for all service errors."""


# =============================================================================
# Store errors
# =============================================================================

class StoreError(MediatorMateError):
    """Base class for record store errors."""


class StorageError(StoreError):
    """Raised when the storage engine fails (unavailable, locked, full)."""

    def __init__(self, store: str, operation: str, reason: str = ""):
        self.store = store
        self.operation = operation
        self.reason = reason
        message = f"Storage unavailable: could not {operation} {store}"
        super().__init__(message)


class UnknownStoreError(StoreError):
    """Raised for a store name that is not part of the schema."""

    def __init__(self, store: str):
        self.store = store
        super().__init__(f"Unknown store: {store}")


class UnknownIndexError(StoreError):
    def __init__(self, store: str, index: str):
        self.store = store
        self.index = index
        super().__init__(f"Store {store} has no index {index!r}")


class RecordNotFoundError(StoreError):
    def __init__(self, store: str, record_id: str):
        self.store = store
        self.record_id = record_id
        super().__init__(f"No record {record_id!r} in {store}")


class DuplicateRecordError(StoreError):
    def __init__(self, store: str, record_id: str):
        self.store = store
        self.record_id = record_id
        super().__init__(f"Record {record_id!r} already exists in {store}")


class RecordValidationError(StoreError):
    """
    Raised when a record does not match its closed schema.

    `errors` maps wire field names to messages.
    """

    def __init__(self, store: str, errors: Dict[str, str]):
        self.store = store
        self.errors = errors
        fields = ", ".join(sorted(errors)) or "record"
        super().__init__(f"Invalid {store} record: {fields}")


# =============================================================================
# Chat errors
# =============================================================================

class ChatError(MediatorMateError):
    """Base class for chat proxy errors. `status_code` is the HTTP status to return."""

    status_code = 500

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ChatRequestError(ChatError):
    """Malformed chat request (missing or invalid messages)."""

    status_code = 400


class ChatConfigurationError(ChatError):
    """Completion API credential is missing."""

    status_code = 500


class UpstreamChatError(ChatError):
    """Completion API failed or returned an unusable response."""

    status_code = 500
