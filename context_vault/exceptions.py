"""
Custom exceptions for the context vault.

Storage, sync and recovery code raise these exceptions so callers can
handle failures consistently regardless of which layer produced them.
"""


class VaultError(Exception):
    """Base exception for all context vault errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageIOError(VaultError):
    """Raised when a storage operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class StorageConnectionError(VaultError):
    """Raised when the vault database cannot be opened or initialized.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, path: str, cause: Exception | None = None):
        details = {"path": path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not open vault database at {path}", details)
        self.path = path
        self.cause = cause


class StorageContentionError(VaultError):
    """Raised when another writer holds the vault's write lock.

    The core never retries; retry policy belongs to the caller.
    """

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Write lock held by another writer during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class QuerySyntaxError(VaultError):
    """Raised when a full-text query cannot be parsed by the search index."""

    def __init__(self, query: str, reason: str):
        super().__init__(
            f"Invalid search query {query!r}: {reason}",
            {"query": query, "reason": reason},
        )
        self.query = query
        self.reason = reason


class TranscriptReadError(VaultError):
    """Raised when a whole transcript file cannot be read."""

    def __init__(self, path: str, cause: Exception | None = None):
        details = {"path": path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not read transcript: {path}", details)
        self.path = path
        self.cause = cause


class ValidationError(VaultError):
    """Raised when data validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class ConfigurationError(VaultError):
    """Raised when vault configuration is invalid."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Invalid configuration for {key}: {reason}", {"key": key, "reason": reason})
        self.key = key
        self.reason = reason
