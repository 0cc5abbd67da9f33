"""
Plugin Registry Exceptions

Error taxonomy surfaced by every plugin store and by the module integrity
service. Storage adapters translate backend-native errors into these types
at their boundary, so callers never inspect driver-specific exceptions.

Exception Hierarchy:
    RegistryError (base)
    +-- PluginNotFoundError: Entity missing by id or name
    +-- PluginConflictError: Uniqueness violation on create/update
    +-- StoreUnavailableError: Backend unreachable or timed out (retryable)
    |   +-- ReadOnlyStoreError: Mutation attempted on a read-only store
    |   +-- UpstreamUnavailableError: Module archive could not be fetched
    +-- InternalStoreError: Encoding/decoding defects, unexpected backend shape
        +-- InvalidCursorError: Malformed or tampered pagination token

Usage:
    from plugin_registry.exceptions import PluginNotFoundError, RegistryError

    try:
        plugin = await store.get_by_name(name)
    except PluginNotFoundError:
        ...
    except RegistryError as e:
        logger.error(f"Store operation failed: {e}")
"""

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """
    Base exception for all plugin registry errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error (optional).
        retryable: Whether the caller may retry the operation as-is.
    """

    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the registry error.

        Args:
            message: Human-readable error description.
            details: Additional context about the error.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary containing error type, message, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


class PluginNotFoundError(RegistryError):
    """
    Raised when a plugin or plugin hash does not exist.

    Attributes:
        key: The id or name that was looked up.
    """

    def __init__(self, key: str, message: Optional[str] = None) -> None:
        self.key = key
        super().__init__(
            message=message or f"Not found: {key}",
            details={"key": key},
        )


class PluginConflictError(RegistryError):
    """
    Raised when a write would violate a uniqueness constraint.

    Attributes:
        key: The conflicting unique value (plugin name or hash name).
    """

    def __init__(self, key: str, message: Optional[str] = None) -> None:
        self.key = key
        super().__init__(
            message=message or f"Already exists: {key}",
            details={"key": key},
        )


class StoreUnavailableError(RegistryError):
    """Raised when the backend cannot be reached or the operation timed out."""

    retryable = True


class ReadOnlyStoreError(StoreUnavailableError):
    """
    Raised for every mutating call on a read-only store.

    Distinguishable from an outage by type; it is never worth retrying.
    """

    retryable = False

    def __init__(self, operation: str, backend: str) -> None:
        self.operation = operation
        self.backend = backend
        super().__init__(
            message=f"{backend} is a read-only store: {operation} is not supported",
            details={"operation": operation, "backend": backend},
        )


class UpstreamUnavailableError(StoreUnavailableError):
    """
    Raised when a module archive cannot be fetched from its upstream source.

    Attributes:
        module: Module path being fetched.
        version: Module version being fetched.
        status_code: Upstream HTTP status, when a response was received.
    """

    def __init__(
        self,
        message: str,
        module: str,
        version: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.module = module
        self.version = version
        self.status_code = status_code
        super().__init__(
            message=message,
            details={"module": module, "version": version, "status_code": status_code},
        )


class InternalStoreError(RegistryError):
    """Raised on serialization defects or unexpected backend data."""


class InvalidCursorError(InternalStoreError):
    """Raised when a pagination token cannot be decoded."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            message=f"Invalid pagination token: {reason}",
            details={"reason": reason},
        )
