"""
Custom exceptions for storage layer.

Each error carries the HTTP status the API layer answers with, so callers
classify failures by type instead of parsing messages.
"""


class StorageError(Exception):
    """Base exception for all storage errors."""

    status_code = 500


class DatabaseUnavailableError(StorageError):
    """Raised when database connection is not available."""

    status_code = 503

    def __init__(self, operation: str = "database operation"):
        self.operation = operation
        super().__init__(
            f"Database not available for {operation}. "
            "Check database connection and initialization."
        )


class DatabaseOperationError(StorageError):
    """Raised when a database operation fails."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Database operation '{operation}' failed: {cause}")


class ValidationError(StorageError):
    """Malformed or missing input (email, password, date range...)."""

    status_code = 400


class UnauthorizedError(StorageError):
    """Credentials did not match."""

    status_code = 401


class PermissionDeniedError(StorageError):
    """Caller lacks the admin flag required for the action."""

    status_code = 403


class NotFoundError(StorageError):
    """Requested record does not exist."""

    status_code = 404


class UserNotFoundError(NotFoundError):
    """Raised when a user is not found."""

    def __init__(self, user_ref: str):
        self.user_ref = user_ref
        super().__init__(f"User not found: {user_ref}")


class ConversationNotFoundError(NotFoundError):
    """Raised when no conversation matches a lookup."""


class ConflictError(StorageError):
    """Unique constraint violated (duplicate email)."""

    status_code = 409
