"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.

Business outcomes (unknown note id, empty content, archiving a note that is
already archived) are return values, not exceptions. These classes cover
the failures that must reach the caller.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class DatabaseError(ApplicationError):
    """Raised when a note store operation fails."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message, code="SYS_DATABASE_ERROR")


class MirrorError(ApplicationError):
    """Raised when the companion mirror storage cannot be read or written."""

    def __init__(self, message: str = "Mirror storage error") -> None:
        super().__init__(message, code="SYS_MIRROR_ERROR")


class ConfigurationError(ApplicationError):
    """Raised when a configuration file is missing keys or has bad values."""

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(message, code="SYS_CONFIGURATION_ERROR")
