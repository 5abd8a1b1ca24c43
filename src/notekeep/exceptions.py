"""Custom exceptions for the notekeep client.

Provides a structured exception hierarchy with error codes and
machine-readable error information. None of these are fatal: every
error is reported to the caller, which decides what to show the user.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Undo errors (8xxx)
    NO_PENDING_DELETE = 8001


class NotekeepError(Exception):
    """Base exception for all notekeep errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteNotFoundError(NotekeepError):
    """Raised when an operation references a note that is not in the store."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class NoteValidationError(NotekeepError):
    """Raised when a draft or patch fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=ErrorCode.NOTE_VALIDATION_FAILED, details=details)
        self.field = field
        self.value = value


class PersistenceError(NotekeepError):
    """Raised when the underlying durable storage fails.

    Never retried automatically; the store is left exactly as it was
    before the failed call.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        note_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if note_id:
            details["note_id"] = note_id
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.note_id = note_id
        self.original_error = original_error


class NoPendingDeleteError(NotekeepError):
    """Raised when undo is requested but nothing is waiting to be restored."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "No recently deleted note to restore",
            code=ErrorCode.NO_PENDING_DELETE,
        )


class ConfigurationError(NotekeepError):
    """Raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=ErrorCode.CONFIG_INVALID, details=details)
        self.config_key = config_key
