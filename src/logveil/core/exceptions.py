"""
Custom exceptions for the LogVeil relay.

Every error carries a stable error code and structured details so the
entry point and the pump can log it without string matching.
"""

from typing import Any, Dict, Optional


class LogVeilException(Exception):
    """Base exception for the LogVeil relay."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ParseError(LogVeilException):
    """Raised when an input line does not carry the seven expected fields."""

    def __init__(self, message: str = "Malformed log line", field_count: int = 0) -> None:
        super().__init__(
            message=message,
            error_code="malformed",
            details={"field_count": field_count},
        )


class MissingSecretError(LogVeilException):
    """Raised when no secret is configured in high assurance mode."""

    def __init__(self, message: str = "Secret is not set, refusing to pseudonymize") -> None:
        super().__init__(
            message=message,
            error_code="missing_secret",
        )


class InputStreamError(LogVeilException):
    """Raised when the input stream cannot be opened."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="input_unavailable",
            details=details,
        )


class OutputTargetError(LogVeilException):
    """Raised when the tracked or untracked sink cannot be opened."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="output_unavailable",
            details=details,
        )


class OutputWriteError(LogVeilException):
    """Raised when a write, flush or fsync against a sink fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="write_failed",
            details=details,
        )
