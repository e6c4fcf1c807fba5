"""
Custom exception classes for the application.

Every failure the broadcast pipeline can hit is an AppException. The FastAPI
exception handlers in voicebr.main map them to the few status codes the voice
platform is allowed to see (400, 401, 500).
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConfigurationError(AppException):
    """Raised when required settings are missing or unusable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class AuthenticationError(AppException):
    """Raised when a caller cannot be authenticated."""

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class UnauthorizedCallerError(AuthenticationError):
    """Raised when the inbound caller is missing or not whitelisted."""

    def __init__(self, caller: str | None = None, message: str | None = None) -> None:
        self.caller = caller
        super().__init__(
            message or f"number {caller!r} cannot broadcast",
            "UNAUTHORIZED_CALLER",
            {"caller": caller},
        )


class PayloadDecodeError(AppException):
    """Raised when a webhook body cannot be decoded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "PAYLOAD_DECODE_ERROR", details)


class DirectoryDecodeError(AppException):
    """Raised when a contact directory cannot be decoded at all."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "DIRECTORY_DECODE_ERROR", details)


class PartialDirectoryError(AppException):
    """Signals that some contact rows were discarded while decoding.

    Never raised by the decoder itself: it is attached to the decoded
    directory so callers can decide whether the valid subset is enough.
    """

    def __init__(self, rejected: list[Any]) -> None:
        self.rejected = rejected
        super().__init__(
            "contacts file contains corrupted data, thus the result could be partial",
            "PARTIAL_DIRECTORY",
            {"rejected_rows": len(rejected)},
        )


class TransportError(AppException):
    """Raised when an outbound request to the voice platform fails."""

    def __init__(
        self,
        message: str,
        code: str = "TRANSPORT_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class RequestFailedError(TransportError):
    """Raised when the voice platform answers with a non-success status."""

    def __init__(self, status_code: int, status_text: str, url: str | None = None) -> None:
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(
            f"request failed: {status_text}",
            "REQUEST_FAILED",
            {"status_code": status_code, "url": url},
        )


class SigningKeyError(TransportError):
    """Raised when no usable signing key is available."""

    def __init__(self, message: str = "no signing key configured") -> None:
        super().__init__(message, "SIGNING_KEY_ERROR")


class RateLimitTimeoutError(TransportError):
    """Raised when a rate limiter token cannot be granted before the deadline."""

    def __init__(self, message: str = "rate limiter: deadline exceeded") -> None:
        super().__init__(message, "RATE_LIMIT_TIMEOUT")


class PayloadEncodeError(TransportError):
    """Raised when an outbound request body cannot be encoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "PAYLOAD_ENCODE_ERROR")


class StorageError(AppException):
    """Raised when a recording or contact file cannot be read or written."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "STORAGE_ERROR", details)
