from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    FETCH_FAILED = "FETCH_FAILED"
    FETCH_TIMEOUT = "FETCH_TIMEOUT"
    HTTP_CLIENT_ERROR = "HTTP_CLIENT_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    SITEMAP_FAILED = "SITEMAP_FAILED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    FALLBACK_FAILED = "FALLBACK_FAILED"
    QUEUE_CLEARED = "QUEUE_CLEARED"


class PageSchemaError(Exception):
    """Raised for all expected failure conditions.

    The generator catches this at its boundary and turns it into a
    ``GenerationFailure`` result, so callers of ``generate_from_url`` never
    see it. Lower-level components (fetcher, recovery, rate limiter) let it
    propagate.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class CircuitOpenError(PageSchemaError):
    """Raised by an open circuit breaker without invoking the wrapped call."""

    def __init__(self, message: str = "Circuit breaker is open") -> None:
        super().__init__(
            code=ErrorCode.CIRCUIT_OPEN,
            message=message,
            suggestion="Wait for the reset timeout before calling again.",
            recoverable=True,
        )


class FallbackError(PageSchemaError):
    """Raised when both the primary call and its fallback fail."""

    def __init__(self, primary: BaseException, fallback: BaseException) -> None:
        super().__init__(
            code=ErrorCode.FALLBACK_FAILED,
            message=f"Both primary and fallback failed: {primary}, {fallback}",
            suggestion="Inspect the primary and fallback errors.",
            recoverable=False,
        )
        self.primary = primary
        self.fallback = fallback
