"""
Structured errors shared by the store, the API client and the resolver.

Every failure carries a machine-readable code and a derived retryable flag,
and renders as a single line for display.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from ecosystems_lookup.domain.registries import supported_ecosystems


class ErrorCode(str, Enum):
    # Client errors
    INVALID_ECOSYSTEM = "INVALID_ECOSYSTEM"
    INVALID_INPUT = "INVALID_INPUT"
    PACKAGE_NOT_FOUND = "PACKAGE_NOT_FOUND"

    # Server errors
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Upstream errors
    API_ERROR = "API_ERROR"
    API_TIMEOUT = "API_TIMEOUT"
    API_UNAVAILABLE = "API_UNAVAILABLE"


_HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_ECOSYSTEM: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.PACKAGE_NOT_FOUND: 404,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.API_ERROR: 502,
    ErrorCode.API_TIMEOUT: 504,
    ErrorCode.API_UNAVAILABLE: 503,
}


class EcosystemsError(Exception):
    """Base exception for every lookup failure."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        """
        Args:
            code: Failure kind.
            message: Human-readable message.
            details: Extra context such as the upstream URL (optional).
            status_code: Upstream HTTP status for API errors (optional).
        """
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether re-issuing the same call may succeed."""
        if self.code in (ErrorCode.API_TIMEOUT, ErrorCode.API_UNAVAILABLE):
            return True
        if self.code == ErrorCode.API_ERROR and self.status_code is not None:
            return self.status_code >= 500 or self.status_code == 429
        return False

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }

    def __str__(self) -> str:
        text = f"[{self.code.value}] {self.message}"
        if self.details:
            text += f" ({self.details})"
        if self.retryable:
            text += " - may retry"
        return text


def invalid_ecosystem(ecosystem: Optional[str]) -> EcosystemsError:
    return EcosystemsError(
        ErrorCode.INVALID_ECOSYSTEM,
        f"Unknown ecosystem: {ecosystem}",
        "Supported: " + ", ".join(supported_ecosystems()),
    )


def invalid_input(message: str) -> EcosystemsError:
    return EcosystemsError(ErrorCode.INVALID_INPUT, message)


def package_not_found(identifier: str) -> EcosystemsError:
    return EcosystemsError(ErrorCode.PACKAGE_NOT_FOUND, f"Package not found: {identifier}")


def database_error(message: str) -> EcosystemsError:
    return EcosystemsError(ErrorCode.DATABASE_ERROR, f"Database error: {message}")


def internal_error(message: str) -> EcosystemsError:
    return EcosystemsError(ErrorCode.INTERNAL_ERROR, f"Internal error: {message}")


def api_error(status_code: int, reason: str, url: str) -> EcosystemsError:
    return EcosystemsError(
        ErrorCode.API_ERROR,
        f"API error: {status_code} {reason}".rstrip(),
        url,
        status_code=status_code,
    )


def invalid_response(status_code: int, url: str) -> EcosystemsError:
    return EcosystemsError(
        ErrorCode.API_ERROR,
        "API returned a response that is not valid JSON",
        url,
        status_code=status_code,
    )


def api_timeout(url: str, timeout: float) -> EcosystemsError:
    return EcosystemsError(
        ErrorCode.API_TIMEOUT,
        f"API request timed out after {timeout}s",
        f"{url}, timeout={timeout}s",
    )


def api_unavailable(url: str, reason: str) -> EcosystemsError:
    return EcosystemsError(
        ErrorCode.API_UNAVAILABLE,
        f"API unavailable: {reason}",
        url,
    )
