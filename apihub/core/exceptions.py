"""Custom exception types and error codes."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Codes returned to the dashboard alongside failed site operations."""

    CHECKIN_FAILED = "CHECKIN_FAILED"
    SITE_INVALID_CREDENTIALS = "SITE_INVALID_CREDENTIALS"
    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class SiteAdapterError(Exception):
    """Raised when a remote site interaction cannot produce a usable result."""

    def __init__(self, site: str, message: str = "Site request failed") -> None:
        super().__init__(message)
        self.site = site
        self.message = message


class TransportFailure(SiteAdapterError):
    """Network-level error, timeout, or non-2xx HTTP response."""

    def __init__(
        self,
        site: str,
        message: str = "Site request failed",
        status_code: int | None = None,
    ) -> None:
        super().__init__(site, message=message)
        self.status_code = status_code


class NormalizationFailure(SiteAdapterError):
    """Response body was not decodable JSON or had an unexpected shape."""

    def __init__(self, site: str, message: str | None = None) -> None:
        super().__init__(site, message=message or "Unexpected response format")


class UnsuccessfulRemote(SiteAdapterError):
    """Well-formed response whose ``success`` flag was not true."""

    def __init__(self, site: str, message: str | None = None) -> None:
        super().__init__(site, message=message or "Site returned an unsuccessful result")
