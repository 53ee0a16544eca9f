"""
Discovery error types.

Every failure of a discovery operation is a :class:`DiscoveryError` carrying a
:class:`StatusCategory`, which the HTTP layer maps to a status code.
"""

from __future__ import annotations

from enum import Enum


class StatusCategory(str, Enum):
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    UNPROCESSABLE = "unprocessable"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def error_type(self) -> str:
        """Prometheus API `errorType` for this category."""
        if self in (StatusCategory.BAD_REQUEST, StatusCategory.UNPROCESSABLE):
            return "bad_data"
        return self.value


_HTTP_STATUS = {
    StatusCategory.UNAUTHORIZED: 401,
    StatusCategory.BAD_REQUEST: 400,
    StatusCategory.UNPROCESSABLE: 422,
    StatusCategory.INTERNAL: 500,
}


class DiscoveryError(Exception):
    """Base class for errors surfaced by discovery operations."""

    default_category = StatusCategory.INTERNAL

    def __init__(self, message: str, category: StatusCategory | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category


class AuthMissingError(DiscoveryError):
    """No READ token was supplied."""

    default_category = StatusCategory.UNAUTHORIZED


class MatcherSyntaxError(DiscoveryError):
    """A match[] expression could not be parsed."""

    default_category = StatusCategory.BAD_REQUEST


class ValidationError(DiscoveryError):
    """The request violates an endpoint policy (missing or too short matchers)."""

    default_category = StatusCategory.BAD_REQUEST


class BackendError(DiscoveryError):
    """The Warp 10 lookup failed."""

    default_category = StatusCategory.INTERNAL
