"""Exceptions raised by the analytics engine and its data-access boundary.

Empty result sets are never errors; these cover the cases where a report
cannot be produced at all.
"""
from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base class for all errors surfaced by the reporting pipeline."""

    code = "ANALYTICS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Machine-readable error payload for API responses."""
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(AnalyticsError):
    """Unknown student (or other record) id."""

    code = "NOT_FOUND"


class AuthorizationError(AnalyticsError):
    """The data-access collaborator refused access to a student's records."""

    code = "FORBIDDEN"


class DataUnavailableError(AnalyticsError):
    """The record snapshot could not be fetched. Never retried here."""

    code = "DATA_UNAVAILABLE"


class InvalidDateRangeError(AnalyticsError, ValueError):
    """A custom date range was missing a bound or had start after end."""

    code = "INVALID_DATE_RANGE"
