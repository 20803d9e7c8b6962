# exceptions.py — Error taxonomy for the analytics service
# Each error carries the HTTP status and the public "error" label used in the
# response envelope: {"error": str, "message"?: str}.
from typing import Optional


class AnalyticsError(Exception):
    """Base class for errors raised by the analytics service."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


class AuthorizationError(AnalyticsError):
    """Caller lacks the role required by the route."""

    status_code = 403
    error = "Forbidden"


class DataAccessError(AnalyticsError):
    """The task store failed or rejected a query."""

    status_code = 400
    error = "Database error"


class ComputationError(AnalyticsError):
    """Unexpected fault while aggregating; the cause is logged, never returned."""

    status_code = 500
    error = "Internal server error"

    def to_dict(self) -> dict:
        return {"error": self.error}
