"""
Domain exceptions raised by the services.

Each carries the HTTP status code the routers translate it into, so the
services stay free of FastAPI imports and the client can reuse the guards.
"""


class ServiceError(Exception):
    """Base class for errors with a user-facing message and status code."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class AuthError(ServiceError):
    """Authentication error."""

    status_code = 401


class ReportError(ServiceError):
    """Base class for report errors."""


class InvalidReportError(ReportError):
    status_code = 400


class ReportNotFoundError(ReportError):
    status_code = 404


class PermissionDeniedError(ReportError):
    status_code = 403


class DuplicateReportError(ReportError):
    """Another open report already covers this spot."""

    status_code = 409


class InvalidStatusTransitionError(ReportError):
    """Status would move backwards or stay the same."""

    status_code = 409


class RateLimitExceededError(ReportError):
    """Submitter exceeded the hourly report allowance."""

    status_code = 429
