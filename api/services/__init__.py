"""Services module."""
from api.services.errors import (
    AuthError,
    DuplicateReportError,
    InvalidReportError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
    RateLimitExceededError,
    ReportError,
    ReportNotFoundError,
    ServiceError,
)

__all__ = [
    "ServiceError",
    "AuthError",
    "ReportError",
    "InvalidReportError",
    "ReportNotFoundError",
    "PermissionDeniedError",
    "DuplicateReportError",
    "InvalidStatusTransitionError",
    "RateLimitExceededError",
]
