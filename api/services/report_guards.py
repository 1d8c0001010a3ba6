"""
Guards applied before a report is written.

These are plain functions over lists of reports so that the API and the
command line client run exactly the same checks. The API is authoritative;
the client runs them first to fail fast without a round trip.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from api.models.report_models import ANONYMOUS_USER_PREFIX, Location, Report, ReportStatus
from api.models.user_models import Role
from api.services.errors import (
    AuthError,
    DuplicateReportError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
    RateLimitExceededError,
)
from api.utils.geo_utils import find_within_radius

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=1)


def find_nearby_reports(
    reports: Iterable[Report],
    location: Location,
    now: datetime,
    radius_meters: float,
    window: timedelta,
) -> List[Report]:
    """
    Find open reports near a location that were created within the window.

    Collected reports never block a new one: once the waste is gone the
    same spot can be reported again.
    """
    since = now - window
    candidates = [
        r for r in reports
        if r.status != ReportStatus.COLLECTED and r.created_at >= since
    ]
    return find_within_radius(candidates, location.lat, location.lng, radius_meters)


def check_spam_radius(
    reports: Iterable[Report],
    location: Location,
    now: datetime,
    radius_meters: float,
    window: timedelta,
) -> None:
    """
    Raise DuplicateReportError if an open report lies within the radius.
    """
    nearby = find_nearby_reports(reports, location, now, radius_meters, window)
    if nearby:
        logger.info(
            f"Rejected report at ({location.lat:.6f}, {location.lng:.6f}): "
            f"{len(nearby)} open report(s) within {radius_meters:g} m, first {nearby[0].id}"
        )
        raise DuplicateReportError(
            f"There is already a report within {radius_meters:g} meters of this location"
        )


def count_recent_reports(
    reports: Iterable[Report],
    user_id: str,
    now: datetime,
    window: timedelta = RATE_LIMIT_WINDOW,
) -> int:
    """
    Count the reports a user created within the window before now.

    Submitters without an account (``anon-`` ids) are counted as one.
    """
    since = now - window
    anonymous = user_id.startswith(ANONYMOUS_USER_PREFIX)
    return sum(
        1 for r in reports
        if r.created_at > since
        and (r.user_id.startswith(ANONYMOUS_USER_PREFIX) if anonymous else r.user_id == user_id)
    )


def check_rate_limit(
    reports: Iterable[Report],
    user_id: str,
    now: datetime,
    max_per_hour: int,
) -> None:
    """
    Raise RateLimitExceededError if the user already hit the hourly maximum.
    """
    recent = count_recent_reports(reports, user_id, now)
    if recent >= max_per_hour:
        logger.info(f"Rate limit hit for user {user_id}: {recent} reports in the last hour")
        raise RateLimitExceededError(
            f"You can submit at most {max_per_hour} reports per hour, please try again later"
        )


def check_can_change_status(role: Optional[Role]) -> None:
    """
    Only workers and admins may move a report through the pipeline.

    Raises:
        AuthError: No role information at all
        PermissionDeniedError: Role is not elevated
    """
    if role is None:
        raise AuthError("Authentication required to change a report status")
    if not Role(role).is_elevated:
        raise PermissionDeniedError("Only workers and admins can change a report status")


def check_status_transition(current: ReportStatus, new: ReportStatus) -> None:
    """
    Status only moves forward: reported -> in_progress -> collected.

    Skipping in_progress is allowed; going back or repeating is not.
    """
    if new.rank <= current.rank:
        raise InvalidStatusTransitionError(
            f"Cannot change status from {current.value} to {new.value}"
        )
