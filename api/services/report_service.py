"""
Report service: listing, submission, status changes and removal of reports.

Reports are stored whole under ``report:<epoch_ms>-<random>`` and every
query is a prefix scan followed by in-memory filtering, which is plenty for
the size of a single municipality.
"""

import base64
import binascii
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from pydantic import ValidationError

from api.config.settings import AppSettings, get_settings
from api.database.repositories.kv_store import KVStoreRepository
from api.models.report_models import (
    ANONYMOUS_USER_NAME,
    ANONYMOUS_USER_PREFIX,
    REPORT_KEY_PREFIX,
    Location,
    Report,
    ReportCreate,
    ReportListItem,
    ReportSort,
    ReportStatus,
    normalize_report_key,
)
from api.models.user_models import Role, UserRecord
from api.services.errors import (
    InvalidReportError,
    PermissionDeniedError,
    ReportNotFoundError,
)
from api.services.report_guards import (
    check_can_change_status,
    check_rate_limit,
    check_spam_radius,
    check_status_transition,
)
from api.utils.geo_utils import calculate_distance_meters
from api.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _timestamped_id(prefix: str, now: Optional[datetime]) -> str:
    now = now or utc_now()
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}{millis}-{suffix}"


def generate_report_id(now: Optional[datetime] = None) -> str:
    """
    Build a new report key: epoch milliseconds plus 9 random base36 chars.
    """
    return _timestamped_id(REPORT_KEY_PREFIX, now)


def generate_anonymous_user_id(now: Optional[datetime] = None) -> str:
    """Placeholder submitter id for reports sent without an account."""
    return _timestamped_id(ANONYMOUS_USER_PREFIX, now)


def photo_size_bytes(photo: str) -> int:
    """
    Decoded size of an inline photo.

    Accepts a data URL (``data:image/jpeg;base64,...``) or bare base64.

    Raises:
        InvalidReportError: If the payload is not valid base64
    """
    payload = photo
    if photo.startswith("data:"):
        _, sep, payload = photo.partition(",")
        if not sep:
            raise InvalidReportError("Photo data URL has no payload")
    try:
        return len(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError):
        raise InvalidReportError("Photo must be a base64 encoded image")


def filter_reports(
    reports: Iterable[Report],
    status: Optional[ReportStatus] = None,
    report_type: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Report]:
    """Apply the list filters; search matches address or type, case-insensitive."""
    result = list(reports)
    if status is not None:
        result = [r for r in result if r.status == status]
    if report_type:
        result = [r for r in result if r.type == report_type]
    if search:
        needle = search.strip().lower()
        result = [
            r for r in result
            if needle in r.address.lower() or needle in r.type.lower()
        ]
    return result


def hide_anonymous_owner(report: Report, viewer: Optional[UserRecord]) -> Report:
    """
    Blank the owner id of an anonymous report unless the viewer is its
    owner or staff. Placeholder ``anon-`` ids name no account and stay.
    """
    if report.user_name != ANONYMOUS_USER_NAME or report.user_id.startswith(ANONYMOUS_USER_PREFIX):
        return report
    if viewer is not None and (viewer.id == report.user_id or viewer.role.is_elevated):
        return report
    return report.model_copy(update={"user_id": ""})


class ReportService:
    """Service for report operations."""

    def __init__(self, store: KVStoreRepository, settings: Optional[AppSettings] = None):
        """
        Initialize report service.

        Args:
            store: Key-value store repository
            settings: Guard thresholds, defaults to the global settings
        """
        self.store = store
        self.settings = settings or get_settings()

    async def get_all_reports(self) -> List[Report]:
        """All stored reports, newest first."""
        documents = await self.store.get_by_prefix(REPORT_KEY_PREFIX)
        reports = []
        for doc in documents:
            try:
                reports.append(Report.model_validate(doc))
            except ValidationError as e:
                # A malformed document must not hide every other report
                logger.warning(f"Skipping malformed report {doc.get('id', '?')}: {e}")
        reports.sort(key=lambda r: r.created_at, reverse=True)
        return reports

    async def get_report(self, report_id: str) -> Report:
        """
        Get a single report.

        Raises:
            ReportNotFoundError: If no report is stored under the id
        """
        doc = await self.store.get(normalize_report_key(report_id))
        if not doc:
            raise ReportNotFoundError("Report not found")
        return Report.model_validate(doc)

    async def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        report_type: Optional[str] = None,
        search: Optional[str] = None,
        near: Optional[Location] = None,
        radius_km: Optional[float] = None,
        sort: ReportSort = ReportSort.DATE_DESC,
    ) -> List[ReportListItem]:
        """
        List reports with optional filters.

        Args:
            status: Only reports in this status
            report_type: Only reports of this type
            search: Text matched against address and type
            near: Reference point; adds distanceKm to every item
            radius_km: With ``near``, drop reports further away than this
            sort: date-desc (default), date-asc or distance

        Returns:
            Matching reports
        """
        reports = filter_reports(
            await self.get_all_reports(), status=status, report_type=report_type, search=search
        )

        items = []
        for report in reports:
            item = ReportListItem.model_validate(report.model_dump())
            if near is not None:
                meters = calculate_distance_meters(
                    near.lat, near.lng, report.location.lat, report.location.lng
                )
                if radius_km is not None and meters > radius_km * 1000:
                    continue
                item.distance_km = round(meters / 1000, 3)
            items.append(item)

        if sort == ReportSort.DATE_ASC:
            items.sort(key=lambda r: r.created_at)
        elif sort == ReportSort.DISTANCE and near is not None:
            items.sort(key=lambda r: r.distance_km)
        return items

    async def list_user_reports(self, user_id: str) -> List[Report]:
        """Reports submitted by one user, newest first."""
        return [r for r in await self.get_all_reports() if r.user_id == user_id]

    async def create_report(
        self,
        payload: ReportCreate,
        user: Optional[UserRecord],
        now: Optional[datetime] = None,
    ) -> Report:
        """
        Submit a new report.

        The server assigns id, status and creation time, then runs the
        anti-spam and rate limit guards against the stored reports. Without
        a user the report gets an ``anon-`` submitter id and all such
        submitters share one hourly allowance.

        Raises:
            InvalidReportError: Photo too large or not base64
            DuplicateReportError: Open report within the spam radius
            RateLimitExceededError: Hourly maximum reached
        """
        now = now or utc_now()

        if payload.photo:
            size = photo_size_bytes(payload.photo)
            if size > self.settings.max_photo_bytes:
                limit_mb = self.settings.max_photo_bytes / (1024 * 1024)
                raise InvalidReportError(f"Photo is too large, maximum is {limit_mb:g} MB")

        if user is None:
            user_id = generate_anonymous_user_id(now)
            user_name = ANONYMOUS_USER_NAME
        else:
            user_id = user.id
            user_name = ANONYMOUS_USER_NAME if payload.anonymous else user.name

        existing = await self.get_all_reports()
        check_spam_radius(
            existing,
            payload.location,
            now,
            self.settings.spam_radius_meters,
            timedelta(hours=self.settings.spam_window_hours),
        )
        check_rate_limit(existing, user_id, now, self.settings.max_reports_per_hour)

        report = Report(
            id=generate_report_id(now),
            type=payload.type,
            description=payload.description,
            location=payload.location,
            address=payload.address,
            photo=payload.photo,
            user_id=user_id,
            user_name=user_name,
            status=ReportStatus.REPORTED,
            created_at=now,
        )
        await self.store.set(report.id, report.to_document())

        logger.info(
            f"Report created by {user.email if user else user_id}: id={report.id}, "
            f"type={report.type}, anonymous={payload.anonymous or user is None}"
        )
        return report

    async def update_status(
        self,
        report_id: str,
        new_status: ReportStatus,
        user: Optional[UserRecord],
        now: Optional[datetime] = None,
    ) -> Report:
        """
        Move a report forward through the pipeline.

        Concurrent changes are not coordinated; the last write wins.

        Raises:
            AuthError: No user
            PermissionDeniedError: User is not a worker or admin
            ReportNotFoundError: Unknown report
            InvalidStatusTransitionError: Backwards or repeated status
        """
        check_can_change_status(user.role if user else None)

        report = await self.get_report(report_id)
        check_status_transition(report.status, new_status)

        updated = report.model_copy(update={
            "status": new_status,
            "updated_at": now or utc_now(),
            "updated_by": user.name or user.email,
        })
        await self.store.set(updated.id, updated.to_document())

        logger.info(
            f"Report {updated.id} status {report.status.value} -> {new_status.value} "
            f"by {user.email}"
        )
        return updated

    async def delete_report(self, report_id: str, user: UserRecord) -> None:
        """
        Remove a report. Accepts the id with or without the ``report:`` prefix.

        Raises:
            PermissionDeniedError: User is not an admin
            ReportNotFoundError: Nothing stored under the id
        """
        if user.role != Role.ADMIN:
            raise PermissionDeniedError("Only admins can delete reports")

        key = normalize_report_key(report_id)
        if not await self.store.delete(key):
            raise ReportNotFoundError("Report not found")

        logger.info(f"Report {key} deleted by {user.email}")

    async def load_sample_data(self, documents: List[dict], user: UserRecord) -> int:
        """
        Store a batch of prepared reports.

        Ids are normalised to the ``report:`` prefix and generated when
        missing; existing reports with the same id are replaced. The guards
        do not apply, the batch is trusted admin input.

        Returns:
            Number of reports stored

        Raises:
            InvalidReportError: Empty batch or a malformed report
            PermissionDeniedError: User is not an admin
        """
        if user.role != Role.ADMIN:
            raise PermissionDeniedError("Only admins can load sample data")
        if not documents:
            raise InvalidReportError("No sample reports provided")

        now = utc_now()
        batch = {}
        for index, doc in enumerate(documents):
            doc = dict(doc)
            if not doc.get("id"):
                doc["id"] = generate_report_id(now)
            elif isinstance(doc["id"], str):
                doc["id"] = normalize_report_key(doc["id"])
            else:
                raise InvalidReportError(f"Sample report #{index} has a non-text id")
            doc.setdefault("createdAt", now)
            doc.setdefault("userId", user.id)
            doc.setdefault("userName", user.name)
            try:
                report = Report.model_validate(doc)
            except ValidationError as e:
                raise InvalidReportError(f"Sample report #{index} is invalid: {e.error_count()} error(s)")
            batch[report.id] = report.to_document()

        await self.store.mset(batch)

        logger.info(f"Loaded {len(batch)} sample report(s) by {user.email}")
        return len(batch)
