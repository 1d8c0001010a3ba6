"""
Application state of the client: the report collection and its writes.

Every write runs the same guards as the API before anything leaves the
machine. Local sessions (token prefixed with ``local-token-``) only touch
the local store. Remote sessions call the API and fall back to the local
store when the network is unreachable; any other failure is reported as a
generic ReportStateError. The two copies are never reconciled.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, TypeVar

import httpx
from pydantic import ValidationError

from api.config.settings import AppSettings, get_settings
from api.models.report_models import (
    ANONYMOUS_USER_NAME,
    ANONYMOUS_USER_PREFIX,
    Report,
    ReportCreate,
    ReportStatistics,
    ReportStatus,
    normalize_report_key,
)
from api.models.user_models import Role, UserResponse
from api.services.auth_service import DEMO_USERS
from api.services.errors import PermissionDeniedError, ReportNotFoundError
from api.services.report_guards import (
    check_can_change_status,
    check_rate_limit,
    check_spam_radius,
    check_status_transition,
)
from api.services.report_service import generate_anonymous_user_id, generate_report_id
from api.services.statistics_service import compute_statistics
from api.utils.time_utils import utc_now
from grofvuil.client.api_client import ApiClient, ApiError
from grofvuil.client.local_store import ClientSession, LocalReportStore

logger = logging.getLogger(__name__)

LOCAL_TOKEN_PREFIX = "local-token-"

GENERIC_ERROR = "Something went wrong, please try again"

T = TypeVar("T")


class ReportStateError(Exception):
    """Generic failure shown to the user; ``detail`` keeps the server message."""

    def __init__(self, message: str = GENERIC_ERROR, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


def is_local_session(session: Optional[ClientSession]) -> bool:
    return session is not None and session.access_token.startswith(LOCAL_TOKEN_PREFIX)


def local_sign_in(email: str, password: str) -> Optional[ClientSession]:
    """Match the credentials against the built-in demo accounts."""
    email = email.strip().lower()
    for index, demo in enumerate(DEMO_USERS):
        if demo["email"] == email and demo["password"] == password:
            user_id = f"local-{index + 1}"
            return ClientSession(
                access_token=f"{LOCAL_TOKEN_PREFIX}{user_id}",
                user=UserResponse(id=user_id, email=email, name=demo["name"], role=demo["role"]),
            )
    return None


def sign_in(api: ApiClient, email: str, password: str) -> ClientSession:
    """
    Sign in against the API, falling back to a local demo session
    when the API is unreachable.

    Raises:
        ApiError: The API rejected the credentials
        ReportStateError: API unreachable and no matching demo account
    """
    try:
        body = api.sign_in(email, password)
    except httpx.TransportError as e:
        logger.warning(f"API unreachable during sign-in, trying local accounts: {e}")
        session = local_sign_in(email, password)
        if session is None:
            raise ReportStateError("Cannot reach the server and no local account matches")
        return session

    return ClientSession(
        access_token=body["session"]["access_token"],
        user=UserResponse.model_validate(body["user"]),
    )


class ReportState:
    """In-memory report collection bound to one session."""

    def __init__(
        self,
        api: ApiClient,
        local_store: LocalReportStore,
        session: Optional[ClientSession] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.api = api
        self.local_store = local_store
        self.session = session
        self.settings = settings or get_settings()
        self.reports: List[Report] = []
        self.offline = False

    @property
    def user(self) -> Optional[UserResponse]:
        return self.session.user if self.session else None

    @property
    def is_local(self) -> bool:
        return is_local_session(self.session)

    def _remote(self, call: Callable[[], T], fallback: Callable[[], T]) -> T:
        """
        Run an API call; on a network failure run the local fallback instead.
        """
        try:
            result = call()
        except httpx.TransportError as e:
            logger.warning(f"API unreachable, using local storage: {e}")
            self.offline = True
            return fallback()
        except ApiError as e:
            logger.error(f"API request failed: {e}")
            raise ReportStateError(detail=e.message)
        self.offline = False
        return result

    def _require_user(self) -> UserResponse:
        if self.user is None:
            raise ReportStateError("Please sign in first")
        return self.user

    def _find(self, report_id: str) -> Report:
        key = normalize_report_key(report_id)
        for report in self.reports:
            if report.id == key:
                return report
        raise ReportNotFoundError("Report not found")

    def _set(self, report: Report) -> None:
        self.reports = [report if r.id == report.id else r for r in self.reports]

    def _sort(self) -> None:
        self.reports.sort(key=lambda r: r.created_at, reverse=True)

    def refresh(self) -> List[Report]:
        """Reload the collection from the API or the local store."""
        if self.is_local:
            self.reports = self.local_store.load()
        else:
            self.reports = self._remote(
                lambda: [Report.model_validate(doc) for doc in self.api.list_reports()],
                self.local_store.load,
            )
        self._sort()
        return self.reports

    def _build_local(self, new: ReportCreate, user: Optional[UserResponse], now: datetime) -> Report:
        report = Report(
            id=generate_report_id(now),
            type=new.type,
            description=new.description,
            location=new.location,
            address=new.address,
            photo=new.photo,
            user_id=user.id if user else generate_anonymous_user_id(now),
            user_name=ANONYMOUS_USER_NAME if new.anonymous or user is None else user.name,
            status=ReportStatus.REPORTED,
            created_at=now,
        )
        self.local_store.add(report)
        return report

    def submit(self, new: ReportCreate, now: Optional[datetime] = None) -> Report:
        """
        Submit a report after the spam radius and rate limit checks.

        Without a session the report is sent anonymously and counts
        against the shared allowance of anonymous submitters.

        Raises:
            DuplicateReportError: Open report within the spam radius
            RateLimitExceededError: Hourly maximum reached
            ReportStateError: The API failed
        """
        user = self.user
        now = now or utc_now()

        check_spam_radius(
            self.reports,
            new.location,
            now,
            self.settings.spam_radius_meters,
            timedelta(hours=self.settings.spam_window_hours),
        )
        submitter_id = user.id if user else ANONYMOUS_USER_PREFIX
        check_rate_limit(self.reports, submitter_id, now, self.settings.max_reports_per_hour)

        if self.is_local:
            report = self._build_local(new, user, now)
        else:
            report = self._remote(
                lambda: Report.model_validate(
                    self.api.create_report(new.model_dump(mode="json"))
                ),
                lambda: self._build_local(new, user, now),
            )

        self.reports.insert(0, report)
        logger.info(f"Report submitted: {report.id}")
        return report

    def change_status(
        self, report_id: str, new_status: ReportStatus, now: Optional[datetime] = None
    ) -> Report:
        """
        Move a report forward; workers and admins only.

        Raises:
            AuthError: Not signed in
            PermissionDeniedError: Plain user
            ReportNotFoundError: Unknown report
            InvalidStatusTransitionError: Backwards or repeated status
        """
        check_can_change_status(self.user.role if self.user else None)
        report = self._find(report_id)
        check_status_transition(report.status, new_status)

        def apply_locally() -> Report:
            updated = report.model_copy(update={
                "status": new_status,
                "updated_at": now or utc_now(),
                "updated_by": self.user.name or self.user.email,
            })
            if not self.local_store.replace(updated):
                self.local_store.add(updated)
            return updated

        if self.is_local:
            updated = apply_locally()
        else:
            updated = self._remote(
                lambda: Report.model_validate(self.api.update_status(report.id, new_status.value)),
                apply_locally,
            )

        self._set(updated)
        return updated

    def delete(self, report_id: str) -> None:
        """
        Remove a report; admins only.

        Raises:
            PermissionDeniedError: Not an admin
            ReportNotFoundError: Unknown report
        """
        user = self._require_user()
        if user.role != Role.ADMIN:
            raise PermissionDeniedError("Only admins can delete reports")

        report = self._find(report_id)
        if self.is_local:
            self.local_store.remove(report.id)
        else:
            self._remote(
                lambda: self.api.delete_report(report.id),
                lambda: self.local_store.remove(report.id),
            )

        self.reports = [r for r in self.reports if r.id != report.id]

    def load_sample(self, documents: List[dict]) -> int:
        """
        Load a batch of prepared reports; admins only.

        Returns:
            Number of reports loaded
        """
        user = self._require_user()
        if user.role != Role.ADMIN:
            raise PermissionDeniedError("Only admins can load sample data")
        if not documents:
            raise ReportStateError("No sample reports provided")

        def store_locally() -> int:
            now = utc_now()
            batch = []
            for index, doc in enumerate(documents):
                if not isinstance(doc, dict):
                    raise ReportStateError("Sample data is invalid", detail=f"Entry #{index} is not an object")
                report_id = doc.get("id")
                if report_id and not isinstance(report_id, str):
                    raise ReportStateError("Sample data is invalid", detail=f"Entry #{index} has a non-text id")
                try:
                    batch.append(Report.model_validate({
                        "createdAt": now,
                        "userId": user.id,
                        "userName": user.name,
                        **doc,
                        "id": normalize_report_key(report_id) if report_id else generate_report_id(now),
                    }))
                except ValidationError as e:
                    raise ReportStateError("Sample data is invalid", detail=str(e))
            ids = {r.id for r in batch}
            self.local_store.save(batch + [r for r in self.local_store.load() if r.id not in ids])
            return len(batch)

        if self.is_local:
            count = store_locally()
        else:
            count = self._remote(lambda: self.api.load_sample_data(documents), store_locally)

        self.refresh()
        return count

    def my_reports(self) -> List[Report]:
        """Reports of the signed-in user, from the API when it is reachable."""
        user = self._require_user()

        def from_collection() -> List[Report]:
            return [r for r in self.reports if r.user_id == user.id]

        if self.is_local:
            return from_collection()
        return self._remote(
            lambda: [Report.model_validate(doc) for doc in self.api.my_reports()],
            from_collection,
        )

    def statistics(self) -> ReportStatistics:
        """
        Dashboard statistics; admins only.

        Remote sessions get them from the API. Local sessions and an
        unreachable API compute them over the loaded collection.
        """
        user = self._require_user()
        if user.role != Role.ADMIN:
            raise PermissionDeniedError("Only admins can view statistics")

        if self.is_local:
            return compute_statistics(self.reports)
        return self._remote(
            lambda: ReportStatistics.model_validate(self.api.statistics()),
            lambda: compute_statistics(self.reports),
        )
