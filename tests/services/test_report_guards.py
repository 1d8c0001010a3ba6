"""
Unit tests for api/services/report_guards.py

Tests for the checks run before a report is written:
- Anti-spam radius
- Hourly rate limit
- Role gate for status changes
- Forward-only status transitions
"""

from datetime import timedelta

import pytest

from api.models.report_models import Location, ReportStatus
from api.models.user_models import Role
from api.services.errors import (
    AuthError,
    DuplicateReportError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
    RateLimitExceededError,
)
from api.services.report_guards import (
    check_can_change_status,
    check_rate_limit,
    check_spam_radius,
    check_status_transition,
    count_recent_reports,
    find_nearby_reports,
)
from tests.factories import BASE_LAT, BASE_LNG, NOW, make_report

WINDOW = timedelta(hours=24)
HERE = Location(lat=BASE_LAT, lng=BASE_LNG)


class TestSpamRadius:
    """Tests for the anti-spam radius check."""

    def test_rejects_report_within_radius(self):
        existing = [make_report("a", lat=BASE_LAT + 0.00005)]  # ~5.5 m
        with pytest.raises(DuplicateReportError) as exc_info:
            check_spam_radius(existing, HERE, NOW, 10, WINDOW)
        assert exc_info.value.status_code == 409
        assert "10 meters" in exc_info.value.message

    def test_accepts_report_outside_radius(self):
        existing = [make_report("a", lat=BASE_LAT + 0.0002)]  # ~22 m
        check_spam_radius(existing, HERE, NOW, 10, WINDOW)

    def test_collected_reports_do_not_block(self):
        existing = [make_report("a", status=ReportStatus.COLLECTED)]
        check_spam_radius(existing, HERE, NOW, 10, WINDOW)

    def test_reports_older_than_window_do_not_block(self):
        existing = [make_report("a", created_at=NOW - timedelta(hours=25))]
        check_spam_radius(existing, HERE, NOW, 10, WINDOW)

    def test_in_progress_reports_still_block(self):
        existing = [make_report("a", status=ReportStatus.IN_PROGRESS)]
        with pytest.raises(DuplicateReportError):
            check_spam_radius(existing, HERE, NOW, 10, WINDOW)

    def test_find_nearby_reports_lists_blockers(self):
        near = make_report("near")
        far = make_report("far", lat=BASE_LAT + 0.01)
        assert find_nearby_reports([near, far], HERE, NOW, 10, WINDOW) == [near]


class TestRateLimit:
    """Tests for the hourly submission limit."""

    def test_counts_only_own_reports_in_last_hour(self):
        reports = [
            make_report("1", created_at=NOW - timedelta(minutes=5)),
            make_report("2", created_at=NOW - timedelta(minutes=59)),
            make_report("3", created_at=NOW - timedelta(minutes=61)),
            make_report("4", created_at=NOW - timedelta(minutes=5), user_id="someone-else"),
        ]
        assert count_recent_reports(reports, "user-id", NOW) == 2

    def test_allows_up_to_maximum(self):
        reports = [make_report(str(i), created_at=NOW - timedelta(minutes=i)) for i in range(4)]
        check_rate_limit(reports, "user-id", NOW, 5)

    def test_blocks_at_maximum(self):
        reports = [make_report(str(i), created_at=NOW - timedelta(minutes=i)) for i in range(5)]
        with pytest.raises(RateLimitExceededError) as exc_info:
            check_rate_limit(reports, "user-id", NOW, 5)
        assert exc_info.value.status_code == 429

    def test_old_reports_free_up_allowance(self):
        reports = [make_report(str(i), created_at=NOW - timedelta(hours=2)) for i in range(5)]
        check_rate_limit(reports, "user-id", NOW, 5)

    def test_submitters_without_account_are_counted_together(self):
        reports = [
            make_report("1", created_at=NOW - timedelta(minutes=5), user_id="anon-1-aaaaaaaaa"),
            make_report("2", created_at=NOW - timedelta(minutes=9), user_id="anon-2-bbbbbbbbb"),
            make_report("3", created_at=NOW - timedelta(minutes=9)),
        ]
        assert count_recent_reports(reports, "anon-", NOW) == 2
        assert count_recent_reports(reports, "anon-3-ccccccccc", NOW) == 2
        assert count_recent_reports(reports, "user-id", NOW) == 1


class TestStatusChangePermission:
    """Tests for the role gate."""

    def test_missing_role_is_unauthenticated(self):
        with pytest.raises(AuthError) as exc_info:
            check_can_change_status(None)
        assert exc_info.value.status_code == 401

    def test_plain_user_is_forbidden(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            check_can_change_status(Role.USER)
        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize("role", [Role.WORKER, Role.ADMIN, "worker"])
    def test_elevated_roles_are_allowed(self, role):
        check_can_change_status(role)


class TestStatusTransition:
    """Tests for forward-only transitions."""

    @pytest.mark.parametrize("current,new", [
        (ReportStatus.REPORTED, ReportStatus.IN_PROGRESS),
        (ReportStatus.IN_PROGRESS, ReportStatus.COLLECTED),
        (ReportStatus.REPORTED, ReportStatus.COLLECTED),
    ])
    def test_forward_moves_are_allowed(self, current, new):
        check_status_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        (ReportStatus.COLLECTED, ReportStatus.REPORTED),
        (ReportStatus.IN_PROGRESS, ReportStatus.REPORTED),
        (ReportStatus.IN_PROGRESS, ReportStatus.IN_PROGRESS),
    ])
    def test_backward_or_repeated_moves_are_rejected(self, current, new):
        with pytest.raises(InvalidStatusTransitionError):
            check_status_transition(current, new)
