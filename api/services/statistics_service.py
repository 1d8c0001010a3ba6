"""
Aggregate statistics over all reports for the admin dashboard.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from api.database.repositories.kv_store import KVStoreRepository
from api.models.report_models import (
    Hotspot,
    Report,
    ReportStatistics,
    ReportStatus,
    ResolutionTime,
    StatusTotals,
    TypeCount,
)
from api.services.report_service import ReportService
from api.utils.geo_utils import street_name_from_address
from api.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

TOP_HOTSPOTS = 10
TOP_TYPES = 5
RECENT_REPORTS = 5


def format_duration_hours(hours: float) -> str:
    """
    Compact display of a duration given in hours.

    Under an hour in minutes ("45m"), under a day in hours ("5h"),
    under a week in days and hours ("2d 3h"), otherwise weeks and days ("1w 2d").
    """
    if hours < 1:
        return f"{round(hours * 60)}m"
    if hours < 24:
        return f"{round(hours)}h"
    if hours < 24 * 7:
        days = int(hours // 24)
        rest = round(hours % 24)
        if rest == 24:
            days, rest = days + 1, 0
        return f"{days}d {rest}h" if rest else f"{days}d"
    weeks = int(hours // (24 * 7))
    days = round((hours % (24 * 7)) / 24)
    if days == 7:
        weeks, days = weeks + 1, 0
    return f"{weeks}w {days}d" if days else f"{weeks}w"


def status_totals(reports: List[Report]) -> StatusTotals:
    counts = Counter(r.status for r in reports)
    return StatusTotals(
        total=len(reports),
        reported=counts[ReportStatus.REPORTED],
        in_progress=counts[ReportStatus.IN_PROGRESS],
        collected=counts[ReportStatus.COLLECTED],
    )


def resolution_time(reports: List[Report]) -> Optional[ResolutionTime]:
    """Average time from submission to collection, None without collected reports."""
    durations = [
        (r.updated_at - r.created_at).total_seconds() / 3600
        for r in reports
        if r.status == ReportStatus.COLLECTED and r.updated_at is not None
    ]
    if not durations:
        return None
    average = sum(durations) / len(durations)
    return ResolutionTime(
        average_hours=round(average, 2),
        display=format_duration_hours(average),
        sample_size=len(durations),
    )


def hotspots(reports: List[Report], limit: int = TOP_HOTSPOTS) -> List[Hotspot]:
    """Streets with the most reports; position is that of the first report seen."""
    by_street: Dict[str, Hotspot] = {}
    for report in reports:
        street = street_name_from_address(report.address) if report.address else "Unknown"
        if street in by_street:
            by_street[street].count += 1
        else:
            by_street[street] = Hotspot(
                street=street, count=1, lat=report.location.lat, lng=report.location.lng
            )
    ranked = sorted(by_street.values(), key=lambda h: h.count, reverse=True)
    return ranked[:limit]


def type_distribution(reports: List[Report], limit: int = TOP_TYPES) -> List[TypeCount]:
    counts = Counter(r.type for r in reports)
    return [TypeCount(type=t, count=c) for t, c in counts.most_common(limit)]


def compute_statistics(reports: List[Report], now: Optional[datetime] = None) -> ReportStatistics:
    """Build the dashboard statistics from a list of reports."""
    newest_first = sorted(reports, key=lambda r: r.created_at, reverse=True)
    return ReportStatistics(
        totals=status_totals(reports),
        resolution_time=resolution_time(reports),
        hotspots=hotspots(newest_first),
        types=type_distribution(reports),
        recent=newest_first[:RECENT_REPORTS],
        generated_at=now or utc_now(),
    )


class StatisticsService:
    """Service computing admin statistics from the report store."""

    def __init__(self, store: KVStoreRepository):
        self.reports = ReportService(store)

    async def get_statistics(self) -> ReportStatistics:
        reports = await self.reports.get_all_reports()
        stats = compute_statistics(reports)
        logger.debug(f"Computed statistics over {stats.totals.total} reports")
        return stats
