"""
Reports router: public listing, submission, triage and admin maintenance.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.database.repositories.kv_store import KVStoreRepository, get_kv_store
from api.middleware.auth import (
    get_current_admin,
    get_current_staff,
    get_current_user,
    get_optional_user,
)
from api.models.report_models import (
    Location,
    ReportCreate,
    ReportListResponse,
    ReportResponse,
    ReportSort,
    ReportStatistics,
    ReportStatus,
    SampleDataRequest,
    SampleDataResponse,
    StatusUpdateRequest,
    SuccessResponse,
)
from api.models.user_models import UserRecord
from api.services.errors import ServiceError
from api.services.report_service import ReportService, hide_anonymous_owner
from api.services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def _to_http(error: ServiceError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.get("", response_model=ReportListResponse)
async def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status", description="Filter by status"),
    report_type: Optional[str] = Query(None, alias="type", description="Filter by waste type"),
    search: Optional[str] = Query(None, description="Text matched against address and type"),
    lat: Optional[float] = Query(None, ge=-90, le=90, description="Reference latitude"),
    lng: Optional[float] = Query(None, ge=-180, le=180, description="Reference longitude"),
    radius_km: Optional[float] = Query(None, gt=0, description="Only reports within this distance"),
    sort: ReportSort = Query(ReportSort.DATE_DESC, description="date-desc, date-asc or distance"),
    viewer: Optional[UserRecord] = Depends(get_optional_user),
    store: KVStoreRepository = Depends(get_kv_store),
) -> ReportListResponse:
    """
    List all reports, newest first.

    Public endpoint. Passing ``lat`` and ``lng`` adds the distance to each
    report and enables ``radius_km`` and ``sort=distance``. The owner id of
    anonymous reports is only shown to the owner and to staff.
    """
    if (lat is None) != (lng is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="lat and lng must be given together",
        )
    near = Location(lat=lat, lng=lng) if lat is not None else None
    if near is None and (radius_km is not None or sort == ReportSort.DISTANCE):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="radius_km and sort=distance need a reference point (lat, lng)",
        )

    reports = await ReportService(store).list_reports(
        status=status_filter,
        report_type=report_type,
        search=search,
        near=near,
        radius_km=radius_km,
        sort=sort,
    )
    return ReportListResponse(reports=[hide_anonymous_owner(r, viewer) for r in reports])


@router.get("/mine", response_model=ReportListResponse)
async def list_my_reports(
    current_user: UserRecord = Depends(get_current_user),
    store: KVStoreRepository = Depends(get_kv_store),
) -> ReportListResponse:
    """Reports submitted by the current user, including anonymous ones."""
    reports = await ReportService(store).list_user_reports(current_user.id)
    return ReportListResponse(reports=[r.model_dump() for r in reports])


@router.get("/statistics", response_model=ReportStatistics)
async def get_statistics(
    admin_user: UserRecord = Depends(get_current_admin),
    store: KVStoreRepository = Depends(get_kv_store),
) -> ReportStatistics:
    """
    Aggregate statistics for the admin dashboard.

    Requires admin privileges.
    """
    return await StatisticsService(store).get_statistics()


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportCreate,
    current_user: Optional[UserRecord] = Depends(get_optional_user),
    store: KVStoreRepository = Depends(get_kv_store),
) -> ReportResponse:
    """
    Submit a new report.

    The server assigns the id, the ``reported`` status and the creation
    time. Without a bearer token the report is stored under an ``anon-``
    submitter id. Rejected with 409 when an open report exists within the spam
    radius and with 429 when the hourly allowance is used up.
    """
    try:
        report = await ReportService(store).create_report(payload, current_user)
    except ServiceError as e:
        submitter = current_user.email if current_user else "anonymous submitter"
        logger.info(f"Report rejected for {submitter}: {e.message}")
        raise _to_http(e)

    return ReportResponse(report=report)


@router.post("/load-sample-data", response_model=SampleDataResponse)
async def load_sample_data(
    request: SampleDataRequest,
    admin_user: UserRecord = Depends(get_current_admin),
    store: KVStoreRepository = Depends(get_kv_store),
) -> SampleDataResponse:
    """
    Store a batch of prepared reports.

    Requires admin privileges. 400 when the batch is empty.
    """
    try:
        count = await ReportService(store).load_sample_data(request.sample_reports, admin_user)
    except ServiceError as e:
        raise _to_http(e)

    return SampleDataResponse(count=count)


@router.patch("/{report_id}/status", response_model=ReportResponse)
async def update_report_status(
    report_id: str,
    request: StatusUpdateRequest,
    staff_user: UserRecord = Depends(get_current_staff),
    store: KVStoreRepository = Depends(get_kv_store),
) -> ReportResponse:
    """
    Move a report forward through the pipeline.

    Requires worker or admin privileges. The status only moves forward
    (reported, in_progress, collected); anything else is a 409.
    """
    try:
        report = await ReportService(store).update_status(report_id, request.status, staff_user)
    except ServiceError as e:
        raise _to_http(e)

    return ReportResponse(report=report)


@router.delete("/{report_id}", response_model=SuccessResponse)
async def delete_report(
    report_id: str,
    admin_user: UserRecord = Depends(get_current_admin),
    store: KVStoreRepository = Depends(get_kv_store),
) -> SuccessResponse:
    """
    Delete a report by id, with or without its ``report:`` prefix.

    Requires admin privileges.
    """
    try:
        await ReportService(store).delete_report(report_id, admin_user)
    except ServiceError as e:
        raise _to_http(e)

    return SuccessResponse()
