"""
Pydantic models for bulky-waste reports.

These models describe both the document stored under ``report:<id>`` in the
key-value store and the JSON exchanged with clients.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from api.models.base import APIBaseModel, UTCDatetime

REPORT_KEY_PREFIX = "report:"

ANONYMOUS_USER_NAME = "Anonymous User"

# Submitter ids of reports sent without an account
ANONYMOUS_USER_PREFIX = "anon-"


class ReportStatus(str, Enum):
    """Status pipeline of a report, in order."""

    REPORTED = "reported"
    IN_PROGRESS = "in_progress"
    COLLECTED = "collected"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [ReportStatus.REPORTED, ReportStatus.IN_PROGRESS, ReportStatus.COLLECTED]


class ReportSort(str, Enum):
    """Sort orders offered by the report list."""

    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    DISTANCE = "distance"


class Location(BaseModel):
    """Geographic position of a report."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class Report(APIBaseModel):
    """A single bulky-waste pickup request."""

    id: str = Field(..., description="Report key, e.g. report:1714555800000-k3j9x0a1b")
    type: str = Field(..., description="Kind of bulky waste")
    description: str = Field("", description="Free text description")
    location: Location
    address: str = Field("", description="Free text address")
    photo: Optional[str] = Field(None, description="Inline image as data URL")
    user_id: str = Field(..., alias="userId", description="Submitter id")
    user_name: str = Field(..., alias="userName", description="Submitter display name")
    status: ReportStatus = Field(ReportStatus.REPORTED, description="Pipeline status")
    created_at: UTCDatetime = Field(..., alias="createdAt")
    updated_at: Optional[UTCDatetime] = Field(None, alias="updatedAt")
    updated_by: Optional[str] = Field(None, alias="updatedBy")

    def to_document(self) -> dict:
        """Serialize for the key-value store."""
        return self.model_dump(mode="json", by_alias=True)


class ReportListItem(Report):
    """Report as returned by the list endpoint, with optional distance."""

    distance_km: Optional[float] = Field(
        None, alias="distanceKm", description="Distance to the reference point"
    )


class ReportCreate(APIBaseModel):
    """Request body for submitting a report."""

    type: str = Field(..., min_length=1, description="Kind of bulky waste")
    description: str = Field("", max_length=2000)
    location: Location
    address: str = Field("", max_length=500)
    photo: Optional[str] = Field(None, description="Inline image as data URL")
    anonymous: bool = Field(
        False, description="Hide the submitter name; the account still counts for rate limiting"
    )

    @field_validator("type")
    @classmethod
    def type_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("type must not be blank")
        return value


class StatusUpdateRequest(BaseModel):
    """Request to move a report through the pipeline."""

    status: ReportStatus = Field(..., description="New status (reported, in_progress, collected)")


class SampleDataRequest(APIBaseModel):
    """Batch of prepared reports to load into the store."""

    sample_reports: List[dict] = Field(default_factory=list, alias="sampleReports")


# Response wrappers


class ReportResponse(BaseModel):
    report: Report


class ReportListResponse(BaseModel):
    reports: List[ReportListItem]


class SuccessResponse(BaseModel):
    success: bool = True


class SampleDataResponse(BaseModel):
    success: bool = True
    count: int = Field(..., description="Number of reports stored")


# Statistics


class StatusTotals(APIBaseModel):
    total: int = 0
    reported: int = 0
    in_progress: int = Field(0, alias="inProgress")
    collected: int = 0


class ResolutionTime(APIBaseModel):
    average_hours: float = Field(..., alias="averageHours")
    display: str = Field(..., description="Compact human duration, e.g. '2d 3h'")
    sample_size: int = Field(..., alias="sampleSize")


class Hotspot(BaseModel):
    street: str
    count: int
    lat: float
    lng: float


class TypeCount(BaseModel):
    type: str
    count: int


class ReportStatistics(APIBaseModel):
    totals: StatusTotals
    resolution_time: Optional[ResolutionTime] = Field(None, alias="resolutionTime")
    hotspots: List[Hotspot] = Field(default_factory=list)
    types: List[TypeCount] = Field(default_factory=list)
    recent: List[Report] = Field(default_factory=list)
    generated_at: UTCDatetime = Field(..., alias="generatedAt")


def normalize_report_key(report_id: str) -> str:
    """Return the store key for an id given with or without its prefix."""
    if report_id.startswith(REPORT_KEY_PREFIX):
        return report_id
    return REPORT_KEY_PREFIX + report_id
