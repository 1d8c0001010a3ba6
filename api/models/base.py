"""
Base Pydantic models with common configurations.

Timestamps are kept timezone-aware in UTC and serialized the way browsers
produce them (``2024-05-01T09:30:00.000Z``), so records written by older
clients and by this API look the same in the store.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, PlainSerializer

from api.utils.time_utils import ensure_utc


def serialize_datetime_utc(dt: datetime) -> str:
    """
    Serialize datetime to ISO format with millisecond precision and a 'Z' suffix.

    If the datetime is naive (no timezone), assumes it's UTC.
    """
    dt = ensure_utc(dt)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# Datetime field that is always UTC-aware and serialized with a 'Z' suffix
UTCDatetime = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(serialize_datetime_utc, return_type=str),
]


class APIBaseModel(BaseModel):
    """
    Base model for stored documents and API payloads.

    Field names are snake_case in Python and camelCase on the wire;
    both spellings are accepted on input.
    """

    model_config = {
        "populate_by_name": True,
    }
