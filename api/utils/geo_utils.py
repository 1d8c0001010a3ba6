"""
Geographic utility functions for distance calculations and address handling.

This module contains pure functions with no dependencies on services or
storage. All functions are stateless and can be tested independently.
"""

import math
import re
from typing import Iterable, List, TypeVar

T = TypeVar("T")

# Leading house number with optional letter suffix, e.g. "30", "12a, "
_HOUSE_NUMBER_PREFIX = re.compile(r"^\d+[a-z]?\s*,?\s*", re.IGNORECASE)


def calculate_distance_meters(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Calculate the distance between two points using Haversine formula.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    # Convert to radians
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)

    # Haversine formula
    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = (
        math.sin(dlat / 2) * math.sin(dlat / 2)
        + math.cos(lat1_rad)
        * math.cos(lat2_rad)
        * math.sin(dlon / 2)
        * math.sin(dlon / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    # Earth radius in meters
    R = 6371000
    distance = R * c

    return distance


def find_within_radius(
    items: Iterable[T], lat: float, lng: float, radius_meters: float
) -> List[T]:
    """
    Return the items whose ``location`` lies strictly closer than the radius.

    Items only need a ``location`` attribute with ``lat`` and ``lng``.
    """
    return [
        item
        for item in items
        if calculate_distance_meters(lat, lng, item.location.lat, item.location.lng)
        < radius_meters
    ]


def street_name_from_address(address: str) -> str:
    """
    Extract the street name from a free text address.

    "30, Lastdragerstraat" -> "Lastdragerstraat"
    "12a Stationsplein"    -> "Stationsplein"
    "De Nieuwe Bibliotheek" is returned unchanged.
    """
    parts = address.split(",")
    if len(parts) > 1:
        return parts[1].strip()
    cleaned = _HOUSE_NUMBER_PREFIX.sub("", address).strip()
    return cleaned or address
