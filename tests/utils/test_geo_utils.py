"""
Unit tests for api/utils/geo_utils.py

Tests for pure functions:
- calculate_distance_meters (Haversine formula)
- find_within_radius
- street_name_from_address
"""

from types import SimpleNamespace

from api.utils.geo_utils import (
    calculate_distance_meters,
    find_within_radius,
    street_name_from_address,
)


def _item(name, lat, lng):
    return SimpleNamespace(name=name, location=SimpleNamespace(lat=lat, lng=lng))


class TestCalculateDistanceMeters:
    """Tests for Haversine distance calculation."""

    def test_same_point_returns_zero(self):
        """Distance between same point should be zero."""
        distance = calculate_distance_meters(52.3745, 5.2175, 52.3745, 5.2175)
        assert distance == 0.0

    def test_known_distance_almere_to_amsterdam(self):
        """Almere Centrum to Amsterdam Centraal is roughly 23 km."""
        distance = calculate_distance_meters(52.3745, 5.2175, 52.3791, 4.9003)
        assert 21000 <= distance <= 23000

    def test_short_distance_ten_meters(self):
        """0.00009 degrees of latitude is about 10 meters."""
        distance = calculate_distance_meters(52.0, 5.0, 52.00009, 5.0)
        assert 9.5 <= distance <= 10.5

    def test_symmetry(self):
        """Distance A to B should equal distance B to A."""
        d1 = calculate_distance_meters(52.3745, 5.2175, 52.3791, 4.9003)
        d2 = calculate_distance_meters(52.3791, 4.9003, 52.3745, 5.2175)
        assert abs(d1 - d2) < 0.001

    def test_latitude_distance(self):
        """One degree latitude should be ~111 km anywhere."""
        distance = calculate_distance_meters(0.0, 0.0, 1.0, 0.0)
        assert 110000 <= distance <= 113000


class TestFindWithinRadius:
    """Tests for the radius filter."""

    def test_returns_only_items_inside_radius(self):
        items = [
            _item("here", 52.0, 5.0),
            _item("five_m", 52.000045, 5.0),
            _item("hundred_m", 52.0009, 5.0),
        ]
        found = find_within_radius(items, 52.0, 5.0, 10)
        assert [i.name for i in found] == ["here", "five_m"]

    def test_boundary_is_exclusive(self):
        """An item exactly on the radius is not inside it."""
        item = _item("edge", 52.0001, 5.0)
        exact = calculate_distance_meters(52.0, 5.0, 52.0001, 5.0)
        assert find_within_radius([item], 52.0, 5.0, exact) == []

    def test_empty_input(self):
        assert find_within_radius([], 52.0, 5.0, 10) == []


class TestStreetNameFromAddress:
    """Tests for extracting the street used to group hotspots."""

    def test_house_number_before_comma(self):
        assert street_name_from_address("30, Lastdragerstraat") == "Lastdragerstraat"

    def test_leading_house_number_without_comma(self):
        assert street_name_from_address("12a Stationsplein") == "Stationsplein"

    def test_plain_name_unchanged(self):
        assert street_name_from_address("De Nieuwe Bibliotheek") == "De Nieuwe Bibliotheek"

    def test_only_a_number_is_kept(self):
        assert street_name_from_address("42") == "42"
