import math

import pytest

from telehealth_core.errors import InvalidInputError
from telehealth_core.geo import distance_km, validate_location
from telehealth_core.models import Location


def test_distance_between_identical_points_is_zero() -> None:
    point = Location(lat=-17.8252, lng=31.0502)
    assert distance_km(point, point) == 0.0


def test_one_degree_of_latitude() -> None:
    assert distance_km(Location(0.0, 0.0), Location(1.0, 0.0)) == pytest.approx(111.195, rel=1e-4)


def test_distance_is_symmetric() -> None:
    harare = Location(-17.8252, 31.0502)
    bulawayo = Location(-20.1325, 28.6265)
    assert distance_km(harare, bulawayo) == pytest.approx(distance_km(bulawayo, harare))
    assert distance_km(harare, bulawayo) == pytest.approx(360, rel=0.05)


def test_antipodal_points_are_half_the_circumference() -> None:
    assert distance_km(Location(0.0, 0.0), Location(0.0, 180.0)) == pytest.approx(math.pi * 6371.0)


def test_nan_coordinates_propagate() -> None:
    assert math.isnan(distance_km(Location(float("nan"), 0.0), Location(0.0, 0.0)))


def test_validate_location_accepts_common_shapes() -> None:
    assert validate_location({"lat": 1, "lng": 2}) == Location(1.0, 2.0)
    assert validate_location({"latitude": 1, "longitude": 2}) == Location(1.0, 2.0)
    assert validate_location((1, 2)) == Location(1.0, 2.0)


@pytest.mark.parametrize(
    "value",
    [
        None,
        {"lat": 1},
        {"lat": 91, "lng": 0},
        {"lat": 0, "lng": -181},
        {"lat": float("nan"), "lng": 0},
        {"lat": "north", "lng": 0},
        "somewhere",
    ],
)
def test_validate_location_rejects_bad_input(value) -> None:
    with pytest.raises(InvalidInputError):
        validate_location(value)


def test_repeated_calls_are_bit_identical() -> None:
    a = Location(-17.8252, 31.0502)
    b = Location(-17.8350, 31.0600)
    first = distance_km(a, b)
    assert all(distance_km(a, b) == first for _ in range(100))
