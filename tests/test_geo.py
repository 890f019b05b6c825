import math
import random

import pytest
from geopy.distance import great_circle

from utils.exceptions import InvalidInput
from utils.geo import EARTH_RADIUS_MILES, bounding_box, haversine_distance, validate_coordinates


def test_distance_is_zero_for_identical_points():
    assert haversine_distance(41.0082, 28.9784, 41.0082, 28.9784) == 0.0


def test_one_degree_of_latitude():
    assert haversine_distance(0, 0, 1, 0) == 69.1


def test_distance_is_symmetric():
    rng = random.Random(42)
    for _ in range(200):
        lat1, lat2 = rng.uniform(-89, 89), rng.uniform(-89, 89)
        lon1, lon2 = rng.uniform(-179, 179), rng.uniform(-179, 179)
        assert haversine_distance(lat1, lon1, lat2, lon2) == haversine_distance(lat2, lon2, lat1, lon1)


def test_distance_matches_great_circle():
    rng = random.Random(7)
    for _ in range(200):
        a = (rng.uniform(-80, 80), rng.uniform(-179, 179))
        b = (rng.uniform(-80, 80), rng.uniform(-179, 179))
        # geopy labels its unit kilometers; with a radius in miles the value is miles
        expected = great_circle(a, b, radius=EARTH_RADIUS_MILES).km
        assert haversine_distance(*a, *b) == pytest.approx(expected, abs=0.051)


def test_bounding_box_never_excludes_points_within_radius():
    rng = random.Random(1234)
    for _ in range(500):
        lat, lon = rng.uniform(-60, 60), rng.uniform(-170, 170)
        radius = rng.uniform(0.5, 50)
        box = bounding_box(lat, lon, radius)

        distance = rng.uniform(0, radius)
        bearing = rng.uniform(0, 360)
        point = great_circle(radius=EARTH_RADIUS_MILES, kilometers=distance).destination((lat, lon), bearing)

        assert box.contains(point.latitude, point.longitude), (lat, lon, radius, distance, bearing)


def test_bounding_box_widens_longitude_away_from_equator():
    equator = bounding_box(0, 10, 10)
    north = bounding_box(60, 10, 10)

    assert equator.max_lat - equator.min_lat == pytest.approx(north.max_lat - north.min_lat)
    assert north.max_lon - north.min_lon == pytest.approx(2 * (equator.max_lon - equator.min_lon))


@pytest.mark.parametrize('lat, lon', [(90.1, 0), (-91, 0), (0, 180.5), (0, -181), (None, 10)])
def test_validate_coordinates_rejects_out_of_range(lat, lon):
    with pytest.raises(InvalidInput):
        validate_coordinates(lat, lon)


def test_validate_coordinates_accepts_edges():
    validate_coordinates(90, 180)
    validate_coordinates(-90, -180)


def test_antipodal_points_are_half_the_circumference_apart():
    half_circumference = round(math.pi * EARTH_RADIUS_MILES, 1)

    assert haversine_distance(19.469545238743834, -139.3557469961679,
                              -19.469545238743834, 40.64425300383209) == half_circumference
    assert haversine_distance(0, 0, 0, 180) == half_circumference
    assert haversine_distance(90, 0, -90, 0) == half_circumference
