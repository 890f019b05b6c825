# ==================== UTILS/GEO.PY ====================
import math
from collections import namedtuple

from .exceptions import InvalidInput

EARTH_RADIUS_MILES = 3959
MILES_PER_DEGREE = 69


def validate_coordinates(latitude, longitude):
    """Reject coordinates outside +-90 / +-180"""
    if latitude is None or longitude is None:
        raise InvalidInput('Latitude and longitude are both required')
    if not -90 <= latitude <= 90:
        raise InvalidInput(f'Latitude {latitude} is out of range (-90..90)')
    if not -180 <= longitude <= 180:
        raise InvalidInput(f'Longitude {longitude} is out of range (-180..180)')


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in miles, rounded to one decimal place"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # float error can push a just past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_MILES * c, 1)


class BoundingBox(namedtuple('BoundingBox', ['min_lat', 'max_lat', 'min_lon', 'max_lon'])):
    __slots__ = ()

    def contains(self, latitude, longitude):
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lon <= longitude <= self.max_lon
        )


def bounding_box(latitude, longitude, radius_miles):
    """Axis-aligned box around a centre point.

    1 degree of latitude is roughly 69 miles; a degree of longitude shrinks with
    cos(latitude). The box is a superset of the circle, so points it admits still
    have to go through haversine_distance.
    """
    lat_delta = radius_miles / MILES_PER_DEGREE
    lon_delta = radius_miles / (math.cos(math.radians(latitude)) * MILES_PER_DEGREE)

    return BoundingBox(
        min_lat=latitude - lat_delta,
        max_lat=latitude + lat_delta,
        min_lon=longitude - lon_delta,
        max_lon=longitude + lon_delta,
    )
