"""
Great-circle distance for catalog proximity search.
"""
import math
from typing import NamedTuple

# Earth radius in km (mean radius)
EARTH_RADIUS_KM = 6371.0


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Return great-circle distance between two points in kilometers.
    Arguments in degrees. Out-of-range values are not rejected.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    # Out-of-range latitudes can push a outside [0, 1]; keep sqrt defined
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Distance between two GeoPoints in kilometers."""
    return haversine_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)


def is_valid_point(lat: float, lng: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
