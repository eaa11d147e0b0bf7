import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class LocationPoint:
    lat: float
    lng: float

    @classmethod
    def parse(cls, value) -> Optional["LocationPoint"]:
        """Build a point from a LocationPoint, a {lat, lng} mapping or a (lat, lng) pair.

        Returns None when a coordinate is missing, not numeric or out of range.
        Out-of-range values are never clamped.
        """
        if isinstance(value, LocationPoint):
            lat, lng = value.lat, value.lng
        elif isinstance(value, dict):
            lat, lng = value.get("lat"), value.get("lng")
        elif isinstance(value, (tuple, list)) and len(value) == 2:
            lat, lng = value
        else:
            return None

        if lat is None or lng is None or isinstance(lat, bool) or isinstance(lng, bool):
            return None
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None
        return cls(lat=lat, lng=lng)

    def __str__(self) -> str:
        return f"{self.lat},{self.lng}"


def haversine_km(origin: LocationPoint, destination: LocationPoint) -> float:
    lat1 = math.radians(origin.lat)
    lat2 = math.radians(destination.lat)
    d_lat = math.radians(destination.lat - origin.lat)
    d_lng = math.radians(destination.lng - origin.lng)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def location_label(value) -> str:
    """Stable text for a location: "lat,lng" for coordinates, the stripped text for addresses."""
    if isinstance(value, str):
        return value.strip()
    point = LocationPoint.parse(value)
    if point is None:
        return ""
    return str(point)
