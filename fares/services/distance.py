from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence
import logging
import math
import threading

from django.conf import settings

from .cache import build_distance_cache
from .geo import LocationPoint, haversine_km, location_label
from .google_maps import GoogleMapsClient, ProviderError

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FALLBACK = "fallback"
STATUS_ERROR = "error"

DEFAULT_FALLBACK_SPEED_KMH = 40.0

AIRPORT_KEYWORDS = (
    "airport", "luchthaven", "bru", "brussels airport",
    "schiphol", "ams", "eindhoven airport", "ehv",
    "maastricht airport", "mst", "rotterdam airport", "rtm",
)


@dataclass(frozen=True)
class DistanceResult:
    distance_km: float
    duration_min: int
    status: str
    error_message: Optional[str] = None

    @property
    def has_distance(self) -> bool:
        return self.status != STATUS_ERROR and self.distance_km > 0

    def to_dict(self) -> dict:
        return asdict(self)


def _round_km(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _ceil_minutes(value: float) -> int:
    return int(math.ceil(value))


def is_airport_location(location: str) -> bool:
    """Loose check used by display code; the surcharge rule uses its own keyword list."""
    if not location:
        return False
    lowered = location.lower()
    return any(keyword in lowered for keyword in AIRPORT_KEYWORDS)


class DistanceService:
    """Resolve driving distance and duration between two locations.

    Public method:
        resolve(origin, destination, waypoints=None) -> DistanceResult

    Origin and destination are free-text addresses or coordinates (a
    LocationPoint, a {lat, lng} mapping or a (lat, lng) pair). The Google
    Distance Matrix is tried first; when it fails both endpoints are geocoded
    and a straight-line (haversine) distance is returned with a duration
    derived from an average urban speed. Provider errors never escape:
    total failure is reported as status="error" with zero distance.

    Caching:
        Results are stored in the injected cache keyed by origin, destination
        and waypoints. A live entry is returned as-is without any provider call.
    """

    def __init__(self, client=None, cache=None, fallback_speed_kmh: Optional[float] = None):
        self.client = client if client is not None else GoogleMapsClient()
        self.cache = cache if cache is not None else build_distance_cache()
        if fallback_speed_kmh is None:
            fallback_speed_kmh = getattr(settings, "FALLBACK_SPEED_KMH", DEFAULT_FALLBACK_SPEED_KMH)
        self.fallback_speed_kmh = float(fallback_speed_kmh)

    @staticmethod
    def _cache_key(origin, destination, waypoints: Optional[Sequence[str]] = None) -> str:
        key = f"{location_label(origin)}->{location_label(destination)}"
        if waypoints:
            key += "|" + "|".join(location_label(w) for w in waypoints)
        return key

    @staticmethod
    def _normalize(location):
        """Return a LocationPoint, a non-empty address string, or None when unusable."""
        if isinstance(location, str):
            return location.strip() or None
        return LocationPoint.parse(location)

    def resolve(self, origin, destination, waypoints: Optional[Sequence[str]] = None) -> DistanceResult:
        key = self._cache_key(origin, destination, waypoints)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("distance cache hit for %s", key)
            return cached.result

        logger.debug("distance cache miss for %s", key)
        result = self._compute(self._normalize(origin), self._normalize(destination))
        self.cache.put(key, result)
        return result

    def _compute(self, origin, destination) -> DistanceResult:
        if origin is None or destination is None:
            which = "origin" if origin is None else "destination"
            logger.warning("Cannot resolve distance: %s is missing or has invalid coordinates", which)
            return DistanceResult(0.0, 0, STATUS_ERROR, f"The {which} is missing or has invalid coordinates")

        try:
            return self._precise(origin, destination)
        except ProviderError as exc:
            logger.warning("Precise distance lookup failed, using straight-line fallback: %s", exc)

        try:
            return self._fallback(origin, destination)
        except ProviderError as exc:
            logger.error("Distance could not be resolved for %s -> %s: %s", origin, destination, exc)
            return DistanceResult(0.0, 0, STATUS_ERROR, str(exc))

    def _precise(self, origin, destination) -> DistanceResult:
        meters, seconds = self.client.distance_matrix(origin, destination)
        result = DistanceResult(
            distance_km=_round_km(meters / 1000.0),
            duration_min=_ceil_minutes(seconds / 60.0),
            status=STATUS_SUCCESS,
        )
        logger.debug("Computed distance %s km / %s min for %s -> %s", result.distance_km, result.duration_min, origin, destination)
        return result

    def _coordinates(self, location) -> LocationPoint:
        if isinstance(location, LocationPoint):
            return location
        return self.client.geocode(location)

    def _fallback(self, origin, destination) -> DistanceResult:
        origin_point = self._coordinates(origin)
        destination_point = self._coordinates(destination)

        distance = haversine_km(origin_point, destination_point)
        duration = distance / self.fallback_speed_kmh * 60
        return DistanceResult(
            distance_km=_round_km(distance),
            duration_min=_ceil_minutes(duration),
            status=STATUS_FALLBACK,
        )

    def clear_expired_cache(self) -> int:
        return self.cache.sweep()


_service = None
_service_lock = threading.Lock()


def get_distance_service() -> DistanceService:
    """Process-wide DistanceService built from settings, so the cache outlives a single request."""
    global _service
    with _service_lock:
        if _service is None:
            _service = DistanceService()
        return _service


def reset_distance_service() -> None:
    global _service
    with _service_lock:
        _service = None
