from typing import Optional, Tuple, Union
import logging
import requests
from django.conf import settings

from .geo import LocationPoint

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

Location = Union[str, LocationPoint]


class ProviderError(RuntimeError):
    """Raised when the Google Maps provider cannot answer a request."""

    def __init__(self, message: str, status: str = "ERROR"):
        self.status = status
        super().__init__(message)


class GoogleMapsClient:
    """Thin wrapper around the Google Distance Matrix and Geocoding endpoints.

    Every call carries an explicit timeout. All failures (missing key, network
    errors, timeouts, non-OK statuses, unexpected payloads) are raised as
    ProviderError so callers can fall back in one place.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        # Prefer a server-specific key; fall back to the legacy single key if not provided
        self.api_key = api_key or getattr(settings, "GOOGLE_MAPS_SERVER_KEY", None) or getattr(settings, "GOOGLE_MAPS_API_KEY", None)
        self.timeout = timeout if timeout is not None else getattr(settings, "DISTANCE_PROVIDER_TIMEOUT", 8)

    @staticmethod
    def _format_location(location: Location) -> str:
        if isinstance(location, LocationPoint):
            return f"{location.lat:.6f},{location.lng:.6f}"
        return location.strip()

    def _get(self, url: str, params: dict) -> dict:
        if not self.api_key:
            raise ProviderError("GOOGLE_MAPS_SERVER_KEY or GOOGLE_MAPS_API_KEY is not configured in settings", status="CONFIG_ERROR")

        params = dict(params, key=self.api_key)
        try:
            resp = requests.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            logger.exception("Google Maps request to %s failed", url)
            raise ProviderError(f"Error calling Google Maps API: {exc}", status="REQUEST_FAILED") from exc
        except ValueError as exc:
            logger.exception("Google Maps returned a non-JSON body")
            raise ProviderError("Unexpected Google Maps response body", status="INVALID_RESPONSE") from exc

    def distance_matrix(self, origin: Location, destination: Location) -> Tuple[float, float]:
        """Return (meters, seconds) for a driving route between two locations."""
        data = self._get(DISTANCE_MATRIX_URL, {
            "units": "metric",
            "mode": "driving",
            "origins": self._format_location(origin),
            "destinations": self._format_location(destination),
        })

        if data.get("status") != "OK":
            logger.error("Google API returned non-OK status: %s", data.get("status"))
            raise ProviderError(f"Google Distance Matrix API error: {data.get('status')}", status=data.get("status") or "UNKNOWN")

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as exc:
            logger.exception("Unexpected Distance Matrix response format")
            raise ProviderError("Unexpected Distance Matrix response format", status="INVALID_RESPONSE") from exc

        if element.get("status") != "OK":
            logger.warning("Element status not OK: %s", element.get("status"))
            raise ProviderError(f"Route not available: {element.get('status')}", status=element.get("status") or "UNKNOWN")

        try:
            meters = float(element["distance"]["value"])
            seconds = float(element["duration"]["value"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError("Distance Matrix element is missing distance or duration", status="INVALID_RESPONSE") from exc

        return meters, seconds

    def geocode(self, address: str) -> LocationPoint:
        if not address or not address.strip():
            raise ProviderError("Address is required for geocoding", status="INVALID_REQUEST")

        data = self._get(GEOCODE_URL, {"address": address.strip()})
        if data.get("status") != "OK" or not data.get("results"):
            logger.warning("Geocoding returned %s for %r", data.get("status"), address)
            raise ProviderError(f"Geocoding failed: {data.get('status')}", status=data.get("status") or "UNKNOWN")

        try:
            location = data["results"][0]["geometry"]["location"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Unexpected Geocoding response format", status="INVALID_RESPONSE") from exc

        point = LocationPoint.parse(location)
        if point is None:
            raise ProviderError(f"Geocoding returned invalid coordinates for {address!r}", status="INVALID_RESPONSE")

        logger.debug("Geocoded %r to %s", address, point)
        return point
