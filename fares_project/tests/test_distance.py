import pytest
import requests

from fares.services.cache import TTLDistanceCache
from fares.services.distance import DistanceService, is_airport_location
from fares.services.geo import LocationPoint, haversine_km
from fares.services.google_maps import GoogleMapsClient, ProviderError

BRUSSELS_CENTRAL = {'lat': 50.8457, 'lng': 4.3574}
BRUSSELS_AIRPORT = {'lat': 50.9014, 'lng': 4.4844}


class FakeClient:
    """Stands in for GoogleMapsClient and counts provider calls."""

    def __init__(self, route=None, geocodes=None):
        self.route = route
        self.geocodes = geocodes or {}
        self.matrix_calls = 0
        self.geocode_calls = 0

    def distance_matrix(self, origin, destination):
        self.matrix_calls += 1
        if self.route is None:
            raise ProviderError("Google Distance Matrix API error: REQUEST_DENIED", status="REQUEST_DENIED")
        return self.route

    def geocode(self, address):
        self.geocode_calls += 1
        if address not in self.geocodes:
            raise ProviderError("Geocoding failed: ZERO_RESULTS", status="ZERO_RESULTS")
        return LocationPoint.parse(self.geocodes[address])


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_service(client, clock=None):
    cache = TTLDistanceCache(ttl_seconds=1800, clock=clock or FakeClock())
    return DistanceService(client=client, cache=cache)


def test_precise_lookup_rounds_distance_and_ceils_duration():
    service = make_service(FakeClient(route=(12345, 901)))

    result = service.resolve('Grote Markt, Brussel', 'Brussels Airport')
    assert result.status == 'success'
    assert result.distance_km == 12.35
    # 15.02 minutes is quoted as 16, never rounded down
    assert result.duration_min == 16
    assert result.error_message is None


def test_identical_requests_hit_the_cache():
    client = FakeClient(route=(5000, 420))
    service = make_service(client)

    first = service.resolve('Origin', 'Destination')
    second = service.resolve('Origin', 'Destination')

    assert client.matrix_calls == 1
    assert second is first


def test_cache_expires_after_ttl():
    client = FakeClient(route=(5000, 420))
    clock = FakeClock()
    service = make_service(client, clock)

    service.resolve('Origin', 'Destination')
    clock.now += 1799
    service.resolve('Origin', 'Destination')
    assert client.matrix_calls == 1

    clock.now += 2
    service.resolve('Origin', 'Destination')
    assert client.matrix_calls == 2


def test_waypoints_are_part_of_the_cache_key():
    client = FakeClient(route=(5000, 420))
    service = make_service(client)

    service.resolve('Origin', 'Destination')
    service.resolve('Origin', 'Destination', waypoints=['Stop A'])
    service.resolve('Origin', 'Destination', waypoints=['Stop A'])
    assert client.matrix_calls == 2


def test_fallback_uses_haversine_for_coordinates():
    client = FakeClient(route=None)
    service = make_service(client)

    result = service.resolve(BRUSSELS_CENTRAL, BRUSSELS_AIRPORT)
    assert result.status == 'fallback'
    # straight line, shorter than the ~12.5 km road distance
    assert result.distance_km == pytest.approx(10.85, abs=0.05)
    expected = haversine_km(LocationPoint.parse(BRUSSELS_CENTRAL), LocationPoint.parse(BRUSSELS_AIRPORT))
    assert result.distance_km == round(expected, 2)
    # 10.85 km at 40 km/h is 16.3 minutes
    assert result.duration_min == 17
    # coordinates are used directly, no geocoding
    assert client.geocode_calls == 0


def test_fallback_geocodes_addresses():
    client = FakeClient(route=None, geocodes={
        'Brussel-Centraal': BRUSSELS_CENTRAL,
        'Brussels Airport': BRUSSELS_AIRPORT,
    })
    service = make_service(client)

    result = service.resolve('Brussel-Centraal', 'Brussels Airport')
    assert result.status == 'fallback'
    assert result.distance_km == pytest.approx(10.85, abs=0.05)
    assert client.matrix_calls == 1
    assert client.geocode_calls == 2


def test_unresolvable_route_is_an_error_result():
    client = FakeClient(route=None)
    service = make_service(client)

    result = service.resolve('Nowhere 1', 'Nowhere 2')
    assert result.status == 'error'
    assert result.distance_km == 0
    assert result.duration_min == 0
    assert 'Geocoding failed' in result.error_message
    assert result.has_distance is False

    # errors are cached like any other result
    service.resolve('Nowhere 1', 'Nowhere 2')
    assert client.matrix_calls == 1


def test_out_of_range_coordinates_are_treated_as_absent():
    client = FakeClient(route=(5000, 420))
    service = make_service(client)

    result = service.resolve({'lat': 95.0, 'lng': 4.35}, BRUSSELS_AIRPORT)
    assert result.status == 'error'
    assert 'origin' in result.error_message
    assert client.matrix_calls == 0


def test_clear_expired_cache_removes_stale_entries():
    clock = FakeClock()
    service = make_service(FakeClient(route=(5000, 420)), clock)

    service.resolve('A', 'B')
    service.resolve('C', 'D')
    clock.now += 3600
    # stale entries stay in memory until swept
    assert len(service.cache) == 2
    assert service.clear_expired_cache() == 2
    assert len(service.cache) == 0


class FakeResponse:
    def __init__(self, data):
        self._data = data

    def raise_for_status(self):
        pass

    def json(self):
        return self._data


def test_google_client_request(monkeypatch):
    calls = []
    data = {
        "destination_addresses": ["Dest"],
        "origin_addresses": ["Orig"],
        "rows": [
            {"elements": [{"status": "OK", "distance": {"text": "12.5 km", "value": 12500}, "duration": {"text": "18 mins", "value": 1080}}]}
        ],
        "status": "OK",
    }

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params, timeout))
        return FakeResponse(data)

    monkeypatch.setattr(requests, 'get', fake_get)

    service = DistanceService(client=GoogleMapsClient(api_key='fake-key', timeout=5), cache=TTLDistanceCache())
    result = service.resolve(LocationPoint(50.8457, 4.3574), 'Brussels Airport')

    assert result.status == 'success'
    assert result.distance_km == 12.5
    assert result.duration_min == 18

    url, params, timeout = calls[0]
    assert 'distancematrix' in url
    assert params['key'] == 'fake-key'
    assert params['mode'] == 'driving'
    assert params['units'] == 'metric'
    assert params['origins'] == '50.845700,4.357400'
    assert timeout == 5


def test_provider_timeout_falls_back(monkeypatch):
    def fake_get(url, params=None, timeout=None):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(requests, 'get', fake_get)

    service = DistanceService(client=GoogleMapsClient(api_key='fake-key'), cache=TTLDistanceCache())
    result = service.resolve(BRUSSELS_CENTRAL, BRUSSELS_AIRPORT)
    assert result.status == 'fallback'


def test_non_ok_element_falls_back(monkeypatch):
    data = {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]}
    monkeypatch.setattr(requests, 'get', lambda url, params=None, timeout=None: FakeResponse(data))

    service = DistanceService(client=GoogleMapsClient(api_key='fake-key'), cache=TTLDistanceCache())
    assert service.resolve(BRUSSELS_CENTRAL, BRUSSELS_AIRPORT).status == 'fallback'


def test_missing_api_key_still_resolves_coordinates(settings, monkeypatch):
    settings.GOOGLE_MAPS_SERVER_KEY = ''
    settings.GOOGLE_MAPS_API_KEY = ''

    def fail_get(*args, **kwargs):
        raise AssertionError("no request should be sent without a key")

    monkeypatch.setattr(requests, 'get', fail_get)

    client = GoogleMapsClient()
    with pytest.raises(ProviderError):
        client.distance_matrix('A', 'B')

    service = DistanceService(client=client, cache=TTLDistanceCache())
    assert service.resolve(BRUSSELS_CENTRAL, BRUSSELS_AIRPORT).status == 'fallback'
    assert service.resolve('Somewhere', 'Elsewhere').status == 'error'


def test_geocode_parses_location(monkeypatch):
    data = {"status": "OK", "results": [{"geometry": {"location": {"lat": 50.9014, "lng": 4.4844}}}]}
    monkeypatch.setattr(requests, 'get', lambda url, params=None, timeout=None: FakeResponse(data))

    point = GoogleMapsClient(api_key='fake-key').geocode('Brussels Airport')
    assert point == LocationPoint(50.9014, 4.4844)


def test_is_airport_location():
    assert is_airport_location('Schiphol Plaza')
    assert is_airport_location('Luchthaven Zaventem')
    assert not is_airport_location('Grote Markt')
    assert not is_airport_location('')
