"""
Pytest configuration and fixtures for DroneScout edge API tests.
Upstream services are replaced by an httpx.MockTransport; no test touches the network.
"""

import copy

import httpx
import pytest
from fastapi.testclient import TestClient

from dronescout.config import Settings, get_settings
from dronescout.main import app, get_http_client
from dronescout.upstream import health_tracker


SAMPLE_TELEMETRY = {
    "gps": {
        "data": [[40.0, -74.0], [40.001, -74.0], [40.002, -74.0]],
        "timestamps": [1700000000.0, 1700000001.0, 1700000002.0],
    },
    "altitude": {
        "data": [999.0, 10.0, 20.0],
        "timestamps": [1700000000.0, 1700000001.0, 1700000002.0],
    },
    "velocity": {
        "data": [[3, 4], [0, 0], None],
        "timestamps": [1700000000.0, 1700000001.0, 1700000002.0],
    },
    "battery_percentage": {
        "data": [100, None, 98],
        "timestamps": [1700000000.0, 1700000001.0, 1700000002.0],
    },
    "signal_strength": {
        "data": [None, None, None],
        "timestamps": [1700000000.0, 1700000001.0, 1700000002.0],
    },
    "firmware_version": "4.2.1",
}

SAMPLE_FLIGHT = {
    "flight_id": "flt-001",
    "vehicle_serial": "X10-1234",
    "battery_serial": "BAT-77",
    "user_email": "pilot@example.com",
    "takeoff": "2024-05-01T14:00:00Z",
    "landing": "2024-05-01T14:12:30.500Z",
    "has_telemetry": True,
    "takeoff_latitude": 40.0,
    "takeoff_longitude": -74.0,
    "attachments": [],
    "sensor_package": "VT300-Z",
}

SAMPLE_WEATHER = {
    "name": "Newark",
    "weather": [{"main": "Clear", "description": "clear sky", "icon": "01d"}],
    "main": {"temp": 70, "feels_like": 69, "humidity": 40, "pressure": 1015},
    "wind": {"speed": 5, "deg": 270},
    "visibility": 9999,
    "clouds": {"all": 5},
    "sys": {"sunrise": 1714557000, "sunset": 1714607400},
}


class UpstreamStub:
    """Serves canned upstream responses keyed by URL path and records requests"""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, path, status_code=200, json=None, text=None):
        self.routes[path] = (status_code, json, text)

    def fail(self, path, exc_type=httpx.ConnectError):
        self.routes[path] = exc_type

    def requests_to(self, path):
        return [r for r in self.requests if r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(route, type):
            raise route("upstream unreachable", request=request)

        status_code, payload, text = route
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=payload)


@pytest.fixture
def test_settings():
    """Settings pointing every upstream at a fake host."""
    return Settings(
        SKYDIO_API_TOKEN="test-token-0123456789",
        SKYDIO_API_BASE="https://api.skydio.test",
        OPENWEATHER_API_KEY="owm-test-key",
        OPENWEATHER_BASE_URL="https://weather.test/data/2.5",
        OPENSKY_BASE_URL="https://opensky.test/api",
        FLIGHTS_PAGE_SIZE=2,
        SYNC_MAX_PAGES=3,
    )


@pytest.fixture
def upstream():
    """Fake upstream services."""
    return UpstreamStub()


@pytest.fixture
def client(test_settings, upstream):
    """Test client with settings and the upstream HTTP client overridden."""
    async def _http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as http_client:
            yield http_client

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_http_client] = _http_client
    health_tracker.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    health_tracker.reset()


@pytest.fixture
def sample_telemetry():
    """Raw telemetry channels as returned by the flight telemetry endpoint."""
    return copy.deepcopy(SAMPLE_TELEMETRY)


@pytest.fixture
def sample_flight():
    return dict(SAMPLE_FLIGHT)


@pytest.fixture
def sample_weather():
    return copy.deepcopy(SAMPLE_WEATHER)


@pytest.fixture
def sample_coordinates():
    """Sample coordinates for testing (Newark area)."""
    return {"lat": 40.6895, "lon": -74.1745}
