"""
Upstream API clients

Thin async wrappers around the third-party services this edge API fronts:
- Skydio Cloud API v0 (flights, telemetry, flight data files)
- OpenWeatherMap current weather
- OpenSky Network aircraft state vectors

Every call is recorded in the shared UpstreamHealthTracker so /debug can
report per-service success rates and latency.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """An upstream service answered with a non-2xx status"""

    def __init__(self, service: str, status_code: int, body: str = ""):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service} API error: {status_code} - {body}")


# ==================== UPSTREAM HEALTH TRACKING ====================

@dataclass
class ServiceCallStats:
    """Running call counters for one upstream service"""
    total_calls: int = 0
    failed_calls: int = 0
    network_errors: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    last_status: Optional[int] = None
    last_failure_at: Optional[str] = None
    status_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def successful_calls(self) -> int:
        return self.total_calls - self.failed_calls

    def record(self, latency_ms: float, status_code: Optional[int]):
        self.total_calls += 1
        self.total_latency_ms += latency_ms
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        self.last_status = status_code

        if status_code is None:
            self.network_errors += 1
            bucket = "network"
        else:
            bucket = f"{status_code // 100}xx"
        self.status_counts[bucket] = self.status_counts.get(bucket, 0) + 1

        if status_code is None or status_code >= 400:
            self.failed_calls += 1
            self.last_failure_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        avg = self.total_latency_ms / self.total_calls if self.total_calls else 0.0
        return {
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "network_errors": self.network_errors,
            "success_rate": round(self.successful_calls / self.total_calls, 3) if self.total_calls else None,
            "avg_latency_ms": round(avg, 1),
            "max_latency_ms": round(self.max_latency_ms, 1),
            "last_status": self.last_status,
            "last_failure_at": self.last_failure_at,
            "status_counts": dict(self.status_counts),
        }


class UpstreamHealthTracker:
    """Per-service call statistics for Skydio, OpenWeatherMap and OpenSky"""

    def __init__(self):
        self.started_at = datetime.now(timezone.utc)
        self._services: Dict[str, ServiceCallStats] = {}

    def record_call(self, service: str, latency_ms: float, status_code: Optional[int] = None):
        """Record one call; a None status means the request never got an answer"""
        self._services.setdefault(service, ServiceCallStats()).record(latency_ms, status_code)

    def service(self, name: str) -> Optional[ServiceCallStats]:
        return self._services.get(name)

    def get_stats(self) -> Dict[str, Any]:
        uptime = datetime.now(timezone.utc) - self.started_at
        return {
            "uptime_seconds": int(uptime.total_seconds()),
            "start_time": self.started_at.isoformat(),
            "services": {name: stats.to_dict() for name, stats in self._services.items()},
        }

    def reset(self):
        self._services.clear()


health_tracker = UpstreamHealthTracker()


async def _get(client: httpx.AsyncClient, service: str, url: str, **kwargs) -> httpx.Response:
    """GET with latency recorded against the service; network errors propagate"""
    started = time.perf_counter()
    try:
        response = await client.get(url, **kwargs)
    except httpx.HTTPError:
        health_tracker.record_call(service, (time.perf_counter() - started) * 1000)
        raise

    health_tracker.record_call(service, (time.perf_counter() - started) * 1000, response.status_code)
    return response


def _raise_for_status(service: str, response: httpx.Response, **context):
    if response.is_success:
        return
    logger.error(
        "%s error: status=%s body=%s context=%s",
        service, response.status_code, response.text, context
    )
    raise UpstreamError(service, response.status_code, response.text)


def mask_token(token: Optional[str]) -> str:
    return token[:8] + "..." if token else "N/A"


# ==================== SKYDIO CLOUD API ====================

class SkydioClient:
    """Skydio Cloud API v0 client using an organization API token"""

    SERVICE = "skydio"

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.base_url = settings.SKYDIO_API_BASE.rstrip("/")
        self.token = settings.SKYDIO_API_TOKEN or ""
        self.page_size = settings.FLIGHTS_PAGE_SIZE
        self.max_pages = settings.SYNC_MAX_PAGES

    @property
    def headers(self) -> Dict[str, str]:
        # Organization tokens go in verbatim, no "Bearer" prefix
        return {
            "Authorization": self.token,
            "Accept": "application/json",
        }

    async def list_flights_page(self, page: int) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/api/v0/flights"
        params = {"status": "completed", "page": page, "page_size": self.page_size}
        logger.info("Fetching flights page %d (token %s)", page, mask_token(self.token))

        response = await _get(self.client, self.SERVICE, url, params=params, headers=self.headers)
        _raise_for_status(self.SERVICE, response, page=page)

        payload = response.json()
        # v0 shape: {"data": {"flights": [...]}, "meta": {...}, "status_code": 200}
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or "flights" not in data:
            keys = list(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
            logger.error("Unexpected flights payload structure: %s", keys)
            raise UpstreamError(self.SERVICE, response.status_code, "Invalid API response: missing data.flights")

        return data["flights"] or []

    async def list_completed_flights(self) -> List[Dict[str, Any]]:
        """Walk pages until a short page comes back or the page cap is hit"""
        flights = []
        for page in range(1, self.max_pages + 1):
            batch = await self.list_flights_page(page)
            flights.extend(batch)
            logger.info("Fetched %d flights from page %d", len(batch), page)
            if len(batch) < self.page_size:
                break
        return flights

    async def get_flight(self, flight_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/api/v0/flight/{flight_id}"
        response = await _get(self.client, self.SERVICE, url, headers=self.headers)
        _raise_for_status(self.SERVICE, response, flight_id=flight_id)

        payload = response.json()
        data = payload.get("data") or {}
        return data.get("flight") or data

    async def get_flight_telemetry(self, flight_id: str) -> Optional[Dict[str, Any]]:
        """Raw telemetry channels, or None if none were ever uploaded"""
        url = f"{self.base_url}/api/v0/flight/{flight_id}/telemetry"
        response = await _get(self.client, self.SERVICE, url, headers=self.headers)

        if response.status_code == 404:
            logger.warning("Telemetry not available for flight: %s", flight_id)
            return None
        _raise_for_status(self.SERVICE, response, flight_id=flight_id)

        payload = response.json()
        data = payload.get("data") or {}
        return data.get("flight_telemetry")

    async def get_flight_details(self, flight_id: str) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Flight record and telemetry, fetched concurrently"""
        tasks = [
            asyncio.ensure_future(self.get_flight(flight_id)),
            asyncio.ensure_future(self.get_flight_telemetry(flight_id)),
        ]
        try:
            flight, telemetry = await asyncio.gather(*tasks)
        except BaseException:
            # Don't leave the sibling running against a client that is about to close
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return flight, telemetry

    async def list_flight_data_files(self, flight_id: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/api/v0/flight_data_files"
        response = await _get(self.client, self.SERVICE, url, params={"flight_id": flight_id}, headers=self.headers)
        _raise_for_status(self.SERVICE, response, flight_id=flight_id)

        payload = response.json()
        data = payload.get("data")
        if isinstance(data, dict):
            return data.get("flight_data_files") or []
        return data or []

    def download_url(self, file_id: str) -> str:
        return f"{self.base_url}/api/v0/flight_data_files/{file_id}"


# ==================== OPENWEATHERMAP ====================

async def fetch_current_weather(
    client: httpx.AsyncClient,
    settings: Settings,
    latitude: float,
    longitude: float,
    units: str = "imperial",
) -> Dict[str, Any]:
    """Current conditions from OpenWeatherMap"""
    url = f"{settings.OPENWEATHER_BASE_URL.rstrip('/')}/weather"
    params = {
        "lat": latitude,
        "lon": longitude,
        "units": units,
        "appid": settings.OPENWEATHER_API_KEY or "",
    }
    response = await _get(client, "openweather", url, params=params)
    _raise_for_status("openweather", response, lat=latitude, lon=longitude)
    return response.json()


# ==================== OPENSKY NETWORK ====================

async def fetch_aircraft_states(
    client: httpx.AsyncClient,
    settings: Settings,
    bbox: Dict[str, float],
) -> List[list]:
    """State vectors inside a lat/lon bounding box"""
    auth = None
    if settings.OPENSKY_USERNAME and settings.OPENSKY_PASSWORD:
        auth = (settings.OPENSKY_USERNAME, settings.OPENSKY_PASSWORD)

    url = f"{settings.OPENSKY_BASE_URL.rstrip('/')}/states/all"
    response = await _get(client, "opensky", url, params=bbox, auth=auth)
    _raise_for_status("opensky", response, **bbox)

    data = response.json() or {}
    return data.get("states") or []
