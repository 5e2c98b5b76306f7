"""
DroneScout Edge API
FastAPI-based aggregation layer for the DroneScout mobile app
Fronts Skydio Cloud, OpenWeatherMap and OpenSky behind one JSON API
"""

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import AsyncIterator
from datetime import datetime, timezone
from contextlib import asynccontextmanager
import logging
import math
import httpx

from .config import Settings, get_settings, setup_logging
from .flights import assemble_flight_details, media_files, summarize_flight
from .flying_conditions import UnitSystem, assess_flying_conditions, observation_from_openweather
from .geo import haversine_distance
from .models import (
    Aircraft,
    AircraftResponse,
    FlightDetailsResponse,
    FlightMediaResponse,
    FlyingConditions,
    SyncFlightsResponse,
    WeatherResponse,
)
from .upstream import (
    SkydioClient,
    UpstreamError,
    fetch_aircraft_states,
    fetch_current_weather,
    health_tracker,
    mask_token,
)

settings = get_settings()
setup_logging(settings)
logger = logging.getLogger(__name__)

KM_PER_DEGREE_LAT = 111.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events"""
    logger.info("%s %s starting up", settings.APP_NAME, settings.APP_VERSION)
    if not settings.SKYDIO_API_TOKEN:
        logger.warning("SKYDIO_API_TOKEN is not set; flight endpoints will be rejected upstream")
    yield
    logger.info("%s shutting down", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Unified flight, telemetry, weather and traffic API for the DroneScout app",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ==================== DEPENDENCIES ====================

async def get_http_client(config: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    """One upstream HTTP client per request"""
    async with httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT_SECONDS) as client:
        yield client


def get_skydio_client(
    client: httpx.AsyncClient = Depends(get_http_client),
    config: Settings = Depends(get_settings),
) -> SkydioClient:
    return SkydioClient(client, config)


# ==================== ERROR HANDLING ====================

def _error_body(message: str, details: str, **extra) -> dict:
    return {
        "error": message,
        "details": details,
        **extra,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    # Upstream rejections (401, 429, ...) are passed through, not retried
    return JSONResponse(
        status_code=502,
        content=_error_body(
            str(exc),
            f"{exc.service} returned {exc.status_code}",
            upstreamService=exc.service,
            upstreamStatus=exc.status_code,
        ),
    )


@app.exception_handler(httpx.HTTPError)
async def upstream_unreachable_handler(request: Request, exc: httpx.HTTPError):
    logger.error("Upstream request failed: %s %s - %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content=_error_body(f"Failed to reach upstream service: {exc}", "Upstream service unavailable"),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body(str(exc), "Check server logs for more information"),
    )


# ==================== SERVICE ENDPOINTS ====================

@app.get("/")
async def root():
    """Basic service status"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/debug")
async def debug(config: Settings = Depends(get_settings)):
    """Token status and upstream call statistics"""
    token = config.SKYDIO_API_TOKEN
    return {
        "tokenExists": bool(token),
        "tokenLength": len(token) if token else 0,
        "tokenPrefix": mask_token(token),
        "apiBase": config.SKYDIO_API_BASE,
        "upstream": health_tracker.get_stats(),
    }


# ==================== SKYDIO FLIGHTS ====================

@app.post("/sync-flights", response_model=SyncFlightsResponse)
async def sync_flights(skydio: SkydioClient = Depends(get_skydio_client)):
    """All completed flights, simplified for the history list"""
    records = await skydio.list_completed_flights()
    flights = [summarize_flight(record) for record in records]

    return SyncFlightsResponse(
        success=True,
        count=len(flights),
        flights=flights,
        synced_at=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/flight/{flight_id}/details", response_model=FlightDetailsResponse)
async def get_flight_details(flight_id: str, skydio: SkydioClient = Depends(get_skydio_client)):
    """Flight metadata plus the reduced telemetry track for map display"""
    flight, telemetry_fields = await skydio.get_flight_details(flight_id)
    response = assemble_flight_details(flight_id, flight, telemetry_fields)

    if response.telemetry:
        logger.info("Flight %s: %d track points", flight_id, response.telemetry["pointCount"])
    else:
        logger.info("Flight %s: no telemetry track", flight_id)
    return response


@app.get("/flight/{flight_id}/media", response_model=FlightMediaResponse)
async def get_flight_media(flight_id: str, skydio: SkydioClient = Depends(get_skydio_client)):
    """Photos, videos and logs recorded during a flight"""
    files = await skydio.list_flight_data_files(flight_id)
    media = media_files(files, skydio.download_url)

    return FlightMediaResponse(success=True, count=len(media), media=media)


# ==================== WEATHER ====================

@app.get("/weather", response_model=WeatherResponse)
async def get_weather(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    units: UnitSystem = Query(UnitSystem.IMPERIAL),
    client: httpx.AsyncClient = Depends(get_http_client),
    config: Settings = Depends(get_settings),
):
    """Current weather with a drone flying-conditions assessment"""
    data = await fetch_current_weather(client, config, lat, lon, units.value)

    assessment = assess_flying_conditions(observation_from_openweather(data, units.value))

    main = data.get("main") or {}
    wind = data.get("wind") or {}
    weather = (data.get("weather") or [{}])[0]
    sys_info = data.get("sys") or {}

    return WeatherResponse(
        success=True,
        location=data.get("name"),
        latitude=lat,
        longitude=lon,
        units=units.value,
        temperature=main.get("temp"),
        feels_like=main.get("feels_like"),
        humidity=main.get("humidity"),
        pressure=main.get("pressure"),
        wind_speed=wind.get("speed"),
        wind_gust=wind.get("gust"),
        wind_direction=wind.get("deg"),
        visibility=data.get("visibility"),
        cloud_cover=(data.get("clouds") or {}).get("all"),
        condition=weather.get("main"),
        description=weather.get("description"),
        icon=weather.get("icon"),
        sunrise=sys_info.get("sunrise"),
        sunset=sys_info.get("sunset"),
        flying_conditions=FlyingConditions(**assessment.to_dict()),
    )


# ==================== AIR TRAFFIC ====================

def bounding_box(lat: float, lon: float, radius_km: float) -> dict:
    """Rough lat/lon box around a point, good enough for an OpenSky query"""
    dlat = radius_km / KM_PER_DEGREE_LAT
    dlon = radius_km / (KM_PER_DEGREE_LAT * max(math.cos(math.radians(lat)), 0.01))
    return {
        "lamin": max(lat - dlat, -90.0),
        "lamax": min(lat + dlat, 90.0),
        "lomin": max(lon - dlon, -180.0),
        "lomax": min(lon + dlon, 180.0),
    }


def aircraft_from_state(row: list, lat: float, lon: float):
    """
    OpenSky 'states' rows are arrays. Key fields we use:
    0 icao24, 1 callsign, 2 origin_country, 5 lon, 6 lat, 7 baro_altitude (m),
    8 on_ground, 9 velocity (m/s), 10 true_track (deg), 11 vertical_rate (m/s),
    13 geo_altitude (m)
    """
    if len(row) < 14 or row[5] is None or row[6] is None:
        return None

    return Aircraft(
        icao24=(row[0] or "").strip(),
        callsign=(row[1] or "").strip() or None,
        origin_country=row[2],
        latitude=row[6],
        longitude=row[5],
        baro_altitude_m=row[7],
        on_ground=bool(row[8]),
        velocity_mps=row[9],
        true_track=row[10],
        vertical_rate_mps=row[11],
        geo_altitude_m=row[13],
        distance_meters=haversine_distance(lat, lon, row[6], row[5]),
    )


@app.get("/aircraft", response_model=AircraftResponse)
async def get_nearby_aircraft(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(25.0, gt=0, le=250),
    client: httpx.AsyncClient = Depends(get_http_client),
    config: Settings = Depends(get_settings),
):
    """Manned traffic near the operating area, nearest first"""
    states = await fetch_aircraft_states(client, config, bounding_box(lat, lon, radius_km))

    aircraft = []
    for row in states:
        entry = aircraft_from_state(row, lat, lon)
        if entry is not None and entry.distance_meters <= radius_km * 1000:
            aircraft.append(entry)
    aircraft.sort(key=lambda a: a.distance_meters)

    return AircraftResponse(success=True, count=len(aircraft), aircraft=aircraft)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
