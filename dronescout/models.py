"""
Response models for the DroneScout edge API
Pydantic models describing the app-facing JSON shapes
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional, Union


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== FLIGHT LIST (HISTORY TAB) ====================

class FlightLocation(BaseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None


class FlightSummary(BaseModel):
    # The history list keeps the app's original snake_case schema
    id: Optional[Union[str, int]] = None
    name: str
    created_at: Optional[str] = None
    duration_seconds: int = 0
    location: FlightLocation
    media_urls: List[str] = []
    metadata: Dict[str, Any] = {}
    synced: bool = True


class SyncFlightsResponse(CamelModel):
    success: bool = True
    count: int
    flights: List[FlightSummary]
    synced_at: str


# ==================== FLIGHT DETAILS ====================

class FlightDetail(CamelModel):
    flight_id: Optional[Union[str, int]] = None
    vehicle_serial: Optional[str] = None
    battery_serial: Optional[str] = None
    user_email: Optional[str] = None
    takeoff: Optional[str] = None
    landing: Optional[str] = None
    has_telemetry: Optional[bool] = None
    takeoff_latitude: Optional[float] = None
    takeoff_longitude: Optional[float] = None
    attachments: Optional[Any] = None
    sensor_package: Optional[Any] = None


class FlightDetailsResponse(CamelModel):
    success: bool = True
    flight: FlightDetail
    # track/pointCount/stats/fieldReport; track points carry dynamic channel keys
    telemetry: Optional[Dict[str, Any]] = None


# ==================== FLIGHT MEDIA ====================

class MediaFile(CamelModel):
    file_id: Optional[Union[str, int]] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    size_bytes: Optional[int] = None
    created_at: Optional[str] = None
    download_url: str
    metadata: Dict[str, Any] = {}


class FlightMediaResponse(CamelModel):
    success: bool = True
    count: int
    media: List[MediaFile]


# ==================== WEATHER ====================

class FlyingConditions(CamelModel):
    safe: bool
    risk: str
    warnings: List[str]
    recommendation: str


class WeatherResponse(CamelModel):
    success: bool = True
    location: Optional[str] = None
    latitude: float
    longitude: float
    units: str
    temperature: Optional[float] = None
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_gust: Optional[float] = None
    wind_direction: Optional[float] = None
    visibility: Optional[float] = None
    cloud_cover: Optional[float] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    sunrise: Optional[int] = None
    sunset: Optional[int] = None
    flying_conditions: FlyingConditions


# ==================== AIRCRAFT ====================

class Aircraft(CamelModel):
    icao24: str
    callsign: Optional[str] = None
    origin_country: Optional[str] = None
    latitude: float
    longitude: float
    baro_altitude_m: Optional[float] = None
    geo_altitude_m: Optional[float] = None
    velocity_mps: Optional[float] = None
    true_track: Optional[float] = None
    vertical_rate_mps: Optional[float] = None
    on_ground: bool = False
    distance_meters: float


class AircraftResponse(CamelModel):
    success: bool = True
    count: int
    aircraft: List[Aircraft]
