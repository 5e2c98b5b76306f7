"""
Response assembly for flight endpoints

Reshapes Skydio v0 flight, telemetry and flight-data-file records into the
schema the app consumes.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import (
    FlightDetail,
    FlightDetailsResponse,
    FlightLocation,
    FlightSummary,
    MediaFile,
)
from .telemetry import build_telemetry_summary


def _parse_time(value) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def flight_duration_seconds(takeoff, landing) -> int:
    """Whole seconds between takeoff and landing; 0 if either is missing"""
    start = _parse_time(takeoff)
    end = _parse_time(landing)
    if start is None or end is None:
        return 0
    try:
        return math.floor((end - start).total_seconds())
    except TypeError:
        # naive vs aware timestamps
        return 0


def summarize_flight(flight: Dict[str, Any]) -> FlightSummary:
    """Flight record -> history list entry"""
    return FlightSummary(
        id=flight.get("flight_id"),
        name=f"{flight.get('vehicle_serial') or 'Drone'} Flight",
        created_at=flight.get("takeoff"),
        duration_seconds=flight_duration_seconds(flight.get("takeoff"), flight.get("landing")),
        location=FlightLocation(
            lat=flight.get("takeoff_latitude"),
            lon=flight.get("takeoff_longitude"),
        ),
        media_urls=[],  # Filled in by a separate media fetch
        metadata={
            "vehicle_serial": flight.get("vehicle_serial"),
            "battery_serial": flight.get("battery_serial"),
            "user_email": flight.get("user_email"),
            "landing": flight.get("landing"),
            "has_telemetry": flight.get("has_telemetry"),
            "attachments": flight.get("attachments"),
            "sensor_package": flight.get("sensor_package"),
        },
        synced=True,
    )


def flight_detail(flight: Dict[str, Any], flight_id: str) -> FlightDetail:
    return FlightDetail(
        flight_id=flight.get("flight_id") or flight_id,
        vehicle_serial=flight.get("vehicle_serial"),
        battery_serial=flight.get("battery_serial"),
        user_email=flight.get("user_email"),
        takeoff=flight.get("takeoff"),
        landing=flight.get("landing"),
        has_telemetry=flight.get("has_telemetry"),
        takeoff_latitude=flight.get("takeoff_latitude"),
        takeoff_longitude=flight.get("takeoff_longitude"),
        attachments=flight.get("attachments"),
        sensor_package=flight.get("sensor_package"),
    )


def assemble_flight_details(
    flight_id: str,
    flight: Dict[str, Any],
    telemetry_fields: Optional[Dict[str, Any]],
) -> FlightDetailsResponse:
    """Merge flight metadata with the reduced telemetry track"""
    return FlightDetailsResponse(
        success=True,
        flight=flight_detail(flight, flight_id),
        telemetry=build_telemetry_summary(telemetry_fields) if telemetry_fields else None,
    )


def media_files(files: List[Dict[str, Any]], download_url) -> List[MediaFile]:
    """Flight data files -> media entries; download_url maps a file id to its URL"""
    media = []
    for item in files:
        file_id = item.get("file_id") or item.get("id")
        media.append(MediaFile(
            file_id=file_id,
            file_name=item.get("file_name"),
            file_type=item.get("file_type"),  # VIDEO, PHOTO, LOG
            size_bytes=item.get("size_bytes"),
            created_at=item.get("created_at"),
            download_url=download_url(file_id),
            metadata=item.get("metadata") or {},
        ))
    return media
