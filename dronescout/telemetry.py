"""
Telemetry Normalizer

Turns the drone-fleet telemetry payload into something the app can draw:
- GPS reference series + parallel instrument channels -> one ordered track
- Per-channel summary statistics
- A field-by-field inspection report of the raw payload

Raw payload shape (one entry per channel):
    {"gps": {"data": [[lat, lon], ...], "timestamps": [...]},
     "altitude": {"data": [...], "timestamps": [...]},
     "velocity": {"data": [[vx, vy, vz], ...], "timestamps": [...]}, ...}
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .geo import compute_distance_metrics

logger = logging.getLogger(__name__)

GPS_CHANNEL = "gps"
ALTITUDE_CHANNEL = "altitude"
VELOCITY_CHANNEL = "velocity"

# Keys on a track point that are never aggregated as channels
POSITION_KEYS = ("timestamp", "lat", "lon")

REPORT_SAMPLE_SIZE = 5


class ChannelKind(Enum):
    """Shape of the values a channel carries"""
    SCALAR = "scalar"
    VECTOR = "vector"


# Everything not listed here is a scalar channel
VECTOR_CHANNELS = frozenset({VELOCITY_CHANNEL})


def channel_kind(name: str) -> ChannelKind:
    return ChannelKind.VECTOR if name in VECTOR_CHANNELS else ChannelKind.SCALAR


# ==================== CHANNEL VALUES ====================

@dataclass(frozen=True)
class Scalar:
    value: float

    def to_json(self):
        return None if _is_nan(self.value) else self.value

    def magnitude(self) -> float:
        return float(self.value)


@dataclass(frozen=True)
class Vector:
    components: Tuple[Any, ...]

    def to_json(self):
        return [None if _is_nan(c) else c for c in self.components]

    def magnitude(self) -> float:
        """Euclidean norm; NaN if any component is not a number"""
        if not all(_is_number(c) for c in self.components):
            return math.nan
        return math.sqrt(sum(c * c for c in self.components))


class _Absent:
    """No usable sample at this index"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "ABSENT"

    def __bool__(self):
        return False

    def to_json(self):
        return None


ABSENT = _Absent()

ChannelValue = Union[Scalar, Vector, _Absent]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_nan(value) -> bool:
    return isinstance(value, float) and math.isnan(value)


def resolve_value(raw, kind: ChannelKind) -> ChannelValue:
    """Resolve one raw sample into a tagged channel value"""
    if raw is None:
        return ABSENT
    if isinstance(raw, (list, tuple)):
        if kind is ChannelKind.VECTOR:
            return Vector(tuple(raw))
        return ABSENT
    if _is_number(raw):
        return Scalar(raw)
    return ABSENT


# ==================== TRACK POINTS ====================

@dataclass(frozen=True)
class TrackPoint:
    """One GPS fix with the channel samples recorded at the same index"""
    timestamp: float
    lat: float
    lon: float
    channels: Mapping[str, ChannelValue] = field(default_factory=dict)

    def get(self, name: str) -> ChannelValue:
        return self.channels.get(name, ABSENT)

    def to_dict(self) -> Dict[str, Any]:
        point = {
            "timestamp": self.timestamp,
            "lat": self.lat,
            "lon": self.lon,
        }
        for name, value in self.channels.items():
            point[name] = value.to_json()
        return point


def _channel_data(raw_field) -> Optional[list]:
    if isinstance(raw_field, Mapping) and isinstance(raw_field.get("data"), list):
        return raw_field["data"]
    return None


def _gps_fix(entry) -> Optional[Tuple[float, float]]:
    if isinstance(entry, (list, tuple)) and len(entry) >= 2:
        lat, lon = entry[0], entry[1]
        if _is_number(lat) and _is_number(lon) and not (_is_nan(lat) or _is_nan(lon)):
            return lat, lon
    return None


def normalize_track(telemetry_fields: Optional[Mapping[str, Any]]) -> Optional[List[TrackPoint]]:
    """
    Build the unified track from raw telemetry channels.

    Returns None when there is no usable GPS reference series; that means
    "no telemetry" to callers, not an error.
    """
    if not isinstance(telemetry_fields, Mapping):
        return None

    gps = telemetry_fields.get(GPS_CHANNEL)
    if not isinstance(gps, Mapping):
        return None

    timestamps = gps.get("timestamps")
    gps_data = gps.get("data")
    if not isinstance(timestamps, list) or not timestamps or not isinstance(gps_data, list):
        return None

    # Resolve every channel once, up front
    channels: Dict[str, Tuple[ChannelKind, list]] = {}
    for name, raw_field in telemetry_fields.items():
        if name == GPS_CHANNEL:
            continue
        data = _channel_data(raw_field)
        if data is not None:
            channels[name] = (channel_kind(name), data)

    track = []
    for idx, timestamp in enumerate(timestamps):
        fix = _gps_fix(gps_data[idx]) if idx < len(gps_data) else None
        if fix is None:
            continue

        values = {}
        for name, (kind, data) in channels.items():
            if name == ALTITUDE_CHANNEL and not track:
                # Altitude on the first track point is always bogus
                values[name] = ABSENT
            elif idx < len(data):
                values[name] = resolve_value(data[idx], kind)
            else:
                values[name] = ABSENT

        track.append(TrackPoint(timestamp=timestamp, lat=fix[0], lon=fix[1], channels=values))

    if not track:
        logger.warning("GPS series present but no valid fixes in %d samples", len(timestamps))
        return None

    return track


# ==================== FIELD STATISTICS ====================

@dataclass(frozen=True)
class FieldStats:
    min: float
    max: float
    avg: float
    start: float
    end: float
    change: float
    count: int
    has_non_zero: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "start": self.start,
            "end": self.end,
            "change": self.change,
            "count": self.count,
            "hasNonZero": self.has_non_zero,
        }

    @classmethod
    def from_values(cls, values: List[float]) -> "FieldStats":
        start, end = values[0], values[-1]
        return cls(
            min=min(values),
            max=max(values),
            avg=sum(values) / len(values),
            start=start,
            end=end,
            change=start - end,
            count=len(values),
            has_non_zero=any(v != 0 for v in values),
        )


def track_channel_names(track: Iterable[TrackPoint]) -> List[str]:
    """Channel names present on the track, in first-seen order"""
    names: Dict[str, None] = {}
    for point in track:
        for name in point.channels:
            names.setdefault(name, None)
    return list(names)


def compute_field_stats(track: List[TrackPoint], field_names: Optional[Iterable[str]] = None) -> Dict[str, FieldStats]:
    """Summary statistics per channel; channels with no valid samples are left out"""
    if field_names is None:
        field_names = track_channel_names(track)

    stats = {}
    for name in field_names:
        if name in POSITION_KEYS:
            continue

        values = []
        for point in track:
            value = point.get(name)
            if value is ABSENT:
                continue
            sample = value.magnitude()
            if not math.isnan(sample):
                values.append(sample)

        if values:
            stats[name] = FieldStats.from_values(values)

    return stats


# ==================== FIELD INSPECTION ====================

def build_field_report(telemetry_fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Describe every raw telemetry field: point counts, nulls, zeros, range"""
    fields = list(telemetry_fields.keys())
    analysis = {}

    logger.debug("Telemetry fields available: %s", fields)

    for name in fields:
        raw_field = telemetry_fields[name]
        if not isinstance(raw_field, Mapping):
            analysis[name] = {
                "hasData": False,
                "type": type(raw_field).__name__,
                "value": raw_field,
            }
            logger.debug("%s: %s %r", name, type(raw_field).__name__, raw_field)
            continue

        data = _channel_data(raw_field) or []
        timestamps = raw_field.get("timestamps")
        if not isinstance(timestamps, list):
            timestamps = []

        valid = [v for v in data if v is not None and not _is_nan(v)]
        non_zero = [v for v in valid if v != 0]
        numeric = [v for v in valid if _is_number(v) and not _is_nan(v)]

        analysis[name] = {
            "hasData": len(data) > 0,
            "totalPoints": len(data),
            "validPoints": len(valid),
            "nonZeroPoints": len(non_zero),
            "nullPoints": len(data) - len(valid),
            "zeroPoints": len(valid) - len(non_zero),
            "sampleValues": valid[:REPORT_SAMPLE_SIZE],
            "min": min(numeric) if numeric else None,
            "max": max(numeric) if numeric else None,
            "avg": sum(numeric) / len(numeric) if numeric else None,
            "hasTimestamps": len(timestamps) > 0,
        }
        logger.debug(
            "%s: points=%d valid=%d nonZero=%d",
            name, len(data), len(valid), len(non_zero)
        )

    return {
        "fields": fields,
        "fieldCount": len(fields),
        "analysis": analysis,
    }


def build_telemetry_summary(telemetry_fields: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Full pipeline: track, per-channel stats, distance metrics and field report"""
    track = normalize_track(telemetry_fields)
    if track is None:
        return None

    stats = {name: s.to_dict() for name, s in compute_field_stats(track).items()}
    stats.update(compute_distance_metrics(track).to_stats())

    return {
        "track": [point.to_dict() for point in track],
        "pointCount": len(track),
        "stats": stats,
        "fieldReport": build_field_report(telemetry_fields),
    }
