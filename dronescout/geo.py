"""
Geospatial helpers for flight tracks

Great-circle distances (Haversine) and the distance metrics reported with
every flight track: total distance flown, furthest point from launch and the
longest single hop between consecutive GPS fixes.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

EARTH_RADIUS_M = 6371000  # Mean Earth radius in meters

METERS_TO_MILES = 0.000621371
METERS_TO_FEET = 3.28084


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def _has_position(point) -> bool:
    # 0.0 is a real latitude/longitude, only None means "no fix"
    return getattr(point, "lat", None) is not None and getattr(point, "lon", None) is not None


@dataclass(frozen=True)
class DistanceMetrics:
    """Distance metrics over a track, all stored in meters"""
    total_distance_m: float = 0.0
    max_distance_from_launch_m: float = 0.0
    longest_segment_m: float = 0.0

    def distance_traveled(self) -> dict:
        return {
            "total": self.total_distance_m,
            "meters": self.total_distance_m,
            "miles": self.total_distance_m * METERS_TO_MILES,
            "kilometers": self.total_distance_m / 1000,
        }

    def max_distance_from_launch(self) -> dict:
        return _with_units(self.max_distance_from_launch_m)

    def longest_segment(self) -> dict:
        return _with_units(self.longest_segment_m)

    def to_stats(self) -> dict:
        """Synthetic stats entries merged into the per-field stats mapping"""
        return {
            "_distance_traveled": self.distance_traveled(),
            "_max_distance_from_launch": self.max_distance_from_launch(),
            "_longest_segment": self.longest_segment(),
        }


def _with_units(meters: float) -> dict:
    return {
        "meters": meters,
        "kilometers": meters / 1000,
        "miles": meters * METERS_TO_MILES,
        "feet": meters * METERS_TO_FEET,
    }


def compute_distance_metrics(track: Optional[Sequence]) -> DistanceMetrics:
    """
    Accumulate distances over consecutive track points.

    Pairs where either end has no position are skipped. Distance from launch
    is always measured from the first point of the track.
    """
    if not track or len(track) < 2:
        return DistanceMetrics()

    launch = track[0]
    total = 0.0
    longest = 0.0
    max_from_launch = 0.0

    for prev, curr in zip(track, track[1:]):
        if not (_has_position(prev) and _has_position(curr)):
            continue

        segment = haversine_distance(prev.lat, prev.lon, curr.lat, curr.lon)
        total += segment
        longest = max(longest, segment)

        if _has_position(launch):
            from_launch = haversine_distance(launch.lat, launch.lon, curr.lat, curr.lon)
            max_from_launch = max(max_from_launch, from_launch)

    return DistanceMetrics(
        total_distance_m=total,
        max_distance_from_launch_m=max_from_launch,
        longest_segment_m=longest,
    )
