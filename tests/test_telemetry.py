"""
Telemetry normalizer tests: track construction, channel values and field stats.
"""

import math

import pytest

from dronescout.telemetry import (
    ABSENT,
    ChannelKind,
    FieldStats,
    Scalar,
    Vector,
    build_field_report,
    build_telemetry_summary,
    compute_field_stats,
    normalize_track,
    resolve_value,
)


def _channel(data):
    return {"data": data, "timestamps": list(range(len(data)))}


class TestResolveValue:
    """Raw samples resolve once into Scalar / Vector / Absent."""

    def test_none_is_absent(self):
        assert resolve_value(None, ChannelKind.SCALAR) is ABSENT

    def test_number_is_scalar(self):
        assert resolve_value(12.5, ChannelKind.SCALAR) == Scalar(12.5)

    def test_list_on_vector_channel(self):
        assert resolve_value([1, 2, 3], ChannelKind.VECTOR) == Vector((1, 2, 3))

    def test_list_on_scalar_channel_is_absent(self):
        assert resolve_value([1, 2], ChannelKind.SCALAR) is ABSENT

    def test_non_numeric_is_absent(self):
        assert resolve_value("n/a", ChannelKind.SCALAR) is ABSENT
        assert resolve_value(True, ChannelKind.SCALAR) is ABSENT

    def test_vector_magnitude(self):
        assert Vector((3, 4)).magnitude() == 5

    def test_malformed_vector_magnitude_is_nan(self):
        assert math.isnan(Vector((3, "x")).magnitude())


class TestNormalizeTrack:
    """GPS-referenced track construction."""

    def test_missing_gps_returns_none(self):
        assert normalize_track({"altitude": _channel([1, 2])}) is None

    def test_gps_without_timestamps_returns_none(self):
        assert normalize_track({"gps": {"data": [[40, -74]], "timestamps": []}}) is None

    def test_not_a_mapping_returns_none(self):
        assert normalize_track(None) is None

    def test_one_point_per_gps_timestamp(self, sample_telemetry):
        track = normalize_track(sample_telemetry)
        assert len(track) == 3
        assert [p.timestamp for p in track] == sample_telemetry["gps"]["timestamps"]
        assert (track[1].lat, track[1].lon) == (40.001, -74.0)

    def test_first_altitude_sample_is_null(self, sample_telemetry):
        track = normalize_track(sample_telemetry)
        assert track[0].get("altitude") is ABSENT
        assert track[0].to_dict()["altitude"] is None
        assert track[1].to_dict()["altitude"] == 10.0

    def test_null_values_stay_null(self, sample_telemetry):
        point = normalize_track(sample_telemetry)[1].to_dict()
        assert point["battery_percentage"] is None
        assert point["signal_strength"] is None

    def test_no_carry_forward(self):
        telemetry = {
            "gps": _channel([[1, 1], [1, 2], [1, 3]]),
            "heading": _channel([90, None, None]),
        }
        track = normalize_track(telemetry)
        assert [p.to_dict()["heading"] for p in track] == [90, None, None]

    def test_short_channel_pads_with_null(self):
        telemetry = {"gps": _channel([[1, 1], [1, 2]]), "heading": _channel([45])}
        track = normalize_track(telemetry)
        assert track[1].to_dict()["heading"] is None

    def test_non_channel_fields_are_not_on_track(self, sample_telemetry):
        point = normalize_track(sample_telemetry)[0].to_dict()
        assert "firmware_version" not in point
        assert "gps" not in point

    def test_velocity_vectors_kept_on_track(self, sample_telemetry):
        point = normalize_track(sample_telemetry)[0].to_dict()
        assert point["velocity"] == [3, 4]

    def test_points_without_fix_are_skipped(self):
        telemetry = {"gps": _channel([[1, 1], None, [1, 3]])}
        track = normalize_track(telemetry)
        assert [p.lon for p in track] == [1, 3]

    def test_zero_coordinates_are_valid_fixes(self):
        track = normalize_track({"gps": _channel([[0, 0], [0, 0.001]])})
        assert len(track) == 2

    def test_non_list_timestamps_returns_none(self):
        assert normalize_track({"gps": {"data": [[40, -74]], "timestamps": 5}}) is None
        assert normalize_track({"gps": {"data": [[40, -74]], "timestamps": "0,1"}}) is None

    def test_altitude_null_on_first_built_point(self):
        """When the first fix is invalid the next point becomes track[0]."""
        telemetry = {
            "gps": _channel([None, [40, -74], [40.001, -74]]),
            "altitude": _channel([999, 888, 10]),
        }
        track = normalize_track(telemetry)
        assert len(track) == 2
        assert track[0].get("altitude") is ABSENT
        assert track[1].to_dict()["altitude"] == 10


class TestFieldStats:
    """Per-channel summary statistics."""

    def test_scalar_stats(self, sample_telemetry):
        stats = compute_field_stats(normalize_track(sample_telemetry))
        altitude = stats["altitude"]
        assert altitude == FieldStats(
            min=10.0, max=20.0, avg=15.0, start=10.0, end=20.0,
            change=-10.0, count=2, has_non_zero=True,
        )

    def test_change_is_start_minus_end(self, sample_telemetry):
        stats = compute_field_stats(normalize_track(sample_telemetry))
        assert stats["battery_percentage"].change == 2

    def test_velocity_uses_magnitude(self, sample_telemetry):
        stats = compute_field_stats(normalize_track(sample_telemetry))
        velocity = stats["velocity"]
        assert velocity.start == 5
        assert velocity.max == 5
        assert velocity.min == 0
        assert velocity.avg == pytest.approx(2.5)
        assert velocity.count == 2

    def test_all_null_field_is_omitted(self, sample_telemetry):
        stats = compute_field_stats(normalize_track(sample_telemetry))
        assert "signal_strength" not in stats

    def test_position_keys_never_aggregated(self, sample_telemetry):
        track = normalize_track(sample_telemetry)
        stats = compute_field_stats(track, ["lat", "lon", "timestamp", "altitude"])
        assert list(stats) == ["altitude"]

    def test_all_zero_channel(self):
        track = normalize_track({"gps": _channel([[1, 1], [1, 2]]), "wind": _channel([0, 0])})
        assert compute_field_stats(track)["wind"].has_non_zero is False

    def test_malformed_velocity_filtered(self):
        telemetry = {
            "gps": _channel([[1, 1], [1, 2]]),
            "velocity": _channel([[1, "bad"], [6, 8]]),
        }
        stats = compute_field_stats(normalize_track(telemetry))
        assert stats["velocity"].count == 1
        assert stats["velocity"].start == 10

    def test_nan_scalars_filtered(self):
        telemetry = {"gps": _channel([[1, 1], [1, 2]]), "heading": _channel([float("nan"), 180])}
        stats = compute_field_stats(normalize_track(telemetry))
        assert stats["heading"].count == 1

    def test_to_dict_uses_wire_names(self, sample_telemetry):
        stats = compute_field_stats(normalize_track(sample_telemetry))
        assert set(stats["altitude"].to_dict()) == {
            "min", "max", "avg", "start", "end", "change", "count", "hasNonZero",
        }

    def test_deterministic(self, sample_telemetry):
        first = build_telemetry_summary(sample_telemetry)
        second = build_telemetry_summary(sample_telemetry)
        assert first == second


class TestFieldReport:
    """Raw payload inspection report."""

    def test_counts(self, sample_telemetry):
        report = build_field_report(sample_telemetry)
        battery = report["analysis"]["battery_percentage"]
        assert battery["totalPoints"] == 3
        assert battery["validPoints"] == 2
        assert battery["nullPoints"] == 1
        assert battery["min"] == 98
        assert battery["max"] == 100
        assert battery["hasTimestamps"] is True

    def test_non_channel_field(self, sample_telemetry):
        report = build_field_report(sample_telemetry)
        assert report["fieldCount"] == len(sample_telemetry)
        assert report["analysis"]["firmware_version"] == {
            "hasData": False,
            "type": "str",
            "value": "4.2.1",
        }

    def test_vector_fields_have_no_numeric_range(self, sample_telemetry):
        report = build_field_report(sample_telemetry)
        assert report["analysis"]["gps"]["min"] is None
        assert report["analysis"]["gps"]["sampleValues"][0] == [40.0, -74.0]

    def test_non_list_data_treated_as_empty(self, sample_telemetry):
        sample_telemetry["altitude"] = {"data": 7, "timestamps": 3}
        report = build_field_report(sample_telemetry)
        altitude = report["analysis"]["altitude"]
        assert altitude["hasData"] is False
        assert altitude["totalPoints"] == 0
        assert altitude["hasTimestamps"] is False


class TestTelemetrySummary:
    """Full pipeline output."""

    def test_summary_shape(self, sample_telemetry):
        summary = build_telemetry_summary(sample_telemetry)
        assert summary["pointCount"] == 3
        assert len(summary["track"]) == 3
        assert "fieldReport" in summary
        for key in ("_distance_traveled", "_max_distance_from_launch", "_longest_segment"):
            assert key in summary["stats"]

    def test_distance_stats(self, sample_telemetry):
        stats = build_telemetry_summary(sample_telemetry)["stats"]
        assert stats["_distance_traveled"]["total"] == pytest.approx(222.39, abs=1)
        assert stats["_longest_segment"]["meters"] == pytest.approx(111.19, abs=1)
        assert stats["_max_distance_from_launch"]["meters"] == pytest.approx(222.39, abs=1)

    def test_no_gps_gives_none(self):
        assert build_telemetry_summary({"altitude": _channel([1])}) is None
