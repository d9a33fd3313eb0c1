"""Tests for SnapshotParser."""

from __future__ import annotations

import math

import pytest

from replay_director.telemetry.models import TelemetrySnapshot, TrackSurface
from replay_director.telemetry.parser import SnapshotParser

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_raw(**overrides) -> dict:
    """Return raw SDK arrays for three car slots (pace car, #7, #42)."""
    base = {
        "SessionTime": 125.5,
        "CarIdxPosition": [0, 1, 2],
        "CarIdxLap": [0, 4, 4],
        "CarIdxLapDistPct": [0.1, 0.55, 0.53],
        "CarIdxTrackSurface": [3, 3, 0],
    }
    base.update(overrides)
    return base


def make_drivers() -> list[dict]:
    return [
        {"CarIdx": 0, "CarNumberRaw": 0, "UserName": "Pace Car", "IsSpectator": 0},
        {"CarIdx": 1, "CarNumberRaw": 7, "TeamName": "Blue Racing", "UserName": "A. Driver"},
        {"CarIdx": 2, "CarNumberRaw": 42, "UserName": "B. Driver"},
    ]


@pytest.fixture
def parser() -> SnapshotParser:
    return SnapshotParser()


# ---------------------------------------------------------------------------
# Basic mapping
# ---------------------------------------------------------------------------


def test_parse_returns_snapshot(parser):
    snap = parser.parse(600, make_raw(), make_drivers())
    assert isinstance(snap, TelemetrySnapshot)
    assert snap.frame == 600
    assert snap.session_time == pytest.approx(125.5)
    assert len(snap.drivers) == 3


def test_parse_maps_car_idx_arrays(parser):
    snap = parser.parse(600, make_raw(), make_drivers())
    d = snap.driver(42)
    assert d is not None
    assert d.car_idx == 2
    assert d.position == 2
    assert d.lap == 4
    assert d.lap_distance == pytest.approx(0.53)
    assert d.surface == TrackSurface.OFF_TRACK


def test_team_name_preferred_over_user_name(parser):
    snap = parser.parse(0, make_raw(), make_drivers())
    assert snap.driver(7).team_name == "Blue Racing"
    assert snap.driver(42).team_name == "B. Driver"


def test_spectators_are_skipped(parser):
    drivers = make_drivers() + [{"CarIdx": 3, "CarNumberRaw": 99, "IsSpectator": 1}]
    snap = parser.parse(0, make_raw(), drivers)
    assert snap.driver(99) is None


def test_driver_without_number_is_skipped(parser):
    drivers = [{"CarIdx": 1, "UserName": "Nobody"}]
    snap = parser.parse(0, make_raw(), drivers)
    assert snap.drivers == ()


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------


def test_lap_distance_clamped(parser):
    raw = make_raw(CarIdxLapDistPct=[0.0, 1.7, -0.2])
    snap = parser.parse(0, raw, make_drivers())
    assert snap.driver(7).lap_distance == 1.0
    assert snap.driver(42).lap_distance == 0.0


def test_nan_lap_distance_becomes_zero(parser):
    raw = make_raw(CarIdxLapDistPct=[0.0, math.nan, 0.5])
    snap = parser.parse(0, raw, make_drivers())
    assert snap.driver(7).lap_distance == 0.0


def test_negative_lap_clamped_to_zero(parser):
    raw = make_raw(CarIdxLap=[0, -1, 4])
    snap = parser.parse(0, raw, make_drivers())
    assert snap.driver(7).lap == 0


def test_missing_arrays_use_defaults(parser):
    snap = parser.parse(0, {"SessionTime": None}, make_drivers())
    d = snap.driver(7)
    assert d.position == 0
    assert d.surface == TrackSurface.NOT_IN_WORLD
    assert snap.session_time == 0.0


def test_unknown_surface_value_is_not_in_world(parser):
    raw = make_raw(CarIdxTrackSurface=[3, 17, 3])
    snap = parser.parse(0, raw, make_drivers())
    assert snap.driver(7).surface == TrackSurface.NOT_IN_WORLD


def test_valid_position_and_on_track_flags(parser):
    snap = parser.parse(0, make_raw(), make_drivers())
    assert snap.driver(7).is_on_track is True
    assert snap.driver(42).is_on_track is False
    assert snap.driver(0).has_valid_position is False
    assert snap.driver(7).has_valid_position is True
