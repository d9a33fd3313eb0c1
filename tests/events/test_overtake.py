"""Tests for OvertakeDetector."""

from __future__ import annotations

import pytest

from replay_director.events.models import RaceEventType
from replay_director.events.overtake import OvertakeDetector, overtake_importance
from replay_director.telemetry.models import DriverSnapshot, TelemetrySnapshot, TrackSurface


def _driver(number: int, position: int, surface=TrackSurface.ON_TRACK, dist: float = 0.5):
    return DriverSnapshot(
        car_idx=number,
        car_number=number,
        team_name=f"Team {number}",
        position=position,
        lap=3,
        lap_distance=dist,
        surface=surface,
    )


def _snap(frame: int, *drivers: DriverSnapshot) -> TelemetrySnapshot:
    return TelemetrySnapshot(frame=frame, session_time=frame / 60.0, drivers=tuple(drivers))


@pytest.fixture
def detector() -> OvertakeDetector:
    return OvertakeDetector()


# ---------------------------------------------------------------------------
# End-to-end scenario
# ---------------------------------------------------------------------------


def test_two_car_pass_at_frame_500():
    """Car A (#11) passes car B (#22) for the lead at frame 500."""
    snaps = []
    for frame in range(0, 1001, 50):
        if frame < 500:
            a, b = _driver(11, 2), _driver(22, 1)
        else:
            a, b = _driver(11, 1), _driver(22, 2)
        snaps.append(_snap(frame, a, b))

    events = OvertakeDetector().detect(snaps)

    assert len(events) == 1
    evt = events[0]
    assert evt.event_type == RaceEventType.OVERTAKE
    assert evt.frame == 500
    assert evt.primary_car == 11
    assert evt.secondary_car == 22
    assert evt.importance == 10
    assert evt.position == 1
    assert evt.duration_frames == 300
    assert "passes #22 for P1" in evt.description


# ---------------------------------------------------------------------------
# Detection rules
# ---------------------------------------------------------------------------


def test_position_loss_is_not_an_overtake(detector):
    snaps = [_snap(0, _driver(5, 3)), _snap(60, _driver(5, 4))]
    assert detector.detect(snaps) == []


def test_previous_invalid_position_ignored(detector):
    snaps = [_snap(0, _driver(5, 0)), _snap(60, _driver(5, 3))]
    assert detector.detect(snaps) == []


def test_off_track_car_not_credited(detector):
    snaps = [_snap(0, _driver(5, 4)), _snap(60, _driver(5, 3, TrackSurface.IN_PIT_STALL))]
    assert detector.detect(snaps) == []


def test_passed_car_may_be_absent(detector):
    snaps = [_snap(0, _driver(5, 4)), _snap(60, _driver(5, 3))]
    events = detector.detect(snaps)
    assert len(events) == 1
    assert events[0].secondary_car is None
    assert "moves to P3" in events[0].description


def test_only_emits_on_strict_position_decrease(detector):
    positions = [6, 6, 5, 5, 7, 4, 4, 9, 2]
    snaps = [_snap(i * 200, _driver(5, p)) for i, p in enumerate(positions)]
    events = detector.detect(snaps)
    for evt in events:
        idx = evt.frame // 200
        assert positions[idx] < positions[idx - 1]
    assert [e.frame for e in events] == [400, 1000, 1600]


def test_debounced_per_car_at_120_frames(detector):
    snaps = [
        _snap(0, _driver(5, 6)),
        _snap(60, _driver(5, 5)),
        _snap(120, _driver(5, 4)),
        _snap(180, _driver(5, 3)),
    ]
    events = detector.detect(snaps)
    assert [e.frame for e in events] == [60, 180]


# ---------------------------------------------------------------------------
# Importance
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "new_position, gained, expected",
    [
        (1, 1, 10),
        (2, 1, 8),
        (3, 1, 8),
        (5, 1, 7),
        (8, 1, 6),
        (14, 1, 5),
        (14, 3, 7),
        (4, 2, 8),
        (2, 5, 10),
    ],
)
def test_overtake_importance(new_position, gained, expected):
    assert overtake_importance(new_position, gained) == expected
