"""Tests for ReplayConnection."""

from __future__ import annotations

from unittest.mock import MagicMock, call

from replay_director.telemetry.connection import ReplayConnection
from replay_director.telemetry.models import CameraGroup


def make_sdk(values: dict | None = None, is_initialized: bool = True) -> MagicMock:
    """Create a mock iRacing SDK whose ``sdk[key]`` lookups read from *values*."""
    data = {
        "ReplayFrameNum": 1000,
        "ReplayFrameNumEnd": 5000,
        "SessionTime": 42.0,
        "CarIdxPosition": [0, 1],
        "CarIdxLap": [0, 2],
        "CarIdxLapDistPct": [0.0, 0.25],
        "CarIdxTrackSurface": [3, 3],
        "DriverInfo": {
            "Drivers": [
                {"CarIdx": 0, "CarNumberRaw": 0, "UserName": "Pace Car"},
                {"CarIdx": 1, "CarNumberRaw": 7, "UserName": "Driver Seven"},
            ]
        },
        "WeekendInfo": {"TrackDisplayName": "Spa-Francorchamps"},
        "SessionNum": 2,
        "SessionInfo": {
            "Sessions": [
                {"SessionNum": 0, "SessionType": "Practice"},
                {"SessionNum": 2, "SessionType": "Race"},
            ]
        },
        "CameraInfo": {
            "Groups": [
                {"GroupNum": 1, "GroupName": "Nose"},
                {"GroupNum": 10, "GroupName": "TV1"},
            ]
        },
    }
    data.update(values or {})
    sdk = MagicMock()
    sdk.startup.return_value = is_initialized
    sdk.__getitem__.side_effect = lambda key: data.get(key)
    return sdk


def make_conn(sdk: MagicMock, sleep: MagicMock | None = None) -> ReplayConnection:
    return ReplayConnection(sdk=sdk, _sleep=sleep or MagicMock())


# ---------------------------------------------------------------------------
# Connection state
# ---------------------------------------------------------------------------


def test_connect_returns_true_when_iracing_running():
    conn = make_conn(make_sdk())
    assert conn.connect() is True
    assert conn.is_connected is True


def test_connect_does_not_raise_when_sdk_fails():
    sdk = make_sdk()
    sdk.startup.side_effect = OSError("shared memory not available")
    conn = make_conn(sdk)
    assert conn.connect() is False


def test_callbacks_fire_on_connect_and_disconnect():
    conn = make_conn(make_sdk())
    cb = MagicMock()
    conn.register_callback(cb)
    conn.connect()
    conn.disconnect()
    assert cb.call_args_list == [call(True), call(False)]


def test_callback_not_fired_on_same_state():
    conn = make_conn(make_sdk(is_initialized=False))
    cb = MagicMock()
    conn.register_callback(cb)
    conn.connect()
    cb.assert_not_called()


# ---------------------------------------------------------------------------
# Replay control
# ---------------------------------------------------------------------------


def test_current_and_final_frame():
    conn = make_conn(make_sdk())
    assert conn.current_frame == 1000
    assert conn.final_frame == 6000


def test_seek_sets_play_position_and_waits():
    sdk = make_sdk()
    sleep = MagicMock()
    conn = ReplayConnection(sdk=sdk, settle_s=0.25, _sleep=sleep)
    conn.seek(1800)
    sdk.replay_set_play_position.assert_called_once_with(0, 1800)
    sleep.assert_called_once_with(0.25)


def test_seek_without_settle_does_not_sleep():
    sleep = MagicMock()
    conn = ReplayConnection(sdk=make_sdk(), settle_s=0, _sleep=sleep)
    conn.seek(10)
    sleep.assert_not_called()


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def test_capture_snapshot_parses_current_data():
    conn = make_conn(make_sdk())
    snap = conn.capture_snapshot(1060)
    assert snap is not None
    assert snap.frame == 1060
    assert snap.session_time == 42.0
    assert snap.driver(7).lap_distance == 0.25


def test_capture_snapshot_none_without_driver_list():
    conn = make_conn(make_sdk({"DriverInfo": None}))
    assert conn.capture_snapshot(0) is None


def test_session_metadata_reads_track_and_session_type():
    meta = make_conn(make_sdk()).session_metadata()
    assert meta.track_name == "Spa-Francorchamps"
    assert meta.session_type == "Race"


def test_session_metadata_defaults_when_missing():
    sdk = make_sdk({"WeekendInfo": None, "SessionInfo": None, "SessionNum": None})
    meta = make_conn(sdk).session_metadata()
    assert meta.track_name == "Unknown Track"
    assert meta.session_type == "Race"


def test_camera_groups():
    groups = make_conn(make_sdk()).camera_groups()
    assert groups == [CameraGroup(1, "Nose"), CameraGroup(10, "TV1")]
