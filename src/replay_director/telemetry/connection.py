"""ReplayConnection — drives an iRacing replay through the SDK and captures snapshots."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from replay_director.telemetry.models import CameraGroup, SessionMetadata, TelemetrySnapshot
from replay_director.telemetry.parser import CAR_IDX_KEYS, SnapshotParser

_RPY_POS_BEGIN = 0  # irsdk.RpyPosMode.begin


class ReplayConnection:
    """Manages the connection to the iRacing shared-memory SDK for replay scanning.

    Parameters
    ----------
    sdk:
        An iRacing SDK instance (``irsdk.IRSDK()``). Injected for testability;
        defaults to the real SDK when not provided.
    settle_s:
        Seconds to wait after seeking so the simulator can publish telemetry
        for the new replay position.
    _sleep:
        Sleep function, injectable for testing.
    """

    def __init__(
        self,
        sdk: Any | None = None,
        settle_s: float = 0.1,
        _sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if sdk is None:
            import irsdk  # lazy import — irsdk is only needed at runtime

            sdk = irsdk.IRSDK()
        self._sdk = sdk
        self._settle_s = settle_s
        self._sleep = _sleep
        self._parser = SnapshotParser()
        self._connected: bool = False
        self._callbacks: list[Callable[[bool], None]] = []

    # ------------------------------------------------------------------
    # Connection state
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        """True when the SDK has successfully connected to iRacing."""
        return self._connected

    def connect(self) -> bool:
        """Attempt to connect to iRacing.

        Returns True if iRacing is running and the connection succeeded,
        False otherwise (never raises).
        """
        try:
            initialized = bool(self._sdk.startup())
        except Exception:
            initialized = False

        if initialized != self._connected:
            self._connected = initialized
            self._fire_callbacks(initialized)

        return self._connected

    def disconnect(self) -> None:
        """Disconnect from iRacing and notify callbacks."""
        self._sdk.shutdown()
        if self._connected:
            self._connected = False
            self._fire_callbacks(False)

    def register_callback(self, callback: Callable[[bool], None]) -> None:
        """Register *callback* to be called whenever connection state changes."""
        self._callbacks.append(callback)

    # ------------------------------------------------------------------
    # Telemetry source
    # ------------------------------------------------------------------

    @property
    def current_frame(self) -> int:
        return int(self._sdk["ReplayFrameNum"] or 0)

    @property
    def final_frame(self) -> int:
        # ReplayFrameNumEnd counts frames remaining until the end of the tape.
        return self.current_frame + int(self._sdk["ReplayFrameNumEnd"] or 0)

    def seek(self, frame: int) -> None:
        """Jump the replay to *frame* and wait for telemetry to catch up."""
        self._sdk.replay_set_play_position(_RPY_POS_BEGIN, frame)
        if self._settle_s > 0:
            self._sleep(self._settle_s)

    def capture_snapshot(self, frame: int) -> TelemetrySnapshot | None:
        """Return the car states at the current replay position, or None when
        the SDK has no driver list yet."""
        driver_info = self._sdk["DriverInfo"] or {}
        drivers = driver_info.get("Drivers") or []
        if not drivers:
            return None
        raw = {k: self._sdk[k] for k in CAR_IDX_KEYS}
        raw["SessionTime"] = self._sdk["SessionTime"]
        return self._parser.parse(frame, raw, drivers)

    def session_metadata(self) -> SessionMetadata:
        """Return track and session labels; falls back to defaults on missing data."""
        try:
            weekend = self._sdk["WeekendInfo"] or {}
            track = weekend.get("TrackDisplayName") or weekend.get("TrackName") or "Unknown Track"
            session_num = int(self._sdk["SessionNum"] or 0)
            sessions = (self._sdk["SessionInfo"] or {}).get("Sessions") or []
            session_type = "Race"
            for s in sessions:
                if int(s.get("SessionNum", -1)) == session_num:
                    session_type = s.get("SessionType") or "Race"
                    break
        except (AttributeError, TypeError, ValueError):
            return SessionMetadata()
        return SessionMetadata(track_name=str(track), session_type=str(session_type))

    def camera_groups(self) -> list[CameraGroup]:
        """Return the camera groups published in ``CameraInfo``."""
        info = self._sdk["CameraInfo"] or {}
        return [
            CameraGroup(group_num=int(g["GroupNum"]), group_name=str(g.get("GroupName") or ""))
            for g in info.get("Groups") or []
            if "GroupNum" in g
        ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fire_callbacks(self, state: bool) -> None:
        for cb in self._callbacks:
            cb(state)
