"""SnapshotParser — converts raw iRacing SDK data to TelemetrySnapshot."""

from __future__ import annotations

import math

from replay_director.telemetry.models import DriverSnapshot, TelemetrySnapshot, TrackSurface

# Per-car telemetry arrays read from the SDK, indexed by CarIdx.
CAR_IDX_KEYS: tuple[str, ...] = (
    "CarIdxPosition",
    "CarIdxLap",
    "CarIdxLapDistPct",
    "CarIdxTrackSurface",
)


def _sanitize(value: float, lo: float | None, hi: float | None) -> float:
    """Return value clamped to [lo, hi], with NaN/Inf replaced by lo (or 0)."""
    if not math.isfinite(value):
        value = lo if lo is not None else 0.0
    if lo is not None and value < lo:
        value = lo
    if hi is not None and value > hi:
        value = hi
    return value


def _at(values, idx: int, default):
    if values is None or idx < 0 or idx >= len(values):
        return default
    value = values[idx]
    return default if value is None else value


class SnapshotParser:
    """Parses raw iRacing telemetry plus the ``DriverInfo.Drivers`` list into a
    :class:`TelemetrySnapshot`.

    The raw dict uses SDK field names (``"SessionTime"``, ``"CarIdxPosition"``...).
    Lap distance is clamped to [0.0, 1.0]; negative laps are clamped to 0.
    Spectator slots and entries without a car number are skipped.
    """

    def parse(self, frame: int, raw: dict, drivers: list[dict]) -> TelemetrySnapshot:
        """Convert one raw sample at *frame* to a :class:`TelemetrySnapshot`."""
        positions = raw.get("CarIdxPosition")
        laps = raw.get("CarIdxLap")
        dists = raw.get("CarIdxLapDistPct")
        surfaces = raw.get("CarIdxTrackSurface")

        states: list[DriverSnapshot] = []
        for info in drivers:
            if info.get("IsSpectator"):
                continue
            idx = int(info.get("CarIdx", -1))
            number = info.get("CarNumberRaw")
            if idx < 0 or number is None:
                continue
            states.append(
                DriverSnapshot(
                    car_idx=idx,
                    car_number=int(number),
                    team_name=str(info.get("TeamName") or info.get("UserName") or ""),
                    position=int(_at(positions, idx, 0)),
                    lap=max(0, int(_at(laps, idx, 0))),
                    lap_distance=_sanitize(float(_at(dists, idx, 0.0)), 0.0, 1.0),
                    surface=TrackSurface.from_raw(_at(surfaces, idx, -1)),
                )
            )

        session_time = _sanitize(float(raw.get("SessionTime") or 0.0), 0.0, None)
        return TelemetrySnapshot(frame=frame, session_time=session_time, drivers=tuple(states))
