"""Snapshot data models captured from a replay."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class TrackSurface(IntEnum):
    """Where a car is, using the iRacing ``irsdk_TrkLoc`` values."""

    NOT_IN_WORLD = -1
    OFF_TRACK = 0
    IN_PIT_STALL = 1
    APPROACHING_PITS = 2
    ON_TRACK = 3

    @classmethod
    def from_raw(cls, value: int) -> TrackSurface:
        """Map a raw SDK value to a member; unknown values are NOT_IN_WORLD."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.NOT_IN_WORLD


@dataclass(frozen=True)
class DriverSnapshot:
    """State of a single car at one sampled frame."""

    car_idx: int
    car_number: int
    """Raw car number; 0 is the pace car."""

    team_name: str
    position: int
    """Running position, 1 = leader. 0 or negative means invalid."""

    lap: int
    lap_distance: float
    """Fraction of the current lap completed [0.0, 1.0]."""

    surface: TrackSurface

    @property
    def is_on_track(self) -> bool:
        return self.surface == TrackSurface.ON_TRACK

    @property
    def has_valid_position(self) -> bool:
        return self.position > 0


@dataclass(frozen=True)
class TelemetrySnapshot:
    """All car states captured at one replay frame."""

    frame: int
    session_time: float
    drivers: tuple[DriverSnapshot, ...] = field(default_factory=tuple)

    def driver(self, car_number: int) -> DriverSnapshot | None:
        """Return the state of *car_number*, or None if it is not present."""
        for d in self.drivers:
            if d.car_number == car_number:
                return d
        return None

    def by_number(self) -> dict[int, DriverSnapshot]:
        return {d.car_number: d for d in self.drivers}


@dataclass(frozen=True)
class SessionMetadata:
    track_name: str = "Unknown Track"
    session_type: str = "Race"


@dataclass(frozen=True)
class CameraGroup:
    """A named camera group available in the session."""

    group_num: int
    group_name: str
