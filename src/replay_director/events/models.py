"""Race event models produced by the detectors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RaceEventType(str, Enum):
    INCIDENT = "Incident"
    OVERTAKE = "Overtake"
    BATTLE = "Battle"
    PIT_STOP = "PitStop"
    RACE_START = "RaceStart"
    RACE_FINISH = "RaceFinish"


@dataclass(frozen=True)
class RaceEvent:
    """A discrete racing moment found in the snapshot sequence.

    ``importance`` is on a 0–10 scale. ``duration_frames`` is how long the
    moment stays relevant after ``frame``.
    """

    frame: int
    session_time: float
    event_type: RaceEventType
    primary_car: int
    description: str
    importance: int
    duration_frames: int
    primary_name: str = ""
    secondary_car: int | None = None
    secondary_name: str | None = None
    position: int | None = None
    lap_distance: float | None = None

    @property
    def end_frame(self) -> int:
        return self.frame + self.duration_frames

    def covers(self, frame: int) -> bool:
        """True if *frame* lies inside ``[frame, frame + duration_frames]``."""
        return self.frame <= frame <= self.end_frame

    def to_dict(self) -> dict:
        return {
            "frame": self.frame,
            "session_time": self.session_time,
            "event_type": self.event_type.value,
            "primary_car": self.primary_car,
            "primary_name": self.primary_name,
            "secondary_car": self.secondary_car,
            "secondary_name": self.secondary_name,
            "position": self.position,
            "lap_distance": self.lap_distance,
            "description": self.description,
            "importance": self.importance,
            "duration_frames": self.duration_frames,
        }

    def __str__(self) -> str:
        return f"[{self.event_type.value}] Frame {self.frame}: {self.description}"
