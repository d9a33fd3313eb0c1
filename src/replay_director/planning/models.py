"""Camera plan and scan result models."""

from __future__ import annotations

import bisect
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime

from replay_director.events.models import RaceEvent
from replay_director.telemetry.models import CameraGroup, TelemetrySnapshot


@dataclass
class CameraAction:
    """A single camera-angle switch at *frame*.

    ``car_number`` is a legacy override; ``None`` means the car is chosen by
    the excitement scorer when the plan is applied.
    """

    frame: int
    camera_name: str
    car_number: int | None = None
    duration_s: int = 0
    reason: str = ""


@dataclass
class CameraPlan:
    """Ordered camera actions plus provenance."""

    actions: list[CameraAction] = field(default_factory=list)
    generated_by: str = ""
    generated_at: datetime = field(default_factory=datetime.now)
    total_duration_frames: int = 0

    def sorted_actions(self) -> list[CameraAction]:
        """Return actions in non-decreasing frame order (stable)."""
        return sorted(self.actions, key=lambda a: a.frame)

    def to_dict(self) -> dict:
        return {
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat(),
            "total_duration_frames": self.total_duration_frames,
            "actions": [dataclasses.asdict(a) for a in self.actions],
        }


@dataclass
class ScanResult:
    """Everything captured by one scan pass.

    ``snapshots`` are ordered by frame and ``events`` are sorted by frame.
    """

    start_frame: int
    end_frame: int
    track_name: str = "Unknown Track"
    session_type: str = "Race"
    snapshots: list[TelemetrySnapshot] = field(default_factory=list)
    events: list[RaceEvent] = field(default_factory=list)
    cameras: list[CameraGroup] = field(default_factory=list)
    fps: int = 60

    @property
    def total_frames(self) -> int:
        return self.end_frame - self.start_frame

    @property
    def duration_s(self) -> float:
        return self.total_frames / self.fps

    def nearest_snapshot(self, frame: int) -> TelemetrySnapshot | None:
        """Return the snapshot closest to *frame*; ties go to the earlier one."""
        if not self.snapshots:
            return None
        frames = [s.frame for s in self.snapshots]
        idx = bisect.bisect_left(frames, frame)
        if idx == 0:
            return self.snapshots[0]
        if idx == len(frames):
            return self.snapshots[-1]
        before, after = self.snapshots[idx - 1], self.snapshots[idx]
        return before if frame - before.frame <= after.frame - frame else after


@dataclass
class DriverSummary:
    car_number: int
    team_name: str
    start_position: int
    end_position: int

    @property
    def positions_gained(self) -> int:
        return self.start_position - self.end_position


@dataclass
class EventSummary:
    """Serializable description of a scanned session sent to a plan provider."""

    track_name: str
    session_type: str
    start_frame: int
    end_frame: int
    duration_minutes: float
    frame_rate: int = 60
    drivers: list[DriverSummary] = field(default_factory=list)
    cameras: list[CameraGroup] = field(default_factory=list)
    events: list[RaceEvent] = field(default_factory=list)

    @property
    def total_frames(self) -> int:
        return self.end_frame - self.start_frame

    @property
    def camera_names(self) -> list[str]:
        return [c.group_name for c in self.cameras]

    def ranked_events(self) -> list[RaceEvent]:
        """Events by importance (highest first), then frame."""
        return sorted(self.events, key=lambda e: (-e.importance, e.frame))

    def to_dict(self) -> dict:
        return {
            "track_name": self.track_name,
            "session_type": self.session_type,
            "start_frame": self.start_frame,
            "end_frame": self.end_frame,
            "total_frames": self.total_frames,
            "frame_rate": self.frame_rate,
            "duration_minutes": self.duration_minutes,
            "cameras": self.camera_names,
            "drivers": [dataclasses.asdict(d) for d in self.drivers],
            "events": [
                {
                    "frame": e.frame,
                    "type": e.event_type.value,
                    "description": e.description,
                    "importance": e.importance,
                }
                for e in self.ranked_events()
            ],
        }
