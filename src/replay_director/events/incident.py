"""IncidentDetector — off-track excursions and probable spins."""

from __future__ import annotations

from collections.abc import Sequence

from replay_director.events.base import EventDetector, FrameCooldown
from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.telemetry.models import DriverSnapshot, TelemetrySnapshot, TrackSurface

# Backward lap-distance jump that counts as a spin: larger than sensor noise,
# smaller than a lap wraparound.
_SPIN_MIN_DELTA = -0.5
_SPIN_MAX_DELTA = -0.01


def incident_importance(position: int) -> int:
    if position <= 3:
        return 10
    if position <= 5:
        return 8
    if position <= 10:
        return 6
    return 4


class IncidentDetector(EventDetector):
    """Emits an Incident when a car leaves the track or appears to spin.

    Parameters
    ----------
    cooldown_frames:
        Minimum frames between two incidents for the same car.
    off_track_duration:
        ``duration_frames`` of an off-track incident.
    spin_duration:
        ``duration_frames`` of a spin incident.
    """

    event_type = RaceEventType.INCIDENT

    def __init__(
        self,
        cooldown_frames: int = 300,
        off_track_duration: int = 180,
        spin_duration: int = 240,
    ) -> None:
        self._cooldown_frames = cooldown_frames
        self._off_track_duration = off_track_duration
        self._spin_duration = spin_duration

    def _detect(self, snapshots: Sequence[TelemetrySnapshot]) -> list[RaceEvent]:
        events: list[RaceEvent] = []
        cooldown = FrameCooldown(self._cooldown_frames)

        for prev_snap, snap in zip(snapshots, snapshots[1:]):
            previous = prev_snap.by_number()
            for cur in snap.drivers:
                prev = previous.get(cur.car_number)
                if prev is None:
                    continue

                kind = self._classify(prev, cur)
                if kind is None:
                    continue
                if not cooldown.can_fire(cur.car_number, snap.frame):
                    continue
                cooldown.mark_fired(cur.car_number, snap.frame)

                if kind == "off":
                    what, duration = "went off track", self._off_track_duration
                else:
                    what, duration = "possible spin", self._spin_duration

                events.append(
                    RaceEvent(
                        frame=snap.frame,
                        session_time=snap.session_time,
                        event_type=RaceEventType.INCIDENT,
                        primary_car=cur.car_number,
                        primary_name=cur.team_name,
                        position=cur.position,
                        lap_distance=cur.lap_distance,
                        description=f"#{cur.car_number} {cur.team_name} {what}",
                        importance=incident_importance(cur.position),
                        duration_frames=duration,
                    )
                )

        return events

    @staticmethod
    def _classify(prev: DriverSnapshot, cur: DriverSnapshot) -> str | None:
        if prev.surface != TrackSurface.ON_TRACK:
            return None
        if cur.surface == TrackSurface.OFF_TRACK:
            return "off"
        if cur.surface == TrackSurface.ON_TRACK:
            delta = cur.lap_distance - prev.lap_distance
            if _SPIN_MIN_DELTA < delta < _SPIN_MAX_DELTA:
                return "spin"
        return None
