"""OvertakeDetector — position gains between consecutive snapshots."""

from __future__ import annotations

from collections.abc import Sequence

from replay_director.events.base import EventDetector, FrameCooldown
from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.telemetry.models import TelemetrySnapshot


def overtake_importance(new_position: int, positions_gained: int) -> int:
    if new_position == 1:
        score = 10
    elif new_position <= 3:
        score = 8
    elif new_position <= 5:
        score = 7
    elif new_position <= 10:
        score = 6
    else:
        score = 5
    if positions_gained > 1:
        score += positions_gained - 1
    return min(score, 10)


class OvertakeDetector(EventDetector):
    """Emits an Overtake when an on-track car's position number decreases.

    The passed car is whichever other car now holds the mover's previous
    position; it may be absent.
    """

    event_type = RaceEventType.OVERTAKE

    def __init__(self, cooldown_frames: int = 120, duration_frames: int = 300) -> None:
        self._cooldown_frames = cooldown_frames
        self._duration_frames = duration_frames

    def _detect(self, snapshots: Sequence[TelemetrySnapshot]) -> list[RaceEvent]:
        events: list[RaceEvent] = []
        cooldown = FrameCooldown(self._cooldown_frames)

        for prev_snap, snap in zip(snapshots, snapshots[1:]):
            previous = prev_snap.by_number()
            for cur in snap.drivers:
                prev = previous.get(cur.car_number)
                if prev is None or not cur.is_on_track:
                    continue
                if not (prev.position > 0 and cur.position < prev.position):
                    continue
                if not cooldown.can_fire(cur.car_number, snap.frame):
                    continue
                cooldown.mark_fired(cur.car_number, snap.frame)

                passed = next(
                    (
                        d
                        for d in snap.drivers
                        if d.position == prev.position and d.car_number != cur.car_number
                    ),
                    None,
                )
                name = cur.team_name or "Unknown"
                if passed is not None:
                    description = (
                        f"#{cur.car_number} {name} passes #{passed.car_number} for P{cur.position}"
                    )
                else:
                    description = f"#{cur.car_number} {name} moves to P{cur.position}"

                events.append(
                    RaceEvent(
                        frame=snap.frame,
                        session_time=snap.session_time,
                        event_type=RaceEventType.OVERTAKE,
                        primary_car=cur.car_number,
                        primary_name=name,
                        secondary_car=passed.car_number if passed else None,
                        secondary_name=passed.team_name if passed else None,
                        position=cur.position,
                        lap_distance=cur.lap_distance,
                        description=description,
                        importance=overtake_importance(cur.position, prev.position - cur.position),
                        duration_frames=self._duration_frames,
                    )
                )

        return events
