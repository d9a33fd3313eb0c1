"""BattleDetector — sustained close racing between adjacent positions."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from replay_director.events.base import EventDetector
from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.telemetry.models import DriverSnapshot, TelemetrySnapshot


def lap_gap(leader: DriverSnapshot, follower: DriverSnapshot) -> float:
    """Gap between two cars as a fraction of a lap.

    When the leader is one or more laps ahead the gap wraps through the
    start/finish line and includes the whole laps in between.
    """
    if leader.lap == follower.lap:
        gap = leader.lap_distance - follower.lap_distance
    elif leader.lap > follower.lap:
        gap = (1.0 - follower.lap_distance) + leader.lap_distance + (leader.lap - follower.lap - 1)
    else:
        gap = leader.lap_distance - follower.lap_distance
    return abs(gap)


def battle_importance(position: int, duration_frames: int) -> int:
    if position == 1:
        score = 10
    elif position <= 3:
        score = 8
    elif position <= 5:
        score = 7
    elif position <= 10:
        score = 6
    else:
        score = 5
    if duration_frames > 600:
        score += 1
    if duration_frames > 1200:
        score += 1
    return min(score, 10)


@dataclass
class _OngoingBattle:
    start_frame: int
    last_frame: int
    session_time: float
    leader: DriverSnapshot
    follower: DriverSnapshot
    position: int
    closest_gap: float = float("inf")

    @property
    def duration(self) -> int:
        return self.last_frame - self.start_frame


class BattleDetector(EventDetector):
    """Emits a Battle when two adjacent on-track cars stay within a lap-fraction
    gap for long enough.

    Parameters
    ----------
    gap_threshold:
        Maximum gap (fraction of a lap) that counts as battling.
    min_duration_frames:
        Shortest battle that is reported.
    min_frames_between:
        Minimum spacing between two reported battles for the same pair.
    """

    event_type = RaceEventType.BATTLE

    def __init__(
        self,
        gap_threshold: float = 0.02,
        min_duration_frames: int = 300,
        min_frames_between: int = 600,
    ) -> None:
        self.gap_threshold = gap_threshold
        self._min_duration = min_duration_frames
        self._min_between = min_frames_between

    def _detect(self, snapshots: Sequence[TelemetrySnapshot]) -> list[RaceEvent]:
        events: list[RaceEvent] = []
        ongoing: dict[frozenset[int], _OngoingBattle] = {}
        last_emitted: dict[frozenset[int], int] = {}

        for snap in snapshots:
            running = sorted(
                (d for d in snap.drivers if d.is_on_track and d.has_valid_position),
                key=lambda d: d.position,
            )
            for leader, follower in zip(running, running[1:]):
                key = frozenset((leader.car_number, follower.car_number))
                gap = lap_gap(leader, follower)

                if gap <= self.gap_threshold:
                    battle = ongoing.get(key)
                    if battle is None:
                        battle = _OngoingBattle(
                            start_frame=snap.frame,
                            last_frame=snap.frame,
                            session_time=snap.session_time,
                            leader=leader,
                            follower=follower,
                            position=leader.position,
                        )
                        ongoing[key] = battle
                    battle.last_frame = snap.frame
                    battle.closest_gap = min(battle.closest_gap, gap)
                else:
                    battle = ongoing.pop(key, None)
                    if battle is not None:
                        self._emit(battle, key, last_emitted, events)

        for key, battle in ongoing.items():
            self._emit(battle, key, last_emitted, events)

        return events

    def _emit(
        self,
        battle: _OngoingBattle,
        key: frozenset[int],
        last_emitted: dict[frozenset[int], int],
        events: list[RaceEvent],
    ) -> None:
        if battle.duration < self._min_duration:
            return
        last = last_emitted.get(key)
        if last is not None and battle.start_frame - last < self._min_between:
            return
        last_emitted[key] = battle.start_frame

        lead, follow = battle.leader, battle.follower
        events.append(
            RaceEvent(
                frame=battle.start_frame,
                session_time=battle.session_time,
                event_type=RaceEventType.BATTLE,
                primary_car=lead.car_number,
                primary_name=lead.team_name or "Unknown",
                secondary_car=follow.car_number,
                secondary_name=follow.team_name or "Unknown",
                position=battle.position,
                description=(
                    f"Battle for P{battle.position}: #{lead.car_number} vs #{follow.car_number}"
                    f" (closest {battle.closest_gap * 100:.1f}% of a lap)"
                ),
                importance=battle_importance(battle.position, battle.duration),
                duration_frames=battle.duration,
            )
        )
