"""ExcitementScorer — picks the most worthwhile car to show at a frame.

Scoring is tiered so that variety yields to action without ever vanishing:

* Action components (event proximity, active battle, momentum, pack,
  fresh pass) sum to ``action_score``; ``action_level = min(1, action/150)``.
* Position interest is scaled down by up to 50% as action rises.
* Recently shown cars pay a decaying variety penalty that action can dampen
  by at most ``variety_dampening`` percent, never below 40% of nominal.
* Overexposed cars pay extra, back-markers get a periodic diversity bump,
  and an optional focus car gets a flat bonus.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field

from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.planning.models import ScanResult
from replay_director.scoring.history import SelectionHistory
from replay_director.settings import DirectorSettings
from replay_director.telemetry.models import DriverSnapshot, TelemetrySnapshot, TrackSurface

_logger = logging.getLogger(__name__)

EVENT_WINDOW_FRAMES = 480
MOMENTUM_WINDOW_FRAMES = 3600
FRESH_ACTION_WINDOW_FRAMES = 1200
PACK_GAP = 0.03
ACTION_SATURATION = 150.0
SECONDARY_EVENT_SHARE = 0.8
SECONDARY_FRESH_SHARE = 0.6
VARIETY_PENALTIES = (60, 40, 25, 15, 10, 8, 6, 4)
VARIETY_FLOOR = 0.4
OVEREXPOSURE_STEP = 10
OVEREXPOSURE_CAP = 40
DIVERSITY_EVERY = 5

# Baselines that turn a configured weight into a multiplier.
_BATTLE_BASELINE = 35.0
_MOMENTUM_BASELINE = 25.0
_PACK_BASELINE = 15.0
_FRESH_BASELINE = 15.0
_POSITION_BASELINE = 15.0
_VARIETY_BASELINE = 60.0


@dataclass
class DriverScore:
    """Score breakdown for one car at one frame."""

    car_number: int
    position: int
    event_score: int = 0
    battle_bonus: int = 0
    momentum_bonus: int = 0
    pack_bonus: int = 0
    fresh_action_bonus: int = 0
    action_score: int = 0
    action_level: float = 0.0
    position_score: int = 0
    variety_penalty: int = 0
    total: int = 0
    breakdown: list[str] = field(default_factory=list)


def _proximity_multiplier(distance: int, during: bool) -> float:
    if during or distance <= 60:
        return 1.2
    if distance <= 120:
        return 1.0
    if distance <= 300:
        return 0.7
    return max(0.1, math.exp(-distance / 300.0))


def _position_tier(position: int) -> int:
    if position == 1:
        return 15
    if position == 2:
        return 12
    if position == 3:
        return 10
    if position <= 5:
        return 8
    if position <= 10:
        return 5
    if position <= 15:
        return 2
    return 1


def _pack_gap(a: DriverSnapshot, b: DriverSnapshot) -> float:
    if a.lap == b.lap:
        return abs(a.lap_distance - b.lap_distance)
    return 1.0


def is_active(driver: DriverSnapshot) -> bool:
    """In the world and not the pace car."""
    return driver.surface != TrackSurface.NOT_IN_WORLD and driver.car_number != 0


class ExcitementScorer:
    """Scores every active car at a frame and selects one.

    Parameters
    ----------
    settings:
        Weights and thresholds (read-only during a pass).
    scan:
        The scan result providing snapshots and detected events.
    history:
        Selection state owned by the caller; mutated by :meth:`select`.
    rng:
        Random source for tie-breaking. Inject ``random.Random(seed)`` for
        deterministic results.
    """

    def __init__(
        self,
        settings: DirectorSettings,
        scan: ScanResult,
        history: SelectionHistory,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.scan = scan
        self.history = history
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def active_cars(self, frame: int) -> list[DriverSnapshot]:
        snap = self.scan.nearest_snapshot(frame)
        if snap is None:
            return []
        return [d for d in snap.drivers if is_active(d)]

    def score(self, frame: int) -> dict[int, DriverScore]:
        """Return the full score breakdown of every active car at *frame*."""
        snap = self.scan.nearest_snapshot(frame)
        if snap is None:
            return {}
        active = [d for d in snap.drivers if is_active(d)]
        scores = {d.car_number: DriverScore(car_number=d.car_number, position=d.position) for d in active}
        if not scores:
            return scores

        self._score_events(frame, scores)
        self._apply_battle_bonus(frame, scores)
        self._apply_momentum_bonus(frame, scores)
        self._apply_pack_bonus(snap, scores)
        self._apply_fresh_action_bonus(frame, scores)

        position_scale = self.settings.position_weight / _POSITION_BASELINE
        for s in scores.values():
            s.action_score = (
                s.event_score + s.battle_bonus + s.momentum_bonus + s.pack_bonus + s.fresh_action_bonus
            )
            s.action_level = min(1.0, s.action_score / ACTION_SATURATION)

            multiplier = 1.0 - s.action_level * 0.5
            s.position_score = int(int(_position_tier(s.position) * position_scale) * multiplier)
            s.total = s.action_score + s.position_score
            if s.position_score > 0:
                s.breakdown.append(f"Position P{s.position}: +{s.position_score} (x{multiplier:.2f})")

        self._apply_variety_penalty(scores)
        self._apply_overexposure_penalty(scores, len(active))
        self._apply_field_diversity_bonus(scores)
        self._apply_focus_bonus(scores)
        return scores

    def select(self, frame: int) -> int | None:
        """Return the car number to show at *frame* and record the selection.

        Returns None only when the scan has no cars at all.
        """
        scores = self.score(frame)
        if not scores:
            return self._fallback(frame)

        ranked = sorted(scores.values(), key=lambda s: s.total, reverse=True)
        top = ranked[0]
        threshold = max(5, int(abs(top.total) * 0.05))
        tied = [s for s in ranked if top.total - s.total <= threshold]
        chosen = self._rng.choice(tied) if len(tied) > 1 else top

        self.history.record(chosen.car_number)
        _logger.debug(
            "frame %d: selected #%d (%d) %s", frame, chosen.car_number, chosen.total, chosen.breakdown
        )
        return chosen.car_number

    # ------------------------------------------------------------------
    # Action components
    # ------------------------------------------------------------------

    def _score_events(self, frame: int, scores: dict[int, DriverScore]) -> None:
        for evt in self.scan.events:
            distance = abs(evt.frame - frame)
            during = evt.covers(frame)
            if distance > EVENT_WINDOW_FRAMES and not during:
                continue

            mult = _proximity_multiplier(distance, during)
            points = int(self.settings.event_type_weight(evt.event_type) * mult)
            points += int(evt.importance * mult)

            primary = scores.get(evt.primary_car)
            if primary is not None:
                primary.event_score += points
                primary.breakdown.append(f"{evt.event_type.value} at frame {evt.frame}: +{points}")

            if evt.secondary_car is not None and evt.secondary_car in scores:
                share = int(points * SECONDARY_EVENT_SHARE)
                scores[evt.secondary_car].event_score += share
                scores[evt.secondary_car].breakdown.append(
                    f"{evt.event_type.value} (secondary): +{share}"
                )

    def _apply_battle_bonus(self, frame: int, scores: dict[int, DriverScore]) -> None:
        scale = self.settings.battle_weight / _BATTLE_BASELINE
        for battle in self._events_of(RaceEventType.BATTLE):
            if not battle.covers(frame):
                continue
            progress = (frame - battle.frame) / max(1, battle.duration_frames)
            if progress > 0.7:
                base = 22
            elif progress > 0.4:
                base = 18
            else:
                base = 15
            if battle.position is not None and battle.position <= 3:
                base += 5
            elif battle.position is not None and battle.position <= 5:
                base += 3

            bonus = int(base * scale)
            for car in (battle.primary_car, battle.secondary_car):
                if car is not None and car in scores:
                    scores[car].battle_bonus += bonus
                    scores[car].breakdown.append(f"Battle P{battle.position}: +{bonus}")

    def _apply_momentum_bonus(self, frame: int, scores: dict[int, DriverScore]) -> None:
        scale = self.settings.momentum_weight / _MOMENTUM_BASELINE
        for car, s in scores.items():
            if self.history.history_length(car) < 2:
                continue
            before = self.history.position_at(car, frame - MOMENTUM_WINDOW_FRAMES)
            now = self.history.position_at(car, frame)
            if before is None or now is None:
                continue

            gained = before - now
            if gained < 2:
                continue
            if gained >= 5:
                base = 30
            elif gained >= 4:
                base = 25
            elif gained >= 3:
                base = 18
            else:
                base = 12
            if now <= 3 < before:
                base += 8
            elif now <= 5 < before:
                base += 4

            s.momentum_bonus = int(base * scale)
            s.breakdown.append(f"Momentum (+{gained}): +{s.momentum_bonus}")

    def _apply_pack_bonus(self, snap: TelemetrySnapshot, scores: dict[int, DriverScore]) -> None:
        scale = self.settings.pack_weight / _PACK_BASELINE
        on_track = [d for d in snap.drivers if d.is_on_track]
        for d in on_track:
            s = scores.get(d.car_number)
            if s is None:
                continue
            nearby = sum(
                1
                for other in on_track
                if other.car_number != d.car_number and _pack_gap(d, other) <= PACK_GAP
            )
            if nearby < 1:
                continue
            if nearby >= 4:
                base = 20
            elif nearby >= 3:
                base = 15
            elif nearby >= 2:
                base = 10
            else:
                base = 6
            s.pack_bonus = int(base * scale)
            s.breakdown.append(f"Pack ({nearby + 1} cars): +{s.pack_bonus}")

    def _apply_fresh_action_bonus(self, frame: int, scores: dict[int, DriverScore]) -> None:
        scale = self.settings.fresh_action_weight / _FRESH_BASELINE
        for overtake in self._events_of(RaceEventType.OVERTAKE):
            since = frame - overtake.frame
            if not 0 <= since <= FRESH_ACTION_WINDOW_FRAMES:
                continue
            if since <= 300:
                base = 15
            elif since <= 600:
                base = 10
            elif since <= 900:
                base = 6
            else:
                base = 3
            bonus = int(base * scale)

            passer = scores.get(overtake.primary_car)
            if passer is not None and bonus > passer.fresh_action_bonus:
                passer.fresh_action_bonus = bonus
                passer.breakdown.append(f"Fresh pass ({since // 60}s): +{bonus}")

            if overtake.secondary_car is not None and overtake.secondary_car in scores:
                passed = scores[overtake.secondary_car]
                share = int(bonus * SECONDARY_FRESH_SHARE)
                if share > passed.fresh_action_bonus:
                    passed.fresh_action_bonus = share
                    passed.breakdown.append(f"Got passed ({since // 60}s): +{share}")

    # ------------------------------------------------------------------
    # Variety and exposure
    # ------------------------------------------------------------------

    def _apply_variety_penalty(self, scores: dict[int, DriverScore]) -> None:
        scale = self.settings.variety_penalty / _VARIETY_BASELINE
        max_dampening = self.settings.variety_dampening / 100.0
        for rank, car in enumerate(self.history.recent[: len(VARIETY_PENALTIES)]):
            s = scores.get(car)
            if s is None:
                continue
            nominal = int(VARIETY_PENALTIES[rank] * scale)
            dampener = max(1.0 - s.action_level * max_dampening, VARIETY_FLOOR)
            s.variety_penalty = int(nominal * dampener)
            s.total -= s.variety_penalty
            s.breakdown.append(f"Variety (#{rank + 1}): -{s.variety_penalty}")

    def _apply_overexposure_penalty(self, scores: dict[int, DriverScore], active_count: int) -> None:
        total = self.history.total_selections
        if total < 3 or active_count == 0:
            return
        fair_share = total / active_count
        for car, count in self.history.counts.items():
            s = scores.get(car)
            if s is None:
                continue
            excess = int(count - fair_share)
            if excess > 0:
                penalty = min(excess * OVEREXPOSURE_STEP, OVEREXPOSURE_CAP)
                s.total -= penalty
                s.breakdown.append(f"Overexposure ({count} selections): -{penalty}")

    def _apply_field_diversity_bonus(self, scores: dict[int, DriverScore]) -> None:
        total = self.history.total_selections
        if total == 0 or total % DIVERSITY_EVERY != 0:
            return
        for s in scores.values():
            if s.position > 10 and self.history.selection_count(s.car_number) <= 1:
                bonus = 25 if s.position > 15 else 20
                s.total += bonus
                s.breakdown.append(f"Field diversity: +{bonus}")

    def _apply_focus_bonus(self, scores: dict[int, DriverScore]) -> None:
        number = self.settings.focus_driver_number
        bonus = self.settings.focus_driver_bonus
        if number <= 0 or bonus <= 0 or number not in scores:
            return
        scores[number].total += bonus
        scores[number].breakdown.append(f"Focus driver (#{number}): +{bonus}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _events_of(self, event_type: RaceEventType) -> list[RaceEvent]:
        return [e for e in self.scan.events if e.event_type == event_type]

    def _fallback(self, frame: int) -> int | None:
        snap = self.scan.nearest_snapshot(frame)
        if snap is None:
            return None
        ordered = sorted(
            (d for d in snap.drivers if is_active(d) and d.has_valid_position),
            key=lambda d: d.position,
        )
        for d in ordered:
            if d.car_number not in self.history.recent:
                self.history.record(d.car_number)
                return d.car_number
        if ordered:
            self.history.record(ordered[-1].car_number)
            return ordered[-1].car_number
        for d in snap.drivers:
            if d.car_number != 0:
                return d.car_number
        return None
