"""Detector base class and per-car debounce."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.telemetry.models import TelemetrySnapshot

_logger = logging.getLogger(__name__)


class FrameCooldown:
    """Per-key debounce measured in replay frames.

    A key may fire again only once *cooldown_frames* have elapsed since it
    last fired. Each key is tracked independently.
    """

    def __init__(self, cooldown_frames: int) -> None:
        self.cooldown_frames = cooldown_frames
        self._last_fire: dict[object, int] = {}

    def can_fire(self, key: object, frame: int) -> bool:
        last = self._last_fire.get(key)
        return last is None or (frame - last) >= self.cooldown_frames

    def mark_fired(self, key: object, frame: int) -> None:
        self._last_fire[key] = frame


class EventDetector:
    """Turns an ordered snapshot sequence into a list of :class:`RaceEvent`.

    Subclasses implement :meth:`_detect`. :meth:`detect` is the boundary:
    it never raises, and a failing detector contributes no events.
    """

    event_type: RaceEventType

    def detect(self, snapshots: Sequence[TelemetrySnapshot]) -> list[RaceEvent]:
        if snapshots is None or len(snapshots) < 2:
            return []
        try:
            return self._detect(snapshots)
        except Exception:
            _logger.warning("%s failed; discarding its events", type(self).__name__, exc_info=True)
            return []

    def _detect(self, snapshots: Sequence[TelemetrySnapshot]) -> list[RaceEvent]:
        raise NotImplementedError


def run_detectors(
    detectors: Iterable[EventDetector],
    snapshots: Sequence[TelemetrySnapshot],
) -> list[RaceEvent]:
    """Run every detector over *snapshots* and return the merged events sorted by frame."""
    events: list[RaceEvent] = []
    for detector in detectors:
        found = detector.detect(snapshots)
        _logger.debug("%s found %d events", type(detector).__name__, len(found))
        events.extend(found)
    events.sort(key=lambda e: e.frame)
    return events
