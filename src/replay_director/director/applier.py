"""PlanApplier — walks a camera plan and emits camera-change commands."""

from __future__ import annotations

import logging
import random

from replay_director.director.sink import CameraSink
from replay_director.planning.models import CameraAction, CameraPlan, ScanResult
from replay_director.scoring.excitement import ExcitementScorer
from replay_director.scoring.history import SelectionHistory
from replay_director.settings import DirectorSettings
from replay_director.telemetry.models import CameraGroup

_logger = logging.getLogger(__name__)


def resolve_camera(
    name: str, cameras: list[CameraGroup], settings: DirectorSettings
) -> CameraGroup | None:
    """Match *name* against the non-excluded *cameras*.

    Exact (case-insensitive) match first, then substring, then the first
    non-excluded camera.  Returns None when every camera is excluded.
    """
    allowed = [c for c in cameras if not settings.is_camera_excluded(c.group_name)]
    wanted = (name or "").strip().lower()

    for cam in allowed:
        if cam.group_name.lower() == wanted:
            return cam
    if wanted:
        for cam in allowed:
            if wanted in cam.group_name.lower():
                return cam
    return allowed[0] if allowed else None


class PlanApplier:
    """Apply a :class:`CameraPlan` to a camera sink.

    Each application owns a fresh :class:`SelectionHistory`, so two
    appliers never share recency or exposure state.

    Parameters
    ----------
    settings:
        Scoring weights and camera exclusions.
    scan:
        The scan the plan was generated from.
    cameras:
        Camera groups to resolve names against; defaults to ``scan.cameras``.
    rng:
        Random source for scorer tie-breaking.
    """

    def __init__(
        self,
        settings: DirectorSettings,
        scan: ScanResult,
        cameras: list[CameraGroup] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.scan = scan
        self.cameras = list(scan.cameras if cameras is None else cameras)
        self.history = SelectionHistory()
        self.scorer = ExcitementScorer(settings, scan, self.history, rng)

    def apply(self, plan: CameraPlan, sink: CameraSink, clear_existing: bool = True) -> int:
        """Emit one command per resolvable action; return the number emitted."""
        self.history.reset(self.scan.snapshots)
        if clear_existing:
            sink.clear_all()

        emitted = 0
        for action in plan.sorted_actions():
            camera = resolve_camera(action.camera_name, self.cameras, self.settings)
            if camera is None:
                _logger.debug("frame %d: no usable camera for %r", action.frame, action.camera_name)
                continue

            car = self._resolve_car(action)
            sink.add_action(action.frame, car, camera.group_num)
            emitted += 1

        _logger.info("Applied %d of %d camera actions", emitted, len(plan.actions))
        return emitted

    def _resolve_car(self, action: CameraAction) -> int | None:
        embedded = action.car_number
        if self.settings.honor_embedded_car_number and embedded:
            active = {d.car_number for d in self.scorer.active_cars(action.frame)}
            if embedded in active:
                self.history.record(embedded)
                return embedded
        return self.scorer.select(action.frame)
