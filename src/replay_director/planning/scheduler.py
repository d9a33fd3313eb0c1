"""Local event-driven cut scheduling.

Turns the significant events of a :class:`ScanResult` into camera cuts:

1. An opening establishing shot at the scan's start frame.
2. One cut per significant event, ``event_anticipation_seconds`` ahead of
   it, respecting the minimum spacing between cuts.  High-importance
   incidents may be pushed later instead of dropped.
3. Filler cuts ("field coverage") wherever the gap between cuts, or the
   trailing gap to the end frame, exceeds the maximum spacing.

Actions never carry a car number; the car is chosen when the plan is applied.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime

from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.planning.cameras import (
    FILLER_CAMERAS,
    OPENING_CAMERAS,
    available_camera_names,
    preferences_for,
    select_camera,
)
from replay_director.planning.models import CameraAction, CameraPlan, ScanResult
from replay_director.settings import DirectorSettings

_logger = logging.getLogger(__name__)

GENERATED_BY = "Event-Driven"
MIN_BATTLE_IMPORTANCE = 6
FORCED_INCIDENT_IMPORTANCE = 8


def is_significant(event: RaceEvent) -> bool:
    """Incidents, overtakes and important battles get a dedicated cut."""
    if event.event_type in (RaceEventType.INCIDENT, RaceEventType.OVERTAKE):
        return True
    return event.event_type == RaceEventType.BATTLE and event.importance >= MIN_BATTLE_IMPORTANCE


class CutScheduler:
    """Build a :class:`CameraPlan` from detected events without any external call.

    Args:
        settings: Cut spacing, anticipation and camera exclusions.
        rng: Random source for camera fallback choices.
    """

    def __init__(self, settings: DirectorSettings, rng: random.Random | None = None) -> None:
        self.settings = settings
        self._rng = rng or random.Random()

    def plan(self, scan: ScanResult) -> CameraPlan:
        plan = CameraPlan(
            generated_by=GENERATED_BY,
            generated_at=datetime.now(),
            total_duration_frames=scan.total_frames,
        )
        cameras = available_camera_names(scan.cameras, self.settings)
        if not cameras:
            _logger.warning("No camera groups recorded in scan; plan is empty")
            return plan

        cuts = self._schedule_events(scan, cameras)
        cuts.extend(self._fill_gaps(cuts, scan.start_frame, scan.end_frame, cameras))
        plan.actions = sorted(cuts, key=lambda a: a.frame)

        _logger.info("Scheduled %d cuts over %d frames", len(plan.actions), scan.total_frames)
        return plan

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _schedule_events(self, scan: ScanResult, cameras: list[str]) -> list[CameraAction]:
        min_gap = self.settings.min_frames_between_cuts
        anticipation = self.settings.anticipation_frames

        opening = select_camera(cameras, OPENING_CAMERAS, None, self._rng)
        cuts = [CameraAction(frame=scan.start_frame, camera_name=opening, reason="Opening shot")]
        last_frame = scan.start_frame
        last_camera = opening

        events = sorted((e for e in scan.events if is_significant(e)), key=lambda e: e.frame)
        for evt in events:
            cut_frame = max(evt.frame - anticipation, scan.start_frame)
            if cut_frame >= scan.end_frame:
                continue

            if cut_frame - last_frame < min_gap:
                forced = (
                    evt.event_type == RaceEventType.INCIDENT
                    and evt.importance >= FORCED_INCIDENT_IMPORTANCE
                )
                if not forced:
                    continue
                cut_frame = last_frame + min_gap
                if cut_frame >= evt.end_frame or cut_frame >= scan.end_frame:
                    continue

            camera = select_camera(cameras, preferences_for(evt.event_type), last_camera, self._rng)
            cuts.append(CameraAction(frame=cut_frame, camera_name=camera, reason=evt.description))
            last_frame = cut_frame
            last_camera = camera

        return cuts

    def _fill_gaps(
        self, cuts: list[CameraAction], start: int, end: int, cameras: list[str]
    ) -> list[CameraAction]:
        max_gap = self.settings.max_frames_between_cuts
        min_gap = self.settings.min_frames_between_cuts
        if max_gap <= 0:
            return []

        ordered = sorted(cuts, key=lambda a: a.frame)
        fillers: list[CameraAction] = []
        previous = start
        last_camera = ordered[0].camera_name if ordered else None

        for cut in ordered:
            while cut.frame - previous > max_gap:
                frame = previous + max_gap
                if frame >= cut.frame - min_gap:
                    break
                last_camera = self._add_filler(fillers, frame, cameras, last_camera)
                previous = frame
            previous = cut.frame
            last_camera = cut.camera_name

        tail = ordered[-1].frame if ordered else start
        while end - tail > max_gap:
            frame = tail + max_gap
            if frame >= end:
                break
            last_camera = self._add_filler(fillers, frame, cameras, last_camera)
            tail = frame

        return fillers

    def _add_filler(
        self, fillers: list[CameraAction], frame: int, cameras: list[str], last_camera: str | None
    ) -> str:
        camera = select_camera(cameras, FILLER_CAMERAS, last_camera, self._rng)
        fillers.append(CameraAction(frame=frame, camera_name=camera, reason="Field coverage"))
        return camera
