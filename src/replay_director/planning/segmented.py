"""SegmentedPlanner — split long sessions into provider-sized requests and stitch the results."""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
from collections.abc import Callable
from datetime import datetime

from replay_director.planning.llm_client import PlanProvider, PlanProviderError
from replay_director.planning.models import CameraPlan, EventSummary

_logger = logging.getLogger(__name__)


def segment_bounds(start: int, end: int, max_frames: int) -> list[tuple[int, int]]:
    """Split ``[start, end]`` into ``ceil(total / max_frames)`` consecutive segments."""
    total = end - start
    if total <= 0:
        return []
    count = max(1, math.ceil(total / max_frames))
    bounds = []
    for i in range(count):
        seg_start = start + i * max_frames
        bounds.append((seg_start, min(seg_start + max_frames, end)))
    return bounds


def segment_summary(summary: EventSummary, seg_start: int, seg_end: int, buffer_frames: int) -> EventSummary:
    """Return a copy of *summary* restricted to one segment plus event context."""
    frames = seg_end - seg_start
    return dataclasses.replace(
        summary,
        start_frame=seg_start,
        end_frame=seg_end,
        duration_minutes=frames / summary.frame_rate / 60.0,
        events=[
            e
            for e in summary.events
            if seg_start - buffer_frames <= e.frame <= seg_end + buffer_frames
        ],
    )


class SegmentedPlanner:
    """Request a plan from *provider*, one segment at a time when the session is long.

    Args:
        provider: The remote plan provider.
        max_segment_frames: Longest span sent in a single request.
        buffer_frames: Event context included either side of a segment.
        delay_s: Pause between segment requests.
        on_progress: Optional ``(segment_index, segment_count)`` callback.
    """

    def __init__(
        self,
        provider: PlanProvider,
        max_segment_frames: int = 36000,
        buffer_frames: int = 600,
        delay_s: float = 0.5,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        self.provider = provider
        self.max_segment_frames = max_segment_frames
        self.buffer_frames = buffer_frames
        self.delay_s = delay_s
        self._on_progress = on_progress

    def generate(self, summary: EventSummary, cancel: threading.Event | None = None) -> CameraPlan:
        """Return the stitched plan for *summary*.

        Raises:
            PlanProviderError: the first segment failed before any action was collected.
        """
        if summary.total_frames <= self.max_segment_frames:
            plan = self.provider.generate_plan(summary, cancel)
            plan.actions = plan.sorted_actions()
            return plan

        cancel = cancel or threading.Event()
        combined = CameraPlan(
            generated_by=f"{self.provider.name} ({self.provider.model_name})",
            generated_at=datetime.now(),
            total_duration_frames=summary.total_frames,
        )
        bounds = segment_bounds(summary.start_frame, summary.end_frame, self.max_segment_frames)
        _logger.info("Generating camera plan in %d segments", len(bounds))

        for i, (seg_start, seg_end) in enumerate(bounds):
            if cancel.is_set():
                _logger.info("Plan generation cancelled after %d segments", i)
                break
            if self._on_progress is not None:
                self._on_progress(i, len(bounds))

            part = segment_summary(summary, seg_start, seg_end, self.buffer_frames)
            try:
                segment_plan = self.provider.generate_plan(part, cancel)
            except PlanProviderError as exc:
                if i == 0 and not combined.actions:
                    raise
                _logger.warning("Segment %d of %d failed: %s", i + 1, len(bounds), exc)
            else:
                combined.actions.extend(
                    a for a in segment_plan.actions if seg_start <= a.frame <= seg_end
                )

            if i < len(bounds) - 1 and cancel.wait(self.delay_s):
                _logger.info("Plan generation cancelled after %d segments", i + 1)
                break

        combined.actions = combined.sorted_actions()
        return combined
