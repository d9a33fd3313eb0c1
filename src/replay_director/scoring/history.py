"""SelectionHistory — recency, exposure counts and position history for one plan application."""

from __future__ import annotations

import bisect
from collections.abc import Iterable

from replay_director.telemetry.models import TelemetrySnapshot

MAX_RECENT = 8


class SelectionHistory:
    """State the excitement scorer mutates while a plan is applied.

    Owned by a single plan application at a time; create one per applier
    so concurrent applications never share it.
    """

    def __init__(self, max_recent: int = MAX_RECENT) -> None:
        self.max_recent = max_recent
        self.recent: list[int] = []
        """Most recently selected car numbers, most recent first."""
        self.counts: dict[int, int] = {}
        self.total_selections: int = 0
        self._frames: dict[int, list[int]] = {}
        self._positions: dict[int, list[int]] = {}

    def reset(self, snapshots: Iterable[TelemetrySnapshot] = ()) -> None:
        """Forget all selections and rebuild position history from *snapshots*."""
        self.recent.clear()
        self.counts.clear()
        self.total_selections = 0
        self._frames.clear()
        self._positions.clear()

        for snap in sorted(snapshots, key=lambda s: s.frame):
            for d in snap.drivers:
                if d.position <= 0:
                    continue
                self._frames.setdefault(d.car_number, []).append(snap.frame)
                self._positions.setdefault(d.car_number, []).append(d.position)

    def record(self, car_number: int) -> None:
        """Move *car_number* to the front of the recency list and count the selection."""
        if car_number in self.recent:
            self.recent.remove(car_number)
        self.recent.insert(0, car_number)
        del self.recent[self.max_recent:]

        self.counts[car_number] = self.counts.get(car_number, 0) + 1
        self.total_selections += 1

    def selection_count(self, car_number: int) -> int:
        return self.counts.get(car_number, 0)

    def history_length(self, car_number: int) -> int:
        return len(self._frames.get(car_number, ()))

    def position_at(self, car_number: int, frame: int) -> int | None:
        """Return the latest tracked position at or before *frame*, or None."""
        frames = self._frames.get(car_number)
        if not frames:
            return None
        idx = bisect.bisect_right(frames, frame)
        if idx == 0:
            return None
        return self._positions[car_number][idx - 1]
