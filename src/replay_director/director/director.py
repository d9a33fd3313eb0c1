"""Director — scan → plan → apply state machine over one telemetry source.

States::

    Idle ──scan──▶ Scanning ───────▶ Idle | Error
    Idle ──plan──▶ GeneratingPlan ─▶ Idle | Error
    Idle ──apply─▶ ApplyingPlan ───▶ Idle | Error

New operations are accepted only from ``Idle`` or ``Error``.  All state
changes go through one lock; observers register a callback that receives
the name of each changed field.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from replay_director.director.applier import PlanApplier
from replay_director.director.sink import CameraSink
from replay_director.events.base import EventDetector, run_detectors
from replay_director.events.battle import BattleDetector
from replay_director.events.incident import IncidentDetector
from replay_director.events.overtake import OvertakeDetector
from replay_director.planning.llm_client import PlanProvider, build_provider
from replay_director.planning.models import CameraPlan, DriverSummary, EventSummary, ScanResult
from replay_director.planning.scheduler import CutScheduler
from replay_director.planning.segmented import SegmentedPlanner
from replay_director.settings import DirectorSettings
from replay_director.telemetry.models import CameraGroup, SessionMetadata, TelemetrySnapshot

_logger = logging.getLogger(__name__)


class DirectorState(str, Enum):
    IDLE = "Idle"
    SCANNING = "Scanning"
    GENERATING_PLAN = "GeneratingPlan"
    APPLYING_PLAN = "ApplyingPlan"
    ERROR = "Error"


class DirectorError(Exception):
    """An operation was rejected (bad frame range, missing scan, unconfigured provider)."""


class DirectorBusyError(DirectorError):
    """An operation was requested while another one is running."""


class TelemetrySource(Protocol):
    @property
    def current_frame(self) -> int: ...

    @property
    def final_frame(self) -> int: ...

    def seek(self, frame: int) -> None: ...

    def capture_snapshot(self, frame: int) -> TelemetrySnapshot | None: ...

    def session_metadata(self) -> SessionMetadata: ...

    def camera_groups(self) -> list[CameraGroup]: ...


_ACCEPTING = (DirectorState.IDLE, DirectorState.ERROR)


class Director:
    """Owns the scan result and camera plan for one replay.

    Args:
        source: Telemetry collaborator (usually a
            :class:`~replay_director.telemetry.connection.ReplayConnection`).
        settings: Weights and thresholds; defaults to :class:`DirectorSettings`.
        provider_factory: Builds the remote plan provider from settings.
        rng: Random source shared by cut scheduling and driver selection.
    """

    def __init__(
        self,
        source: TelemetrySource,
        settings: DirectorSettings | None = None,
        provider_factory: Callable[[DirectorSettings], PlanProvider] = build_provider,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self.settings = settings or DirectorSettings()
        self._provider_factory = provider_factory
        self._rng = rng or random.Random()

        self._lock = threading.Lock()
        self._callbacks: list[Callable[[str], None]] = []
        self._state = DirectorState.IDLE
        self._progress = 0
        self._status_message = "Ready"
        self._scan_result: ScanResult | None = None
        self._plan: CameraPlan | None = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> DirectorState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def scan_result(self) -> ScanResult | None:
        return self._scan_result

    @property
    def plan(self) -> CameraPlan | None:
        return self._plan

    @property
    def is_busy(self) -> bool:
        return self._state not in _ACCEPTING

    @property
    def has_scan_result(self) -> bool:
        return self._scan_result is not None

    @property
    def has_plan(self) -> bool:
        return self._plan is not None and bool(self._plan.actions)

    def register_callback(self, callback: Callable[[str], None]) -> None:
        """Register *callback*; it is called with the field name after each change."""
        self._callbacks.append(callback)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan(
        self,
        start_frame: int | None = None,
        end_frame: int | None = None,
        cancel: threading.Event | None = None,
    ) -> ScanResult | None:
        """Sample the replay and detect events on the calling thread.

        Returns the new scan result, or None when the scan was cancelled or
        failed (see :attr:`state` and :attr:`status_message`).

        Raises:
            DirectorBusyError: another operation is running.
            DirectorError: the frame range is empty.
        """
        start, end = self._begin_scan(start_frame, end_frame)
        return self._run_scan(start, end, cancel or threading.Event())

    def start_scan(
        self,
        start_frame: int | None = None,
        end_frame: int | None = None,
        cancel: threading.Event | None = None,
    ) -> threading.Thread:
        """Same as :meth:`scan` but on a daemon thread; busy and range errors raise here."""
        start, end = self._begin_scan(start_frame, end_frame)
        thread = threading.Thread(
            target=self._run_scan,
            args=(start, end, cancel or threading.Event()),
            name="replay-scan",
            daemon=True,
        )
        thread.start()
        return thread

    def _begin_scan(self, start_frame: int | None, end_frame: int | None) -> tuple[int, int]:
        self._begin(DirectorState.SCANNING, "Scanning replay...")
        try:
            start = self.source.current_frame if start_frame is None else start_frame
            end = self.source.final_frame if end_frame is None else end_frame
        except Exception as exc:
            self._fail(f"Scan error: {exc}")
            raise DirectorError(f"Could not read replay range: {exc}") from exc
        if end <= start:
            self._fail(f"Invalid frame range: {start}-{end}")
            raise DirectorError(f"End frame {end} must be after start frame {start}")
        return start, end

    def _run_scan(self, start: int, end: int, cancel: threading.Event) -> ScanResult | None:
        interval = max(1, self.settings.scan_interval_frames)
        frames = list(range(start, end + 1, interval))
        original_frame: int | None = None
        snapshots: list[TelemetrySnapshot] = []

        try:
            original_frame = self.source.current_frame
            metadata = self.source.session_metadata()
            cameras = self.source.camera_groups()

            for i, frame in enumerate(frames):
                if cancel.is_set():
                    _logger.info("Scan cancelled at frame %d", frame)
                    self._finish("Scan cancelled", progress=0)
                    return None
                snapshot = self._capture(frame)
                if snapshot is not None:
                    snapshots.append(snapshot)
                self._update(progress=(i + 1) * 100 // len(frames))

            events = run_detectors(self._detectors(), snapshots)
            result = ScanResult(
                start_frame=start,
                end_frame=end,
                track_name=metadata.track_name,
                session_type=metadata.session_type,
                snapshots=snapshots,
                events=events,
                cameras=cameras,
                fps=self.settings.fps,
            )
        except Exception as exc:
            _logger.exception("Scan failed")
            self._fail(f"Scan error: {exc}")
            return None
        finally:
            self._restore_frame(original_frame)

        self._update(_scan_result=result, _plan=None)
        _logger.info(
            "Scan complete: %d snapshots, %d events (%d-%d)", len(snapshots), len(events), start, end
        )
        self._finish(f"Scan complete: {len(events)} events found")
        return result

    def _capture(self, frame: int) -> TelemetrySnapshot | None:
        try:
            self.source.seek(frame)
            return self.source.capture_snapshot(frame)
        except Exception:
            _logger.debug("Skipping frame %d: capture failed", frame, exc_info=True)
            return None

    def _restore_frame(self, frame: int | None) -> None:
        if frame is None:
            return
        try:
            self.source.seek(frame)
        except Exception:
            _logger.warning("Could not return replay to frame %d", frame, exc_info=True)

    def _detectors(self) -> list[EventDetector]:
        detectors: list[EventDetector] = []
        if self.settings.detect_incidents:
            detectors.append(IncidentDetector())
        if self.settings.detect_overtakes:
            detectors.append(OvertakeDetector())
        if self.settings.detect_battles:
            detectors.append(BattleDetector(gap_threshold=self.settings.battle_gap_threshold))
        return detectors

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def build_event_summary(self) -> EventSummary:
        """Summarize the current scan for a remote plan provider.

        Raises:
            DirectorError: no scan result.
        """
        scan = self._scan_result
        if scan is None:
            raise DirectorError("No scan result; scan the replay first")

        drivers: list[DriverSummary] = []
        if scan.snapshots:
            first = scan.snapshots[0].by_number()
            last = scan.snapshots[-1].by_number()
            for number, d in sorted(first.items()):
                if number == 0:
                    continue
                end = last.get(number, d)
                drivers.append(
                    DriverSummary(
                        car_number=number,
                        team_name=d.team_name,
                        start_position=d.position,
                        end_position=end.position,
                    )
                )

        return EventSummary(
            track_name=scan.track_name,
            session_type=scan.session_type,
            start_frame=scan.start_frame,
            end_frame=scan.end_frame,
            duration_minutes=scan.total_frames / scan.fps / 60.0,
            frame_rate=scan.fps,
            drivers=drivers,
            cameras=[c for c in scan.cameras if not self.settings.is_camera_excluded(c.group_name)],
            events=list(scan.events),
        )

    def generate_plan(self, cancel: threading.Event | None = None) -> CameraPlan:
        """Generate a camera plan from the current scan.

        Uses the local :class:`CutScheduler` unless ``use_remote_planner``
        is set.

        Raises:
            DirectorBusyError: another operation is running.
            DirectorError: no scan result, or the provider is not configured.
            PlanProviderError: the remote provider failed on the first segment.
        """
        self._begin(DirectorState.GENERATING_PLAN, "Generating camera plan...")
        cancel = cancel or threading.Event()
        try:
            if self._scan_result is None:
                raise DirectorError("No scan result; scan the replay first")
            if self.settings.use_remote_planner:
                plan = self._generate_remote(cancel)
            else:
                plan = CutScheduler(self.settings, self._rng).plan(self._scan_result)
        except Exception as exc:
            _logger.warning("Plan generation failed: %s", exc)
            self._fail(f"Plan error: {exc}")
            raise

        self._update(_plan=plan)
        if cancel.is_set():
            self._finish(f"Plan generation cancelled ({len(plan.actions)} camera actions kept)")
        else:
            self._finish(f"Generated {len(plan.actions)} camera actions ({plan.generated_by})")
        return plan

    def _generate_remote(self, cancel: threading.Event) -> CameraPlan:
        provider = self._provider_factory(self.settings)
        if not provider.is_configured:
            raise DirectorError(f"{provider.name} is not configured")

        def on_progress(index: int, count: int) -> None:
            self._update(
                progress=index * 100 // count,
                _status_message=f"Generating segment {index + 1} of {count}...",
            )

        planner = SegmentedPlanner(
            provider,
            max_segment_frames=self.settings.max_segment_frames,
            buffer_frames=self.settings.segment_buffer_frames,
            delay_s=self.settings.segment_delay_s,
            on_progress=on_progress,
        )
        return planner.generate(self.build_event_summary(), cancel)

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    def apply_plan(self, sink: CameraSink, clear_existing: bool = True) -> int:
        """Apply the current plan to *sink*; return the number of commands emitted.

        Returns 0 without changing state when there is no plan.

        Raises:
            DirectorBusyError: another operation is running.
        """
        if not self.has_plan or self._scan_result is None:
            return 0

        self._begin(DirectorState.APPLYING_PLAN, "Applying camera plan...")
        try:
            applier = PlanApplier(self.settings, self._scan_result, rng=self._rng)
            emitted = applier.apply(self._plan, sink, clear_existing=clear_existing)
        except Exception as exc:
            _logger.exception("Applying plan failed")
            self._fail(f"Apply error: {exc}")
            raise

        self._finish(f"Applied {emitted} camera changes")
        return emitted

    def clear_results(self) -> None:
        """Drop the scan result and plan.

        Raises:
            DirectorBusyError: another operation is running.
        """
        self._begin(DirectorState.IDLE, "Ready")
        self._update(_scan_result=None, _plan=None, progress=0)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _begin(self, state: DirectorState, message: str) -> None:
        with self._lock:
            if self._state not in _ACCEPTING:
                raise DirectorBusyError(f"Director is busy ({self._state.value})")
            self._state = state
            self._progress = 0
            self._status_message = message
        _logger.info("Director → %s", state.value)
        self._notify("state", "progress", "status_message")

    def _finish(self, message: str, progress: int = 100) -> None:
        self._update(_state=DirectorState.IDLE, _status_message=message, progress=progress)
        _logger.info("Director → Idle: %s", message)

    def _fail(self, message: str) -> None:
        self._update(_state=DirectorState.ERROR, _status_message=message)
        _logger.warning("Director → Error: %s", message)

    def _update(self, **changes: object) -> None:
        with self._lock:
            for name, value in changes.items():
                attr = name if name.startswith("_") else f"_{name}"
                setattr(self, attr, value)
        self._notify(*(name.lstrip("_") for name in changes))

    def _notify(self, *fields: str) -> None:
        for name in fields:
            for cb in self._callbacks:
                cb(name)
