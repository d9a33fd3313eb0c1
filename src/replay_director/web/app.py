"""FastAPI Web application — scan, plan and apply over one replay director."""

from __future__ import annotations

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException

from replay_director import __version__
from replay_director.director.director import Director, DirectorBusyError, DirectorError
from replay_director.director.sink import CameraTimeline
from replay_director.planning.llm_client import PlanProviderError
from replay_director.settings import DirectorSettings
from replay_director.web.schemas import (
    ActionRecord,
    ApplyResponse,
    CommandRecord,
    EventRecord,
    EventsResponse,
    HealthResponse,
    PlanResponse,
    ScanRequest,
    StatusResponse,
)

load_dotenv()  # loads .env from project root; must run before env vars are consumed

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(title="Replay Director", version=__version__)

_director: Director | None = None


def get_director() -> Director:
    """Return the process-wide director, connecting to iRacing on first use."""
    global _director
    if _director is None:
        from replay_director.telemetry.connection import ReplayConnection

        connection = ReplayConnection()
        connection.connect()
        _director = Director(connection, DirectorSettings.from_env())
    return _director


def _plan_response(director: Director) -> PlanResponse:
    plan = director.plan
    if plan is None:
        raise HTTPException(status_code=404, detail="No camera plan generated")
    return PlanResponse(
        generated_by=plan.generated_by,
        generated_at=plan.generated_at.isoformat(),
        total_duration_frames=plan.total_duration_frames,
        actions=[
            ActionRecord(
                frame=a.frame, camera_name=a.camera_name, car_number=a.car_number, reason=a.reason
            )
            for a in plan.sorted_actions()
        ],
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


@app.get("/api/status", response_model=StatusResponse)
def status(director: Director = Depends(get_director)) -> StatusResponse:
    scan = director.scan_result
    plan = director.plan
    return StatusResponse(
        state=director.state.value,
        progress=director.progress,
        status_message=director.status_message,
        event_count=len(scan.events) if scan else 0,
        action_count=len(plan.actions) if plan else 0,
    )


@app.post("/api/scan", status_code=202, response_model=StatusResponse)
def start_scan(req: ScanRequest, director: Director = Depends(get_director)) -> StatusResponse:
    """Start a background scan of the replay."""
    try:
        director.start_scan(req.start_frame, req.end_frame)
    except DirectorBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DirectorError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return status(director)


@app.get("/api/events", response_model=EventsResponse)
def list_events(director: Director = Depends(get_director)) -> EventsResponse:
    scan = director.scan_result
    if scan is None:
        raise HTTPException(status_code=404, detail="No scan result")
    return EventsResponse(
        track_name=scan.track_name,
        session_type=scan.session_type,
        events=[
            EventRecord(
                frame=e.frame,
                event_type=e.event_type.value,
                primary_car=e.primary_car,
                secondary_car=e.secondary_car,
                position=e.position,
                importance=e.importance,
                duration_frames=e.duration_frames,
                description=e.description,
            )
            for e in scan.events
        ],
    )


@app.post("/api/plan", response_model=PlanResponse)
def generate_plan(director: Director = Depends(get_director)) -> PlanResponse:
    """Generate a camera plan from the current scan."""
    try:
        director.generate_plan()
    except DirectorBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DirectorError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PlanProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return _plan_response(director)


@app.get("/api/plan", response_model=PlanResponse)
def get_plan(director: Director = Depends(get_director)) -> PlanResponse:
    return _plan_response(director)


@app.post("/api/apply", response_model=ApplyResponse)
def apply_plan(director: Director = Depends(get_director)) -> ApplyResponse:
    """Apply the current plan into a fresh timeline and return its commands."""
    scan = director.scan_result
    names = {c.group_num: c.group_name for c in scan.cameras} if scan else {}
    timeline = CameraTimeline(camera_names=names)
    try:
        applied = director.apply_plan(timeline)
    except DirectorBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ApplyResponse(
        applied=applied,
        commands=[
            CommandRecord(
                frame=c.frame,
                car_number=c.car_number,
                camera_group=c.camera_group,
                camera_name=c.camera_name,
            )
            for c in timeline.commands
        ],
    )
