"""Shared fixtures for web tests."""

from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

from replay_director.director.director import Director
from replay_director.settings import DirectorSettings
from replay_director.telemetry.models import (
    CameraGroup,
    DriverSnapshot,
    SessionMetadata,
    TelemetrySnapshot,
    TrackSurface,
)
from replay_director.web.app import app, get_director


class FakeReplay:
    """Replay source where #11 passes #22 for the lead at frame 500."""

    def __init__(self, final: int = 3600) -> None:
        self._frame = 0
        self._final = final

    @property
    def current_frame(self) -> int:
        return self._frame

    @property
    def final_frame(self) -> int:
        return self._final

    def seek(self, frame: int) -> None:
        self._frame = frame

    def capture_snapshot(self, frame: int) -> TelemetrySnapshot:
        leader, second = (22, 11) if frame < 500 else (11, 22)
        drivers = tuple(
            DriverSnapshot(
                car_idx=number,
                car_number=number,
                team_name=f"Team {number}",
                position=position,
                lap=2,
                lap_distance=dist,
                surface=TrackSurface.ON_TRACK,
            )
            for number, position, dist in ((leader, 1, 0.6), (second, 2, 0.3))
        )
        return TelemetrySnapshot(frame=frame, session_time=frame / 60.0, drivers=drivers)

    def session_metadata(self) -> SessionMetadata:
        return SessionMetadata(track_name="Watkins Glen", session_type="Race")

    def camera_groups(self) -> list[CameraGroup]:
        return [CameraGroup(1, "TV1"), CameraGroup(2, "Chase"), CameraGroup(3, "Blimp")]


@pytest.fixture
def director():
    return Director(FakeReplay(), DirectorSettings(), rng=random.Random(5))


@pytest.fixture
def scanned_director(director):
    director.scan(0, 3600)
    return director


@pytest.fixture
def client(director):
    """FastAPI test client bound to an in-memory director."""
    app.dependency_overrides[get_director] = lambda: director
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
