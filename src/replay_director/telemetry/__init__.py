"""Replay telemetry capture from iRacing.

Public API
----------
TrackSurface        - car location on/off track
DriverSnapshot      - one car's state at one frame
TelemetrySnapshot   - all car states at one frame
SessionMetadata     - track/session labels
CameraGroup         - a named camera group
SnapshotParser      - raw iRacing dict → TelemetrySnapshot
ReplayConnection    - drives the replay and captures snapshots
"""

from replay_director.telemetry.connection import ReplayConnection
from replay_director.telemetry.models import (
    CameraGroup,
    DriverSnapshot,
    SessionMetadata,
    TelemetrySnapshot,
    TrackSurface,
)
from replay_director.telemetry.parser import SnapshotParser

__all__ = [
    "CameraGroup",
    "DriverSnapshot",
    "ReplayConnection",
    "SessionMetadata",
    "SnapshotParser",
    "TelemetrySnapshot",
    "TrackSurface",
]
