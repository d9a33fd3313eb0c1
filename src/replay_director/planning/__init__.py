"""Camera plan generation.

Public API
----------
CameraAction, CameraPlan, ScanResult, EventSummary, DriverSummary
    Plan and scan data models.
CutScheduler
    Local event-driven cut scheduling.
SegmentedPlanner
    Remote plan generation split into provider-sized segments.
OpenAIPlanProvider, LocalModelProvider, build_provider, PlanProviderError
    OpenAI-compatible plan providers.
"""

from replay_director.planning.llm_client import (
    LocalModelProvider,
    OpenAIPlanProvider,
    PlanProviderError,
    build_provider,
)
from replay_director.planning.models import (
    CameraAction,
    CameraPlan,
    DriverSummary,
    EventSummary,
    ScanResult,
)
from replay_director.planning.scheduler import CutScheduler
from replay_director.planning.segmented import SegmentedPlanner

__all__ = [
    "CameraAction",
    "CameraPlan",
    "CutScheduler",
    "DriverSummary",
    "EventSummary",
    "LocalModelProvider",
    "OpenAIPlanProvider",
    "PlanProviderError",
    "ScanResult",
    "SegmentedPlanner",
    "build_provider",
]
