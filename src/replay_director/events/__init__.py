"""Race event detection over captured snapshot sequences."""

from replay_director.events.base import EventDetector, FrameCooldown, run_detectors
from replay_director.events.battle import BattleDetector
from replay_director.events.incident import IncidentDetector
from replay_director.events.models import RaceEvent, RaceEventType
from replay_director.events.overtake import OvertakeDetector

__all__ = [
    "BattleDetector",
    "EventDetector",
    "FrameCooldown",
    "IncidentDetector",
    "OvertakeDetector",
    "RaceEvent",
    "RaceEventType",
    "run_detectors",
]
