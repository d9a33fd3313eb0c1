"""Camera-angle preferences and non-repeating camera selection."""

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence

from replay_director.events.models import RaceEventType
from replay_director.settings import DirectorSettings
from replay_director.telemetry.models import CameraGroup

# Wide establishing shots.
OPENING_CAMERAS = ("Chopper", "Blimp", "TV1", "TV2", "TV3")

# Field coverage between events.
FILLER_CAMERAS = ("TV1", "TV2", "Chase", "Far Chase", "Cockpit", "Chopper")

EVENT_CAMERAS: dict[RaceEventType, tuple[str, ...]] = {
    RaceEventType.INCIDENT: ("TV1", "TV2", "TV3", "Chopper", "Blimp", "Chase", "Far Chase"),
    RaceEventType.OVERTAKE: ("Chase", "Far Chase", "TV1", "TV2", "Rear Chase", "Cockpit"),
    RaceEventType.BATTLE: ("Chase", "TV1", "TV2", "Far Chase", "Nose", "Cockpit"),
}

DEFAULT_EVENT_CAMERAS = ("TV1", "Chase", "TV2", "Cockpit")


def preferences_for(event_type: RaceEventType) -> tuple[str, ...]:
    return EVENT_CAMERAS.get(event_type, DEFAULT_EVENT_CAMERAS)


def available_camera_names(cameras: Iterable[CameraGroup], settings: DirectorSettings) -> list[str]:
    """Return the non-excluded camera names, or every name when all are excluded."""
    names = [c.group_name for c in cameras if c.group_name]
    allowed = [n for n in names if not settings.is_camera_excluded(n)]
    return allowed or names


def select_camera(
    available: Sequence[str],
    preferences: Sequence[str],
    last_camera: str | None,
    rng: random.Random,
) -> str:
    """Pick a camera from *available* following *preferences*.

    Each preference is a case-insensitive substring of a camera name; the
    first available camera matching the earliest preference wins, skipping
    *last_camera*. Without a preference match a random camera other than
    *last_camera* is chosen; with a single camera it is reused.

    Raises:
        ValueError: *available* is empty.
    """
    if not available:
        raise ValueError("No cameras available")

    for pref in preferences:
        needle = pref.lower()
        for name in available:
            if needle in name.lower() and name != last_camera:
                return name

    different = [name for name in available if name != last_camera]
    if different:
        return rng.choice(different)
    return rng.choice(list(available))
