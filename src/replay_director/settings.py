"""DirectorSettings — weights and thresholds for scanning, scoring and cut scheduling."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from replay_director.events.models import RaceEventType

_ENV_PREFIX = "REPLAY_DIRECTOR_"

_PIT_STOP_WEIGHT = 15
_DEFAULT_EVENT_WEIGHT = 5


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class DirectorSettings:
    """Flat configuration for one scan / plan / apply pass.

    Weights are on the same scale as the settings sliders of the replay
    director; each scoring component divides its weight by a fixed baseline
    to get a multiplier (e.g. ``battle_weight / 35``).
    """

    # Scoring weights
    incident_weight: int = 70
    overtake_weight: int = 50
    battle_weight: int = 10
    momentum_weight: int = 20
    pack_weight: int = 15
    fresh_action_weight: int = 25
    position_weight: int = 20
    variety_penalty: int = 70
    variety_dampening: int = 30
    """Percent (0-100) of the variety penalty that action may remove."""

    focus_driver_number: int = 0
    focus_driver_bonus: int = 30

    # Cut scheduling
    min_seconds_between_cuts: int = 4
    max_seconds_between_cuts: int = 15
    event_anticipation_seconds: int = 2
    excluded_cameras: list[str] = field(default_factory=list)

    # Scanning / detection
    scan_interval_frames: int = 60
    detect_incidents: bool = True
    detect_overtakes: bool = True
    detect_battles: bool = True
    battle_gap_threshold: float = 0.02

    # Remote plan provider
    use_remote_planner: bool = False
    provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    local_endpoint: str = "http://localhost:11434/v1"
    local_model: str = "llama3"
    max_segment_frames: int = 36000
    segment_buffer_frames: int = 600
    segment_delay_s: float = 0.5

    honor_embedded_car_number: bool = False
    fps: int = 60

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def event_type_weight(self, event_type: RaceEventType) -> int:
        """Return the scoring weight for *event_type*."""
        weights = {
            RaceEventType.INCIDENT: self.incident_weight,
            RaceEventType.BATTLE: self.battle_weight,
            RaceEventType.OVERTAKE: self.overtake_weight,
            RaceEventType.RACE_START: self.overtake_weight,
            RaceEventType.RACE_FINISH: self.overtake_weight,
            RaceEventType.PIT_STOP: _PIT_STOP_WEIGHT,
        }
        return weights.get(event_type, _DEFAULT_EVENT_WEIGHT)

    def is_camera_excluded(self, name: str) -> bool:
        wanted = (name or "").strip().lower()
        return any(wanted == c.strip().lower() for c in self.excluded_cameras)

    @property
    def min_frames_between_cuts(self) -> int:
        return self.min_seconds_between_cuts * self.fps

    @property
    def max_frames_between_cuts(self) -> int:
        return self.max_seconds_between_cuts * self.fps

    @property
    def anticipation_frames(self) -> int:
        return self.event_anticipation_seconds * self.fps

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DirectorSettings:
        """Build settings from ``REPLAY_DIRECTOR_<FIELD>`` environment variables.

        ``OPENAI_API_KEY`` is used when ``REPLAY_DIRECTOR_OPENAI_API_KEY`` is unset.
        Unknown or malformed values raise :class:`ValueError`.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        kwargs: dict = {}

        for f in dataclasses.fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            current = getattr(defaults, f.name)
            try:
                if isinstance(current, bool):
                    kwargs[f.name] = _parse_bool(raw)
                elif isinstance(current, int):
                    kwargs[f.name] = int(raw)
                elif isinstance(current, float):
                    kwargs[f.name] = float(raw)
                elif isinstance(current, list):
                    kwargs[f.name] = _parse_list(raw)
                else:
                    kwargs[f.name] = raw
            except ValueError as exc:
                raise ValueError(f"Invalid value for {_ENV_PREFIX}{f.name.upper()}: {raw!r}") from exc

        if "openai_api_key" not in kwargs:
            kwargs["openai_api_key"] = env.get("OPENAI_API_KEY", "")

        return cls(**kwargs)
