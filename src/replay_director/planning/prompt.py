"""Prompt construction for remote camera-plan generation."""

from __future__ import annotations

from replay_director.events.models import RaceEventType
from replay_director.planning.models import EventSummary

MAX_PROMPT_EVENTS = 30
MIN_TARGET_CUTS = 10
MAX_TARGET_CUTS = 100
CUTS_PER_MINUTE = 6

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """You are an expert motorsport broadcast director creating camera sequences for iRacing replays.

The replay automatically follows the most exciting car at any moment. Your job is ONLY to choose which CAMERA ANGLE to use and when to switch. Do not pick drivers.

STANDARD CAMERAS (use exact names):
- Nose, Gearbox, Roll Bar, Gyro, Cockpit: onboard angles
- LF Susp / LR Susp / RF Susp / RR Susp: suspension-mounted onboard angles
- TV1 / TV2 / TV3: trackside broadcast cameras
- Chase / Far Chase / Rear Chase: cameras following the car
- Chopper / Blimp: aerial views
- Scenic: trackside beauty shots

DIRECTING GUIDELINES:
1. Mix camera types; never use the same camera twice in a row.
2. Alternate wide and close shots: establish with TV/Blimp, follow with Chase/Cockpit, re-establish.
3. TV cameras for starts, restarts and corner entries with several cars.
4. Chase cameras for close racing and most general coverage.
5. Cockpit/Roll Bar for intense battles.
6. Chopper/Blimp for opening shots and showing the whole field.
7. Hold wide shots 3-8 s, TV 5-15 s, chase 8-20 s, onboard 5-12 s.

OUTPUT FORMAT:
Respond with ONLY valid JSON (no markdown, no explanation):
{
  "cameraActions": [
    {
      "frame": <integer frame number to switch camera>,
      "cameraName": <exact camera name from the list>,
      "duration": <integer duration in seconds>,
      "reason": <brief explanation>
    }
  ]
}

Sort cameraActions by frame number ascending."""

_DEFAULT_CAMERAS = "TV1, TV2, TV3, Cockpit, Chase, Far Chase, Chopper, Blimp"

_CAMERA_HINTS = {
    RaceEventType.INCIDENT: " -> consider TV or Chopper to show the aftermath",
    RaceEventType.OVERTAKE: " -> consider Chase or TV for the pass",
    RaceEventType.BATTLE: " -> consider Chase or Cockpit for intensity",
}

_ONBOARD = frozenset({"Cockpit", "Roll Bar", "Gyro", "Nose", "Gearbox"})
_AERIAL = frozenset({"Chopper", "Blimp"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _camera_kind(name: str) -> str:
    if name.startswith("TV"):
        return "TV/Broadcast"
    if "chase" in name.lower():
        return "Chase"
    if name in _ONBOARD or "Susp" in name:
        return "Onboard"
    if name in _AERIAL:
        return "Aerial"
    return "Other"


def _format_cameras(names: list[str]) -> list[str]:
    if not names:
        return [_DEFAULT_CAMERAS]
    grouped: dict[str, list[str]] = {}
    for name in names:
        grouped.setdefault(_camera_kind(name), []).append(name)
    order = ("TV/Broadcast", "Chase", "Onboard", "Aerial", "Other")
    return [f"{kind} cameras: {', '.join(grouped[kind])}" for kind in order if kind in grouped]


def target_cut_count(duration_minutes: float) -> int:
    """About six cuts a minute, clamped to a sensible range."""
    return min(MAX_TARGET_CUTS, max(MIN_TARGET_CUTS, int(duration_minutes * CUTS_PER_MINUTE)))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def estimate_tokens(text: str) -> int:
    """Return a rough token count estimate for *text* (four characters per token)."""
    return len(text) // 4


class PromptBuilder:
    """Build chat prompts from an :class:`~replay_director.planning.models.EventSummary`."""

    @property
    def system_prompt(self) -> str:
        return _SYSTEM_PROMPT

    def build(self, summary: EventSummary) -> str:
        """Build the user-turn prompt from *summary*."""
        lines = [
            "Create a camera plan for this race replay.",
            "Remember: the replay follows the most exciting action; you only choose WHICH CAMERA to use.",
            "",
            "RACE INFO:",
            f"- Track: {summary.track_name or 'Unknown Track'}",
            f"- Session: {summary.session_type or 'Race'}",
            f"- Duration: {summary.total_frames} frames ({summary.duration_minutes:.1f} minutes)",
            f"- Frame rate: {summary.frame_rate} fps",
            f"- Start frame: {summary.start_frame}",
            f"- End frame: {summary.end_frame}",
            "",
            "CAMERAS AVAILABLE IN THIS SESSION:",
            *_format_cameras(summary.camera_names),
            "",
            "KEY MOMENTS (for camera selection context):",
        ]

        events = sorted(summary.events, key=lambda e: e.frame)[:MAX_PROMPT_EVENTS]
        if events:
            for evt in events:
                hint = _CAMERA_HINTS.get(evt.event_type, "")
                lines.append(f"- Frame {evt.frame}: {evt.description}{hint}")
        else:
            lines.append("- No specific events detected. Create varied general race coverage.")

        lines += [
            "",
            f"Create approximately {target_cut_count(summary.duration_minutes)} camera switches "
            "for broadcast-style coverage.",
            "Use a good MIX of camera types throughout the replay.",
            "Start with an establishing shot (TV, Blimp, or Chopper) at the start frame.",
            "Use the EXACT camera names from the list above.",
        ]
        return "\n".join(lines)

    def build_messages(self, summary: EventSummary) -> tuple[str, str]:
        """Return ``(system_prompt, user_prompt)`` ready for the chat API."""
        return self.system_prompt, self.build(summary)
