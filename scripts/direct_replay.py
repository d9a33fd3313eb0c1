"""Scan an iRacing replay, plan camera cuts and write the camera commands as JSON.

Requires iRacing running with a replay loaded.  Press Ctrl+C during the
scan to cancel it.

Usage:
    uv run python scripts/direct_replay.py
    uv run python scripts/direct_replay.py --start 1200 --end 40000 --output plan.json
    uv run python scripts/direct_replay.py --remote          # plan with OpenAI
    uv run python scripts/direct_replay.py --remote --provider local --model llama3
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
import threading

from dotenv import load_dotenv

load_dotenv()

from replay_director.director.director import Director, DirectorError  # noqa: E402
from replay_director.director.sink import CameraTimeline  # noqa: E402
from replay_director.planning.llm_client import PlanProviderError  # noqa: E402
from replay_director.settings import DirectorSettings  # noqa: E402
from replay_director.telemetry.connection import ReplayConnection  # noqa: E402


def _print_progress(director: Director, field: str) -> None:
    if field == "progress" and director.progress % 10 == 0:
        print(f"  {director.progress:3d}%  {director.status_message}", flush=True)


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay Director — automatic camera plan")
    ap.add_argument("--start", type=int, default=None, help="First frame (default: current)")
    ap.add_argument("--end", type=int, default=None, help="Last frame (default: end of replay)")
    ap.add_argument("--interval", type=int, default=None, help="Frames between samples")
    ap.add_argument("--remote", action="store_true", help="Generate the plan with a model")
    ap.add_argument("--provider", choices=("openai", "local"), default=None)
    ap.add_argument("--model", default=None, help="Model name for the selected provider")
    ap.add_argument("--focus", type=int, default=None, help="Car number to favour")
    ap.add_argument("--seed", type=int, default=None, help="Random seed for reproducible plans")
    ap.add_argument("--output", default="camera_plan.json", help="Output JSON file path")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = DirectorSettings.from_env()
    if args.interval is not None:
        settings.scan_interval_frames = args.interval
    if args.remote:
        settings.use_remote_planner = True
    if args.provider:
        settings.provider = args.provider
    if args.model:
        if settings.provider == "local":
            settings.local_model = args.model
        else:
            settings.openai_model = args.model
    if args.focus is not None:
        settings.focus_driver_number = args.focus

    conn = ReplayConnection()
    if not conn.connect():
        print("× iRacing not detected; start a replay first.", file=sys.stderr)
        sys.exit(1)

    director = Director(conn, settings, rng=random.Random(args.seed))
    director.register_callback(lambda field: _print_progress(director, field))

    cancel = threading.Event()
    print("1/3  Scanning replay...")
    try:
        thread = director.start_scan(args.start, args.end, cancel)
        while thread.is_alive():
            thread.join(0.2)
    except KeyboardInterrupt:
        cancel.set()
        thread.join()
    except DirectorError as exc:
        print(f"× {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        conn.disconnect()

    result = director.scan_result
    if result is None:
        print(f"× {director.status_message}", file=sys.stderr)
        sys.exit(1)
    print(f"     {len(result.snapshots)} snapshots, {len(result.events)} events")
    for evt in result.events:
        print(f"     frame {evt.frame:>7d}  {evt.description}")

    print("2/3  Generating camera plan...")
    try:
        plan = director.generate_plan()
    except (DirectorError, PlanProviderError) as exc:
        print(f"× {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"     {len(plan.actions)} actions ({plan.generated_by})")

    print("3/3  Applying plan...")
    timeline = CameraTimeline(camera_names={c.group_num: c.group_name for c in result.cameras})
    applied = director.apply_plan(timeline)
    print(f"     {applied} camera changes")

    output = {"plan": plan.to_dict(), **timeline.to_dict()}
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=2)
    print(f"\n✓ Written to {args.output}")


if __name__ == "__main__":
    main()
