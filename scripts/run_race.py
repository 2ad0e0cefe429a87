"""
Utility script to run a single headless race.

Usage:
    python scripts/run_race.py --bet 3 --difficulty 4 --seed 7

    # Also write the rendered frames as a GIF replay
    python scripts/run_race.py --bet 3 --animate replays/race.gif --fps 30

The penalty signal goes to DERBY_PENALTY_ENDPOINT (see configs/derby_settings.json)
when the chosen racer misses the cut. Pass --no-signal to keep it local.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

# Ensure repo root is on sys.path when script is executed from anywhere
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.append(REPO_ROOT)

import numpy as np  # noqa: E402

from micro_derby.config import DEFAULT_DIFFICULTY  # noqa: E402
from micro_derby.engine.constants import MAX_DIFFICULTY, MIN_DIFFICULTY  # noqa: E402
from micro_derby.penalty_notifier import PenaltyNotifier  # noqa: E402
from micro_derby.race_engine import RaceEngine  # noqa: E402


def save_gif(frames: List[np.ndarray], output_path: Path, fps: int) -> None:
    from PIL import Image

    if not frames:
        raise RuntimeError("No frames to write.")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    images = [Image.fromarray(frame).convert("P") for frame in frames]
    images[0].save(
        str(output_path),
        save_all=True,
        append_images=images[1:],
        duration=int(1000 / max(fps, 1)),
        loop=0,
    )
    print(f"[replay] saved {len(frames)} frames to {output_path}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Micro Derby race.")
    parser.add_argument("--bet", type=int, required=True, help="Racer ID (1-8) to back.")
    parser.add_argument("--difficulty", type=int, default=DEFAULT_DIFFICULTY, help="Finishers needed to end the race (1-8).")
    parser.add_argument("--width", type=int, default=1000, help="Viewport width in pixels.")
    parser.add_argument("--height", type=int, default=800, help="Viewport height in pixels.")
    parser.add_argument("--seed", type=int, default=None, help="Optional RNG seed.")
    parser.add_argument("--realtime", action="store_true", help="Pace frames at the configured frame rate.")
    parser.add_argument("--animate", type=Path, help="Optional GIF path for the rendered replay.")
    parser.add_argument("--fps", type=int, default=30, help="Frames per second for the GIF (default: 30).")
    parser.add_argument("--every", type=int, default=2, help="Keep every Nth frame in the GIF (default: 2).")
    parser.add_argument("--no-signal", action="store_true", help="Do not contact the penalty endpoint.")
    args = parser.parse_args()
    if not MIN_DIFFICULTY <= args.difficulty <= MAX_DIFFICULTY:
        parser.error(f"--difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}, got {args.difficulty}")
    return args


async def _run(args: argparse.Namespace) -> Optional[object]:
    notifier = PenaltyNotifier(enabled=not args.no_signal)
    engine = RaceEngine(
        args.width,
        args.height,
        difficulty=args.difficulty,
        rng_seed=args.seed,
        notifier=notifier,
        render=args.animate is not None,
    )
    frames: List[np.ndarray] = []

    def collect(session, pixels):
        if pixels is not None and session.frame % max(args.every, 1) == 0:
            frames.append(pixels)

    try:
        outcome = await engine.run_race(args.bet, on_frame=collect, realtime=args.realtime)
        print(engine.status_text or "Race did not finish.")
    finally:
        await engine.shutdown()

    if args.animate:
        save_gif(frames, args.animate, args.fps)
    return outcome


def main() -> None:
    args = parse_args()
    try:
        asyncio.run(_run(args))
    except ValueError as err:
        print(f"Invalid race settings: {err}")
        sys.exit(2)
    except KeyboardInterrupt:
        print("Race stopped by user.")


if __name__ == "__main__":
    main()
