"""Simulator — writes a fake game journal and status snapshot for testing.

Usage
-----
Terminal 1:  journaltail -d /tmp/journal --log-level DEBUG
Terminal 2:  python -m journaltail.simulator -d /tmp/journal

The simulator creates a ``Journal.<timestamp>.01.log`` file, appends
scripted records with pauses between them, and rewrites ``Status.json``
the way the game does (truncate first, then write).
"""

from __future__ import annotations

import argparse
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import load_config

# ── Scripted scenario ──────────────────────────────────────────

SCENARIO: list[dict] = [
    {"event": "Fileheader", "part": 1, "language": "English/UK", "gameversion": "4.0.0.1904", "delay": 0.5},
    {"event": "Commander", "FID": "F0000001", "Name": "SIMULATOR", "delay": 0.5},
    {"event": "LoadGame", "Commander": "SIMULATOR", "Ship": "CobraMkIII", "Credits": 1000, "delay": 1.0},
    {"event": "Location", "StarSystem": "Shinrarta Dezhra", "Docked": True, "delay": 1.0},
    {"event": "Undocked", "StationName": "Jameson Memorial", "delay": 2.0,
     "status": {"Flags": 16777240, "Fuel": {"FuelMain": 16.0, "FuelReservoir": 0.63}}},
    {"event": "FSDJump", "StarSystem": "Sol", "JumpDist": 42.17, "delay": 3.0,
     "status": {"Flags": 16777224, "Fuel": {"FuelMain": 12.4, "FuelReservoir": 0.61}}},
    {"event": "DockingRequested", "StationName": "Abraham Lincoln", "delay": 1.5},
    {"event": "Docked", "StationName": "Abraham Lincoln", "StarSystem": "Sol", "delay": 0,
     "status": {"Flags": 16842765, "Fuel": {"FuelMain": 12.4, "FuelReservoir": 0.61}}},
]


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _make_line(entry: dict) -> str:
    payload = {"timestamp": _timestamp()}
    payload.update({k: v for k, v in entry.items() if k not in ("delay", "status")})
    return json.dumps(payload)


def write_status(directory: Path, status: dict) -> Path:
    """Rewrite ``Status.json``; the file is briefly empty in between."""
    path = directory / "Status.json"
    with open(path, "w", encoding="utf-8") as fh:
        fh.flush()
        payload = {"timestamp": _timestamp(), "event": "Status"}
        payload.update(status)
        fh.write(json.dumps(payload))
    return path


def run_scenario(
    journal_dir: Path,
    *,
    loops: int = 1,
    speed: float = 1.0,
    startup_delay: float = 3.0,
    journal_name: Optional[str] = None,
) -> Path:
    journal_dir.mkdir(parents=True, exist_ok=True)

    filename = journal_name or f"Journal.{datetime.now().strftime('%Y-%m-%dT%H%M%S')}.01.log"
    filepath = journal_dir / filename

    print("journaltail simulator")
    print(f"  Journal file: {filepath}")
    print(f"  Speed:        {speed}x")
    print(f"  Loops:        {loops}")
    print()
    if startup_delay > 0:
        print(f"─── Starting in {startup_delay:g} seconds … ───")
        time.sleep(startup_delay)

    for loop_num in range(1, loops + 1):
        if loops > 1:
            print(f"\n═══ Loop {loop_num}/{loops} ═══")

        for i, entry in enumerate(SCENARIO, 1):
            delay = entry.get("delay", 1.0) / speed
            print(f"  [{i:2d}/{len(SCENARIO)}]  {entry['event']}")

            with open(filepath, "a", encoding="utf-8") as fh:
                fh.write(_make_line(entry) + "\n")
                fh.flush()

            if "status" in entry:
                write_status(journal_dir, entry["status"])

            if delay > 0:
                time.sleep(delay)

    print()
    print("✓ Scenario complete.")
    return filepath


def main() -> None:
    ap = argparse.ArgumentParser(
        prog="journaltail-sim",
        description="journaltail simulator — append fake journal events to a directory",
    )
    ap.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to config.yaml (uses same config as the watcher)",
    )
    ap.add_argument(
        "-d", "--journal-dir",
        type=str,
        default=None,
        help="Override journal directory (default: from config)",
    )
    ap.add_argument(
        "--loops",
        type=int,
        default=1,
        help="Number of times to repeat the scenario (default: 1)",
    )
    ap.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Speed multiplier — 2.0 = twice as fast, 0.5 = half speed (default: 1.0)",
    )
    args = ap.parse_args()

    cfg = load_config(args.config)

    journal_dir = Path(args.journal_dir) if args.journal_dir else Path(cfg.watcher.journal_dir)

    run_scenario(journal_dir, loops=args.loops, speed=args.speed)


if __name__ == "__main__":
    main()
