#!/usr/bin/env python3
"""
Drive River - mirror a Google Drive folder into a local index directory.

Polls the Drive change feed every `update_rate` seconds and writes each
relevant file (content + metadata) under <output_dir>/<name>/.
"""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path

# Load .env file if it exists
env_path = Path(__file__).parent / ".env"
if env_path.exists():
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip())

from driveriver.config import RiverSettings
from driveriver.exceptions import DriveRiverError
from driveriver.river import CycleStats, build_river


def print_stats(stats: CycleStats):
    print(
        f"  {stats.accepted} changes: {stats.indexed} indexed, {stats.deleted} deleted, "
        f"{stats.skipped} skipped, {stats.no_content} without content "
        f"(cursor {stats.cursor}, {stats.api_calls} API calls)"
    )


def main():
    parser = argparse.ArgumentParser(
        description="Mirror a Google Drive folder into a local index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python river.py --config river.json          # Poll forever
  python river.py --config river.json --once   # Single cycle
  python river.py --config river.json --reset  # Forget cursor, replay all changes
""",
    )
    parser.add_argument("--config", "-c", type=Path, default=Path("river.json"),
                        help="River settings file (default: river.json)")
    parser.add_argument("--once", action="store_true",
                        help="Run a single polling cycle and exit")
    parser.add_argument("--reset", action="store_true",
                        help="Forget the saved cursor before polling")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = RiverSettings.load(args.config)
    river = build_river(settings)

    if args.reset:
        river.state.reset()
        print("Cursor reset: replaying the whole change feed\n")

    scope = f"folder '{settings.folder}'" if settings.folder else "whole drive"
    print(f"Drive River '{settings.name}' - {scope}")
    print("-" * 40)

    try:
        if args.once:
            print_stats(river.run_cycle())
            return

        stop_event = threading.Event()
        try:
            river.run_forever(stop_event, on_cycle=print_stats)
        except KeyboardInterrupt:
            stop_event.set()
            print("\nStopped.")
    except DriveRiverError as e:
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
