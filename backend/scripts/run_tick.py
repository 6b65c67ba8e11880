#!/usr/bin/env python3
"""
Run a single sync tick on demand.

This will:
1. Ensure the round exists for the week (building rosters on first sight)
2. Re-scrape rosters if FORCE_FETCH_TEAMS is set or a roster is empty
3. Ensure and update per-week player score rows
4. Replace the round's fixture results

Usage:
    python3 scripts/run_tick.py
    python3 scripts/run_tick.py --week 12
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).parent.parent / ".env")

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import Config
from sync.orchestrator import SyncOrchestrator
from utils.logger import setup_logging


async def run_tick(week_override: Optional[int] = None) -> int:
    """Run one tick and return a process exit code."""
    if week_override is not None:
        os.environ["CURRENT_WEEK"] = str(week_override)
    config = Config()
    setup_logging(config)

    orchestrator = SyncOrchestrator(config)
    print(f"Running sync tick for week {config.current_week}...\n")

    try:
        await orchestrator.initialize()
        report = await orchestrator.run_tick()
    finally:
        await orchestrator.close()

    if not report.ok:
        print(f"\nTick failed: {'; '.join(report.errors)}")
        return 1

    print(f"\nRound created: {report.round_created}, rosters synced: {report.rosters_synced}")
    print(f"Players in play: {report.player_count}")
    if report.scores:
        print(f"Scores updated: {len(report.scores.changed_ids)} changed, "
              f"{len(report.scores.skipped_ids)} skipped {report.scores.skipped_ids}")
    print(f"Fixtures: {report.fixture_count}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one sync tick for a week.")
    parser.add_argument("--week", type=int, metavar="N", help="Week to sync (default: CURRENT_WEEK)")
    args = parser.parse_args()
    sys.exit(asyncio.run(run_tick(week_override=args.week)))


if __name__ == "__main__":
    main()
