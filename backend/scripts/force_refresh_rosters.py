#!/usr/bin/env python3
"""
Force a re-scrape of every team's roster and deduction for a week.

Use this when a manager changed captain or made transfers after the round
was first built (the sync loop only builds rosters once per round unless
FORCE_FETCH_TEAMS is set).

Usage (from backend directory):
    python3 scripts/force_refresh_rosters.py
    python3 scripts/force_refresh_rosters.py --week 12
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import Config
from database.supabase_client import SupabaseClient
from fpl_site.client import FPLSiteClient
from sync.rosters import RosterSynchronizer, RoundNotFoundError
from utils.logger import setup_logging


async def force_refresh_rosters(week_override: Optional[int] = None) -> int:
    if week_override is not None:
        os.environ["CURRENT_WEEK"] = str(week_override)
    config = Config()
    setup_logging(config)
    week = config.current_week

    db = SupabaseClient(config)
    async with FPLSiteClient(config) as site:
        synchronizer = RosterSynchronizer(site, db)
        try:
            round_ = await synchronizer.sync_rosters(week)
        except RoundNotFoundError:
            print(f"No round for week {week}. Run the tracker (or scripts/run_tick.py) first.")
            return 1

    for team in round_.teams:
        captain = team.captain
        print(f"{team.name:<10} {len(team.players):>2} players  "
              f"captain={captain.player_id if captain else '-'}  deduction={team.deduction}")
    print(f"\nDone. {len(synchronizer.relevant_players(week))} distinct players in play for week {week}.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Re-scrape every roster for a week (overwrites deductions and players)."
    )
    parser.add_argument("--week", type=int, metavar="N", help="Week to refresh (default: CURRENT_WEEK)")
    args = parser.parse_args()
    sys.exit(asyncio.run(force_refresh_rosters(week_override=args.week)))


if __name__ == "__main__":
    main()
