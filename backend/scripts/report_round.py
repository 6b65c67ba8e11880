#!/usr/bin/env python3
"""
Report the standings of a round from stored rosters and player scores.

Each team's score is the sum of its players' total_score with the
captain's counted twice, minus the team's deduction. Read-only.

Usage:
    cd backend && python scripts/report_round.py [WEEK]

Defaults: WEEK=CURRENT_WEEK.

Uses SUPABASE_URL and SUPABASE_KEY from .env.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from config import Config
from database.supabase_client import SupabaseClient
from sync.models import GlobalPlayer, Team
from sync.rosters import RoundNotFoundError, load_round


def team_score(team: Team, scores: dict) -> int:
    total = 0
    for player in team.players:
        points = scores.get(player.player_id, 0)
        total += points * 2 if player.captain else points
    return total - team.deduction


def main():
    if len(sys.argv) > 1:
        os.environ["CURRENT_WEEK"] = sys.argv[1]

    try:
        config = Config()
    except ValueError as e:
        print(f"Config error: {e}")
        sys.exit(1)

    db = SupabaseClient(config)
    week = config.current_week

    try:
        round_ = load_round(db, week)
    except RoundNotFoundError:
        print(f"No round for week {week}.")
        sys.exit(1)

    players = [GlobalPlayer.from_row(r) for r in db.get_global_players(week)]
    scores = {p.player_id: p.total_score for p in players}

    rows = sorted(
        ((team.name, team_score(team, scores), team.deduction) for team in round_.teams),
        key=lambda r: r[1],
        reverse=True,
    )

    header = f"{'Team':<10} {'Points':>8} {'Ded':>5}"
    sep = "-" * len(header)
    print(f"Week {week} standings\n")
    print(header)
    print(sep)
    for name, points, deduction in rows:
        print(f"{name:<10} {points:>8} {deduction:>5}")
    print(sep)

    if players:
        latest = players[0]
        print(f"\nLast scoring change: {latest.name} ({latest.total_score}) at "
              f"{latest.last_change.isoformat() if latest.last_change else '-'}")
    print(f"Fixtures recorded: {len(round_.fixtures)}")


if __name__ == "__main__":
    main()
