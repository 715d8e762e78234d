#!/usr/bin/env python3
"""
Print a tournament's live standings every few seconds until interrupted.
Run from project root: python3 scripts/watch_standings.py <tournament_id> [--interval 5]
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from royale.config import REFRESH_INTERVAL_SECONDS
from royale.logging_config import setup_logging
from royale.persistence import init_db, set_db_path
from royale.services import StandingsRefresher
from royale.standings import TournamentSnapshot


def render(snapshot: TournamentSnapshot) -> None:
    print("\033[2J\033[H", end="")
    print(f"{'#':>3}  {'Team':<20} {'Pts':>5} {'Place':>6} {'Kills':>6} {'MP':>4} {'Wins':>5}")
    for rank, s in enumerate(snapshot.standings, start=1):
        print(
            f"{rank:>3}  {s.team_name:<20} {s.total_points:>5} {s.placement_points:>6} "
            f"{s.total_kills:>6} {s.matches_played:>4} {s.first_place_wins:>5}"
        )
    if snapshot.mvp:
        print(f"\nMVP: {snapshot.mvp.player_name} ({snapshot.mvp.total_kills} kills)")
    if snapshot.top_damage:
        print(f"Top damage: {snapshot.top_damage.player_name} ({snapshot.top_damage.total_damage})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Watch live standings")
    parser.add_argument("tournament_id")
    parser.add_argument("--interval", type=float, default=REFRESH_INTERVAL_SECONDS)
    parser.add_argument("--db", default=None, help="SQLite file (default: ROYALE_DB_PATH)")
    args = parser.parse_args()

    setup_logging()
    if args.db:
        set_db_path(args.db)
    init_db()
    refresher = StandingsRefresher(args.tournament_id, render, interval=args.interval)
    try:
        asyncio.run(refresher.run())
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
