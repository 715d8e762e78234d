#!/usr/bin/env python3
"""
Seed a demo tournament: teams, a few manual matches, a daily total, player stats
and an access code per team. Prints the standings and an admin token.
Run from project root: python3 scripts/seed_demo.py [--db data/demo.db]
"""
from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from royale.auth import create_access_token
from royale.logging_config import setup_logging
from royale.models import Role
from royale.persistence import AccessRepository, PlayerStatRepository, get_connection, init_db, set_db_path
from royale.services import RecordService, TeamResult, TournamentService

TEAM_NAMES = ["Alpha Wolves", "Bravo Six", "Crimson Tide", "Delta Force", "Echo Squad", "Foxtrot Kings"]
PLAYER_TAGS = ["Ace", "Bolt", "Cipher", "Dash"]


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo battle-royale tournament")
    parser.add_argument("--db", default=str(PROJECT_ROOT / "data" / "demo.db"), help="SQLite file to seed")
    parser.add_argument("--matches", type=int, default=4, help="Manual matches to enter on day 1")
    parser.add_argument("--seed", type=int, default=7, help="RNG seed for placements and kills")
    args = parser.parse_args()

    setup_logging()
    set_db_path(args.db)
    init_db(db_path=args.db)
    rng = random.Random(args.seed)

    conn = get_connection()
    try:
        tournaments = TournamentService()
        records = RecordService()
        t = tournaments.create_tournament(conn, "Demo Cup", total_matches=6, description="Seeded demo data")
        teams = [tournaments.add_team(conn, t.id, name) for name in TEAM_NAMES]
        print(f"Created tournament: {t.name} (id={t.id})")

        for match_number in range(1, args.matches + 1):
            placements = rng.sample(range(1, len(teams) + 1), len(teams))
            results = [TeamResult(team.id, p, rng.randint(0, 8)) for team, p in zip(teams, placements)]
            records.enter_match(conn, t.id, day=1, match_number=match_number, results=results, entered_by="seed")
        records.enter_daily_total(conn, t.id, teams[-1].id, day=2, kills=11, placement_points=9, entered_by="seed")

        stats = PlayerStatRepository()
        access = AccessRepository()
        for team in teams:
            prefix = team.name.split()[0]
            lines = [(f"{prefix}_{tag}", rng.randint(0, 6), rng.randint(50, 900)) for tag in PLAYER_TAGS]
            stats.create_many(conn, team.id, lines)
            access.create_code(conn, f"{prefix.upper()}-{rng.randint(1000, 9999)}", Role.PLAYER.value, team_id=team.id)

        snapshot = tournaments.snapshot(conn, t.id)
        print("\nStandings:")
        for rank, s in enumerate(snapshot.standings, start=1):
            print(f"  {rank:>2}. {s.team_name:<14} {s.total_points:>4} pts  ({s.placement_points} placement, {s.total_kills} kills)")
        if snapshot.mvp:
            print(f"\nMVP: {snapshot.mvp.player_name} ({snapshot.mvp.total_kills} kills)")
        print(f"\nAdmin token: {create_access_token('demo-admin', Role.ADMIN)}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
