"""
Standings ranker and CSV export.

Order: total points desc, then placement points desc. Nothing else breaks ties:
teams equal on both keep the order they were given in (stable sort), so the
ranking is only as stable as the order the store returns teams in.
"""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable

from royale.models import MatchRecord, PlayerStat, StandingFigure, Team
from royale.scoring import PlayerAggregate, compute_mvp, compute_standing, compute_top_damage

CSV_HEADER = [
    "Rank",
    "Team Name",
    "Total Points",
    "Placement Points",
    "Kill Points",
    "Total Kills",
    "Matches Played",
    "First Place Wins",
]


def rank_standings(standings: Iterable[StandingFigure]) -> list[StandingFigure]:
    """Return standings in rank order. Rank is the 1-based position in the result."""
    return sorted(standings, key=lambda s: (-s.total_points, -s.placement_points))


def build_standings(teams: Iterable[Team], records: Iterable[MatchRecord]) -> list[StandingFigure]:
    """One StandingFigure per team (zeros when a team has no records), ranked."""
    by_team: dict[str, list[MatchRecord]] = {}
    for record in records:
        by_team.setdefault(record.team_id, []).append(record)
    return rank_standings(compute_standing(team, by_team.get(team.id, [])) for team in teams)


def ranked_dicts(ranked: list[StandingFigure]) -> list[dict[str, Any]]:
    return [s.to_dict(rank=i) for i, s in enumerate(ranked, start=1)]


# ---------- Snapshot ----------


@dataclass
class TournamentSnapshot:
    """Everything the standings view and the history archive show for one tournament."""
    standings: list[StandingFigure] = field(default_factory=list)
    mvp: PlayerAggregate | None = None
    top_damage: PlayerAggregate | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "standings": ranked_dicts(self.standings),
            "mvp": self.mvp.to_dict() if self.mvp else None,
            "top_damage": self.top_damage.to_dict() if self.top_damage else None,
        }


def build_snapshot(
    teams: list[Team],
    records: list[MatchRecord],
    player_stats: list[PlayerStat],
) -> TournamentSnapshot:
    """Ranked standings plus MVP and top damage, from rows already scoped to one tournament."""
    return TournamentSnapshot(
        standings=build_standings(teams, records),
        mvp=compute_mvp(player_stats),
        top_damage=compute_top_damage(player_stats),
    )


# ---------- CSV ----------


def standings_to_csv(ranked: list[StandingFigure]) -> str:
    """Serialize ranked standings. Team names are always quoted; numbers never are."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    buf.write(",".join(CSV_HEADER) + "\n")
    for rank, s in enumerate(ranked, start=1):
        writer.writerow([
            rank,
            s.team_name,
            s.total_points,
            s.placement_points,
            s.kill_points,
            s.total_kills,
            s.matches_played,
            s.first_place_wins,
        ])
    return buf.getvalue()


def parse_standings_csv(text: str) -> list[dict[str, Any]]:
    """Read an exported standings CSV back into dicts keyed by header, numbers as int."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header != CSV_HEADER:
        raise ValueError(f"Unexpected standings CSV header: {header}")
    rows: list[dict[str, Any]] = []
    for row in reader:
        if not row:
            continue
        d: dict[str, Any] = {}
        for key, value in zip(CSV_HEADER, row):
            d[key] = value if key == "Team Name" else int(value)
        rows.append(d)
    return rows


def csv_filename(tournament_name: str, on: date | None = None) -> str:
    """e.g. 'Summer Cup 2025' -> 'summer-cup-2025-standings-2025-07-01.csv' (UTC date)."""
    day = on or datetime.now(timezone.utc).date()
    slug = re.sub(r"\s+", "-", tournament_name.lower())
    return f"{slug}-standings-{day.isoformat()}.csv"
