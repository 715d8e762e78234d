"""
Battle-royale scoring: placement table, per-match points, team standings,
and player leaderboards (MVP by kills, top damage).
All functions are pure; callers load rows and persist results.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from royale.models import MatchRecord, PlayerStat, StandingFigure, Team


# ---------- Placement points ----------
# The only placement table in the codebase. Ranks 9-32 finish without placement points.
PLACEMENT_MAX = 32
PLACEMENT_POINTS: dict[int, int] = {
    1: 10,
    2: 6,
    3: 5,
    4: 4,
    5: 3,
    6: 2,
    7: 1,
    8: 1,
    **{rank: 0 for rank in range(9, PLACEMENT_MAX + 1)},
}


def placement_points(placement: int | None) -> int:
    """Points for a finish rank. 0 (not applicable), out-of-table and missing ranks score 0."""
    if placement is None:
        return 0
    return PLACEMENT_POINTS.get(placement, 0)


def compute_points(placement: int | None, kills: int) -> int:
    """Points for one per-match record: placement points plus one point per kill."""
    return placement_points(placement) + kills


# ---------- Team standing ----------


def compute_standing(team: Team, records: Iterable[MatchRecord]) -> StandingFigure:
    """
    Aggregate one team's records into a StandingFigure.

    total_points sums the persisted points (never recomputed here: daily totals and
    edited records need not satisfy points = placement_points + kills).
    placement_points is derived from each record's placement through the table, so a
    daily total (placement 0) contributes nothing to it.
    """
    total_points = 0
    total_kills = 0
    placement_total = 0
    matches_played = 0
    first_place_wins = 0
    for record in records:
        total_points += record.points or 0
        total_kills += record.kills or 0
        placement_total += placement_points(record.placement)
        matches_played += 1
        if record.placement == 1:
            first_place_wins += 1
    return StandingFigure(
        team_id=team.id,
        team_name=team.name,
        logo_url=team.logo_url,
        total_points=total_points,
        placement_points=placement_total,
        kill_points=total_kills,
        total_kills=total_kills,
        matches_played=matches_played,
        first_place_wins=first_place_wins,
    )


# ---------- Player leaderboards ----------


@dataclass
class PlayerAggregate:
    """Summed stats for one player name across every row it appears in."""
    player_name: str
    total_kills: int = 0
    total_damage: int = 0
    matches_count: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "player_name": self.player_name,
            "total_kills": self.total_kills,
            "total_damage": self.total_damage,
            "matches_count": self.matches_count,
        }


def aggregate_player_stats(stats: Iterable[PlayerStat]) -> list[PlayerAggregate]:
    """Group rows by exact player_name. Output keeps first-seen order of names."""
    by_name: dict[str, PlayerAggregate] = {}
    for stat in stats:
        agg = by_name.get(stat.player_name)
        if agg is None:
            agg = PlayerAggregate(player_name=stat.player_name)
            by_name[stat.player_name] = agg
        agg.total_kills += stat.kills or 0
        agg.total_damage += stat.damage or 0
        agg.matches_count += 1
    return list(by_name.values())


def _leader(aggregates: list[PlayerAggregate], attr: str) -> PlayerAggregate | None:
    # Strict '>' keeps the first-seen player on ties.
    best: PlayerAggregate | None = None
    for agg in aggregates:
        if best is None or getattr(agg, attr) > getattr(best, attr):
            best = agg
    return best


def compute_mvp(stats: Iterable[PlayerStat]) -> PlayerAggregate | None:
    """Player with the most summed kills; ties go to the name seen first. None when there are no rows."""
    return _leader(aggregate_player_stats(stats), "total_kills")


def compute_top_damage(stats: Iterable[PlayerStat]) -> PlayerAggregate | None:
    """Player with the most summed damage; same grouping and tie rule as compute_mvp."""
    return _leader(aggregate_player_stats(stats), "total_damage")
