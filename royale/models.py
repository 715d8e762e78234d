"""
Data models for the tournament backend.
Domain objects only; no persistence or API logic.

A tournament owns its teams; a team owns its match records and player stats.
History rows are frozen copies with no live link to the tournament they came from.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Sentinel literals (persisted in screenshot_url) ----------
MANUAL_ENTRY_SENTINEL = "manual-entry"
DAILY_TOTAL_SENTINEL = "daily-total-entry"

# match_number 0 marks a daily aggregate record
DAILY_TOTAL_MATCH_NUMBER = 0


# ---------- Record kind ----------
class RecordKind(str, Enum):
    """Which path produced a match record."""
    AUTOMATIC = "automatic"      # screenshot + image analysis
    MANUAL = "manual"            # admin keyed one match
    DAILY_TOTAL = "daily_total"  # admin keyed a whole day, match_number = 0

    @classmethod
    def from_legacy(cls, screenshot_url: str | None, match_number: int | None) -> "RecordKind":
        """Classify a row written before the kind column existed, from its sentinel."""
        if screenshot_url == DAILY_TOTAL_SENTINEL or match_number == DAILY_TOTAL_MATCH_NUMBER:
            return cls.DAILY_TOTAL
        if screenshot_url == MANUAL_ENTRY_SENTINEL:
            return cls.MANUAL
        return cls.AUTOMATIC

    def sentinel(self) -> str | None:
        """screenshot_url literal written for this kind; automatic records store a real URL."""
        if self is RecordKind.MANUAL:
            return MANUAL_ENTRY_SENTINEL
        if self is RecordKind.DAILY_TOTAL:
            return DAILY_TOTAL_SENTINEL
        return None


class Role(str, Enum):
    ADMIN = "admin"
    PLAYER = "player"


# ---------- Tournament ----------
@dataclass
class Tournament:
    """
    A multi-day tournament. total_matches is the per-team match cap.
    Deleted only by archival.
    """
    id: str
    name: str
    total_matches: int
    created_at: datetime
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "total_matches": self.total_matches,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Team ----------
@dataclass
class Team:
    """A team registered to one tournament. logo_path is the storage key behind logo_url."""
    id: str
    tournament_id: str
    name: str
    created_at: datetime
    logo_url: str | None = None
    logo_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "logo_url": self.logo_url,
            "created_at": self.created_at.isoformat(),
        }


# ---------- MatchRecord ----------
@dataclass
class MatchRecord:
    """
    One raw result row for a team.
    match_number >= 1: per-match record (automatic or manual).
    match_number == 0: daily total; placement is 0 and points already include
    the manually entered placement points.
    points is authoritative and computed at write time.
    """
    id: str
    team_id: str
    match_number: int
    day: int
    placement: int
    kills: int
    points: int
    kind: RecordKind
    screenshot_url: str
    created_at: datetime
    storage_path: str | None = None
    uploaded_by: str | None = None
    analyzed_at: datetime | None = None

    @property
    def is_daily_total(self) -> bool:
        return self.kind is RecordKind.DAILY_TOTAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "match_number": self.match_number,
            "day": self.day,
            "placement": self.placement,
            "kills": self.kills,
            "points": self.points,
            "kind": self.kind.value,
            "screenshot_url": self.screenshot_url,
            "analyzed_at": self.analyzed_at.isoformat() if self.analyzed_at else None,
            "created_at": self.created_at.isoformat(),
        }


# ---------- PlayerStat ----------
@dataclass
class PlayerStat:
    """One player's line from one match. player_name is the only player identity."""
    id: str
    team_id: str
    player_name: str
    kills: int
    damage: int
    screenshot_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "screenshot_id": self.screenshot_id,
            "team_id": self.team_id,
            "player_name": self.player_name,
            "kills": self.kills,
            "damage": self.damage,
        }


# ---------- AccessCode / Session ----------
@dataclass
class AccessCode:
    """Code that grants a role, optionally bound to a team. Issued outside this system."""
    code: str
    role: str
    created_at: datetime
    team_id: str | None = None


@dataclass
class Session:
    """A caller session opened with an access code."""
    id: str
    user_id: str
    code_used: str
    role: str
    created_at: datetime
    team_id: str | None = None


# ---------- StandingFigure (derived) ----------
@dataclass
class StandingFigure:
    """Aggregate standing for one team. Derived on every read; frozen into history on archival."""
    team_id: str
    team_name: str
    total_points: int = 0
    placement_points: int = 0
    kill_points: int = 0
    total_kills: int = 0
    matches_played: int = 0
    first_place_wins: int = 0
    logo_url: str | None = None

    def to_dict(self, rank: int | None = None) -> dict[str, Any]:
        d: dict[str, Any] = {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "logo_url": self.logo_url,
            "total_points": self.total_points,
            "placement_points": self.placement_points,
            "kill_points": self.kill_points,
            "total_kills": self.total_kills,
            "matches_played": self.matches_played,
            "first_place_wins": self.first_place_wins,
        }
        if rank is not None:
            d["rank"] = rank
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "StandingFigure":
        return cls(
            team_id=d["team_id"],
            team_name=d["team_name"],
            logo_url=d.get("logo_url"),
            total_points=int(d.get("total_points", 0)),
            placement_points=int(d.get("placement_points", 0)),
            kill_points=int(d.get("kill_points", 0)),
            total_kills=int(d.get("total_kills", 0)),
            matches_played=int(d.get("matches_played", 0)),
            first_place_wins=int(d.get("first_place_wins", 0)),
        )


# ---------- TournamentHistory ----------
@dataclass
class TournamentHistory:
    """
    Append-only archive of a closed tournament. Created once, never mutated.
    standings is the ranked list as dicts (StandingFigure.to_dict with rank).
    """
    id: str
    tournament_name: str
    total_matches: int
    original_tournament_id: str
    archived_at: datetime
    standings: list[dict[str, Any]] = field(default_factory=list)
    tournament_description: str | None = None
    mvp_player_name: str | None = None
    mvp_total_kills: int = 0
    mvp_matches_count: int = 0
    top_damage_player_name: str | None = None
    top_damage_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tournament_name": self.tournament_name,
            "tournament_description": self.tournament_description,
            "total_matches": self.total_matches,
            "standings": self.standings,
            "mvp_player_name": self.mvp_player_name,
            "mvp_total_kills": self.mvp_total_kills,
            "mvp_matches_count": self.mvp_matches_count,
            "top_damage_player_name": self.top_damage_player_name,
            "top_damage_total": self.top_damage_total,
            "original_tournament_id": self.original_tournament_id,
            "archived_at": self.archived_at.isoformat(),
        }
