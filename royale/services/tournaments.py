"""
Tournament and team management, plus the live standings read path.
Standings are recomputed from raw records on every call; nothing is cached.
"""
from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Any

from royale.config import DEFAULT_TOTAL_MATCHES, LOGO_BUCKET
from royale.errors import NotFoundError, PersistenceError, ValidationError
from royale.models import StandingFigure, Team, Tournament
from royale.persistence.repositories import (
    AccessRepository,
    MatchRecordRepository,
    PlayerStatRepository,
    TeamRepository,
    TournamentRepository,
)
from royale.scoring import PlayerAggregate, compute_mvp, compute_standing
from royale.services.admission import remaining_slots
from royale.services.archival import storage_paths
from royale.standings import TournamentSnapshot, build_snapshot
from royale.storage import ObjectStorage, extension_for

logger = logging.getLogger(__name__)


@dataclass
class TeamSummary:
    """What a player sees for their own team."""
    team: Team
    standing: StandingFigure
    mvp: PlayerAggregate | None
    day: int | None
    uploads_for_day: int
    remaining_uploads: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "team": self.team.to_dict(),
            "standing": self.standing.to_dict(),
            "mvp": self.mvp.to_dict() if self.mvp else None,
            "day": self.day,
            "uploads_for_day": self.uploads_for_day,
            "remaining_uploads": self.remaining_uploads,
        }


class TournamentService:
    """Create/list tournaments, manage teams and logos, compute live standings."""

    def __init__(self) -> None:
        self._tournament_repo = TournamentRepository()
        self._team_repo = TeamRepository()
        self._record_repo = MatchRecordRepository()
        self._stat_repo = PlayerStatRepository()
        self._access_repo = AccessRepository()

    # ---------- tournaments ----------

    def create_tournament(
        self,
        conn: sqlite3.Connection,
        name: str,
        total_matches: int = DEFAULT_TOTAL_MATCHES,
        description: str | None = None,
    ) -> Tournament:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tournament name is required")
        if total_matches < 1:
            raise ValidationError("Total matches must be at least 1")
        tournament = self._tournament_repo.create(
            conn, name=name, total_matches=total_matches, description=(description or "").strip() or None,
        )
        logger.info("Created tournament %s (%s), %d matches per team", tournament.id, name, total_matches)
        return tournament

    def list_tournaments(self, conn: sqlite3.Connection) -> list[Tournament]:
        return self._tournament_repo.list_all(conn)

    def get_tournament(self, conn: sqlite3.Connection, tournament_id: str) -> Tournament:
        tournament = self._tournament_repo.get(conn, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", tournament_id)
        return tournament

    # ---------- teams ----------

    def add_team(self, conn: sqlite3.Connection, tournament_id: str, name: str) -> Team:
        self.get_tournament(conn, tournament_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Team name is required")
        team = self._team_repo.create(conn, tournament_id=tournament_id, name=name)
        logger.info("Added team %s (%s) to tournament %s", team.id, name, tournament_id)
        return team

    def list_teams(self, conn: sqlite3.Connection, tournament_id: str) -> list[Team]:
        self.get_tournament(conn, tournament_id)
        return self._team_repo.list_by_tournament(conn, tournament_id)

    def get_team(self, conn: sqlite3.Connection, team_id: str) -> Team:
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    def remove_team(self, conn: sqlite3.Connection, team_id: str, storage: ObjectStorage) -> list[str]:
        """
        Delete a team with its player stats, records and access bindings in one transaction,
        then its stored screenshots and logo. Returns the paths (or URLs) that could not be deleted.
        """
        team = self.get_team(conn, team_id)
        paths, unresolved = storage_paths([team], self._record_repo.list_by_team(conn, team_id), storage)
        try:
            self._stat_repo.delete_for_teams(conn, [team_id], commit=False)
            self._record_repo.delete_for_teams(conn, [team_id], commit=False)
            self._access_repo.delete_for_teams(conn, [team_id], commit=False)
            self._team_repo.delete(conn, team_id, commit=False)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError("team removal", str(e)) from e
        failed = storage.delete(paths)
        if unresolved:
            logger.warning("Removed team %s; URL(s) outside this storage left in place: %s", team_id, unresolved)
        logger.info("Removed team %s; %d stored object(s), %d not deleted", team_id, len(paths), len(failed))
        return failed + unresolved

    def set_logo(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        storage: ObjectStorage,
        data: bytes,
        content_type: str | None,
        filename: str | None = None,
    ) -> Team:
        """Store a new logo and point the team at it. The previous logo object is deleted best-effort."""
        team = self.get_team(conn, team_id)
        if not (content_type or "").lower().startswith("image/"):
            raise ValidationError("Please upload only image files")
        if not data:
            raise ValidationError("Logo file is empty")
        path = f"{LOGO_BUCKET}/{team_id}/{int(time.time() * 1000)}.{extension_for(content_type, filename)}"
        url = storage.put(path, data, content_type)
        try:
            self._team_repo.update_logo(conn, team_id, url, path)
        except sqlite3.Error as e:
            storage.delete([path])
            raise PersistenceError("team logo", str(e)) from e
        previous = team.logo_path or (storage.path_for_url(team.logo_url) if team.logo_url else None)
        if previous and previous != path:
            storage.delete([previous])
        team.logo_url = url
        team.logo_path = path
        return team

    # ---------- standings ----------

    def snapshot(self, conn: sqlite3.Connection, tournament_id: str) -> TournamentSnapshot:
        """Live ranked standings plus MVP and top damage, computed from raw rows."""
        self.get_tournament(conn, tournament_id)
        teams = self._team_repo.list_by_tournament(conn, tournament_id)
        team_ids = [t.id for t in teams]
        return build_snapshot(
            teams,
            self._record_repo.list_by_teams(conn, team_ids),
            self._stat_repo.list_by_teams(conn, team_ids),
        )

    def team_summary(self, conn: sqlite3.Connection, team_id: str, day: int | None = None) -> TeamSummary:
        team = self.get_team(conn, team_id)
        tournament = self.get_tournament(conn, team.tournament_id)
        records = self._record_repo.list_by_team(conn, team_id)
        per_match = self._record_repo.count_for_team(conn, team_id)
        uploads_for_day = sum(1 for r in records if day is not None and r.day == day and not r.is_daily_total)
        return TeamSummary(
            team=team,
            standing=compute_standing(team, records),
            mvp=compute_mvp(self._stat_repo.list_by_team(conn, team_id)),
            day=day,
            uploads_for_day=uploads_for_day,
            remaining_uploads=remaining_slots(per_match, tournament.total_matches),
        )
