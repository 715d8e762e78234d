"""
Admin record entry: manual match results, daily totals, and edits.
Validation happens before any write; every points value goes through the placement table.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from royale.errors import NotFoundError, PersistenceError, ValidationError
from royale.models import MatchRecord, RecordKind, Team, Tournament
from royale.persistence.repositories import MatchRecordRepository, TeamRepository, TournamentRepository
from royale.scoring import PLACEMENT_MAX, compute_points

logger = logging.getLogger(__name__)


# ---------- Validation ----------


def validate_placement(placement: int | None) -> int:
    if placement is None or placement < 1 or placement > PLACEMENT_MAX:
        raise ValidationError(f"Placement must be between 1 and {PLACEMENT_MAX}")
    return placement


def validate_kills(kills: int | None) -> int:
    if kills is None or kills < 0:
        raise ValidationError("Kills must be a positive number")
    return kills


def validate_day(day: int | None) -> int:
    if day is None or day < 1:
        raise ValidationError("Day must be 1 or later")
    return day


def validate_match_number(match_number: int | None) -> int:
    if match_number is None or match_number < 1:
        raise ValidationError("Match number must be 1 or later")
    return match_number


@dataclass
class TeamResult:
    """One team's line in a manually entered match."""
    team_id: str
    placement: int
    kills: int


# ---------- RecordService ----------


class RecordService:
    """Writes manual and daily-total records, edits results, lists records for a tournament."""

    def __init__(self) -> None:
        self._tournament_repo = TournamentRepository()
        self._team_repo = TeamRepository()
        self._record_repo = MatchRecordRepository()

    def _require_tournament(self, conn: sqlite3.Connection, tournament_id: str) -> Tournament:
        tournament = self._tournament_repo.get(conn, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", tournament_id)
        return tournament

    def _require_team_in(self, conn: sqlite3.Connection, tournament_id: str, team_id: str) -> Team:
        team = self._team_repo.get(conn, team_id)
        if team is None or team.tournament_id != tournament_id:
            raise NotFoundError("Team", team_id)
        return team

    def enter_match(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        day: int,
        match_number: int,
        results: list[TeamResult],
        entered_by: str | None = None,
    ) -> list[MatchRecord]:
        """
        Record one match for several teams at once. Every line is validated first;
        then all rows are written in one transaction.
        """
        validate_day(day)
        validate_match_number(match_number)
        if not results:
            raise ValidationError("Please add at least one team result")
        self._require_tournament(conn, tournament_id)
        seen: set[str] = set()
        for result in results:
            validate_placement(result.placement)
            validate_kills(result.kills)
            if result.team_id in seen:
                raise ValidationError("Team already added")
            seen.add(result.team_id)
            self._require_team_in(conn, tournament_id, result.team_id)

        created: list[MatchRecord] = []
        try:
            for result in results:
                created.append(self._record_repo.create(
                    conn,
                    team_id=result.team_id,
                    match_number=match_number,
                    day=day,
                    placement=result.placement,
                    kills=result.kills,
                    points=compute_points(result.placement, result.kills),
                    kind=RecordKind.MANUAL,
                    screenshot_url=RecordKind.MANUAL.sentinel(),
                    uploaded_by=entered_by,
                    commit=False,
                ))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError("manual match entry", str(e)) from e
        logger.info(
            "Manual entry saved: tournament=%s day=%d match=%d teams=%d",
            tournament_id, day, match_number, len(created),
        )
        return created

    def enter_daily_total(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        team_id: str,
        day: int,
        kills: int,
        placement_points: int,
        entered_by: str | None = None,
    ) -> MatchRecord:
        """One record for a team's whole day: match_number 0, placement 0, points flattened."""
        validate_day(day)
        validate_kills(kills)
        if placement_points is None or placement_points < 0:
            raise ValidationError("Placement points must be a positive number")
        self._require_tournament(conn, tournament_id)
        self._require_team_in(conn, tournament_id, team_id)
        try:
            record = self._record_repo.create(
                conn,
                team_id=team_id,
                match_number=0,
                day=day,
                placement=0,
                kills=kills,
                points=kills + placement_points,
                kind=RecordKind.DAILY_TOTAL,
                screenshot_url=RecordKind.DAILY_TOTAL.sentinel(),
                uploaded_by=entered_by,
            )
        except sqlite3.Error as e:
            raise PersistenceError("daily total entry", str(e)) from e
        logger.info("Daily total saved: team=%s day=%d points=%d", team_id, day, record.points)
        return record

    def edit_record(
        self,
        conn: sqlite3.Connection,
        record_id: str,
        placement: int | None = None,
        kills: int | None = None,
        placement_points: int | None = None,
    ) -> MatchRecord:
        """
        Correct a record and recompute its points.
        Per-match records take placement/kills. Daily totals take kills/placement_points;
        omitted values keep their stored meaning (placement points = points - kills).
        """
        record = self._record_repo.get(conn, record_id)
        if record is None:
            raise NotFoundError("Record", record_id)
        if record.is_daily_total:
            if placement is not None:
                raise ValidationError("Daily totals have no placement; edit placement_points instead")
            new_kills = validate_kills(record.kills if kills is None else kills)
            current_pp = record.points - record.kills
            new_pp = current_pp if placement_points is None else placement_points
            if new_pp < 0:
                raise ValidationError("Placement points must be a positive number")
            new_placement = 0
            new_points = new_kills + new_pp
        else:
            if placement_points is not None:
                raise ValidationError("placement_points applies to daily totals only")
            new_placement = validate_placement(record.placement if placement is None else placement)
            new_kills = validate_kills(record.kills if kills is None else kills)
            new_points = compute_points(new_placement, new_kills)
        try:
            self._record_repo.update_result(conn, record_id, new_placement, new_kills, new_points)
        except sqlite3.Error as e:
            raise PersistenceError("record edit", str(e)) from e
        logger.info("Record %s edited: placement=%d kills=%d points=%d", record_id, new_placement, new_kills, new_points)
        record.placement = new_placement
        record.kills = new_kills
        record.points = new_points
        return record

    def list_records(self, conn: sqlite3.Connection, tournament_id: str) -> list[tuple[MatchRecord, Team]]:
        """Every record of the tournament, newest first, paired with its team."""
        self._require_tournament(conn, tournament_id)
        teams = {t.id: t for t in self._team_repo.list_by_tournament(conn, tournament_id)}
        records = self._record_repo.list_by_teams(conn, list(teams), newest_first=True)
        return [(r, teams[r.team_id]) for r in records]
