"""
Screenshot upload pipeline.

An admitted batch is processed strictly one item at a time:
store file -> public URL -> analysis -> score -> insert record -> insert player stats.
A failing item is counted and described ("Screenshot N: ...") and the batch moves on.
Player-stat failures are logged only; the item still counts as a success.
"""
from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from royale.analysis import AnalysisResult, analyze_screenshot
from royale.config import SCREENSHOT_BUCKET
from royale.errors import NotFoundError, PersistenceError, RoyaleError, ValidationError
from royale.models import MatchRecord, RecordKind
from royale.persistence.repositories import (
    MatchRecordRepository,
    PlayerStatRepository,
    TeamRepository,
    TournamentRepository,
)
from royale.scoring import compute_points
from royale.services.admission import check_admission
from royale.services.records import validate_day, validate_match_number
from royale.storage import ObjectStorage, extension_for

logger = logging.getLogger(__name__)

Analyzer = Callable[[str], AnalysisResult]

UNREADABLE_MESSAGE = (
    "Could not detect placement or kills. "
    "Please ensure the screenshot clearly shows the match results."
)


@dataclass
class UploadItem:
    """One file from a multipart batch."""
    data: bytes
    content_type: str | None
    filename: str | None = None


@dataclass
class UploadReport:
    """Per-batch tally. errors holds one message per failed item, in item order."""
    success_count: int = 0
    failure_count: int = 0
    errors: list[str] = field(default_factory=list)
    records: list[MatchRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "errors": self.errors,
            "records": [r.to_dict() for r in self.records],
        }


class UploadService:
    """Admission, then the per-item pipeline. Storage and analyzer are injected."""

    def __init__(self, storage: ObjectStorage, analyzer: Analyzer = analyze_screenshot) -> None:
        self._storage = storage
        self._analyzer = analyzer
        self._tournament_repo = TournamentRepository()
        self._team_repo = TeamRepository()
        self._record_repo = MatchRecordRepository()
        self._stat_repo = PlayerStatRepository()

    def submit(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        day: int,
        items: list[UploadItem],
        match_number: int | None = None,
        uploaded_by: str | None = None,
    ) -> UploadReport:
        """
        Run one batch for a team. Raises ValidationError / QuotaExceededError before any
        write; otherwise always returns a report.

        match_number is the first item's match number (item i gets match_number + i);
        when omitted it continues after the team's existing per-match records.
        """
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        tournament = self._tournament_repo.get(conn, team.tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", team.tournament_id)
        validate_day(day)

        existing = self._record_repo.count_for_team(conn, team_id)
        check_admission(existing, tournament.total_matches, [item.content_type for item in items])
        start = validate_match_number(existing + 1 if match_number is None else match_number)

        report = UploadReport()
        batch_ms = int(time.time() * 1000)
        owner = uploaded_by or team_id
        for i, item in enumerate(items):
            path = f"{SCREENSHOT_BUCKET}/{owner}/{batch_ms}_{i}.{extension_for(item.content_type, item.filename)}"
            try:
                record = self._process_item(conn, team_id, day, start + i, path, item, uploaded_by)
            except RoyaleError as e:
                logger.warning("Screenshot %d for team %s failed: %s", i + 1, team_id, e)
                report.failure_count += 1
                report.errors.append(f"Screenshot {i + 1}: {e.user_message}")
                failed = self._storage.delete([path])
                if failed:
                    logger.warning("Orphaned stored object after failed item: %s", path)
                continue
            report.success_count += 1
            report.records.append(record)

        logger.info(
            "Upload batch for team %s day %d: %d ok, %d failed",
            team_id, day, report.success_count, report.failure_count,
        )
        return report

    def _process_item(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        day: int,
        match_number: int,
        path: str,
        item: UploadItem,
        uploaded_by: str | None,
    ) -> MatchRecord:
        url = self._storage.put(path, item.data, item.content_type)
        analysis = self._analyzer(url)
        if not analysis.is_complete:
            raise ValidationError(f"Unreadable analysis for {path}: {analysis}", user_message=UNREADABLE_MESSAGE)
        try:
            record = self._record_repo.create(
                conn,
                team_id=team_id,
                match_number=match_number,
                day=day,
                placement=analysis.placement,
                kills=analysis.kills,
                points=compute_points(analysis.placement, analysis.kills),
                kind=RecordKind.AUTOMATIC,
                screenshot_url=url,
                storage_path=path,
                uploaded_by=uploaded_by,
                analyzed_at=datetime.now(timezone.utc),
            )
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError("screenshot record", str(e)) from e

        lines = analysis.player_lines()
        if lines:
            try:
                self._stat_repo.create_many(conn, team_id, lines, screenshot_id=record.id)
            except sqlite3.Error as e:
                conn.rollback()
                logger.error("Player stats for record %s not saved: %s", record.id, e)
        return record
