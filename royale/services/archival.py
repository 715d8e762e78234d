"""
Tournament closure: snapshot standings into history, then purge everything live.

Steps run once, in order, with no retries:

  LOAD -> SNAPSHOT -> PERSIST_HISTORY -> PURGE_STORAGE -> PURGE_PLAYER_STATS
  -> PURGE_MATCH_RECORDS -> PURGE_AUX -> PURGE_TEAMS -> PURGE_TOURNAMENT -> DONE

LOAD and SNAPSHOT failures abort before anything is written or deleted.
History, storage, player-stat, record and access purges are advisory: a failure
is logged, noted in the report, and the run continues. The team and tournament
purges are fatal and run in one transaction; if either fails both roll back and
the run ends with ArchivalError carrying the report.

Not re-entrant. Callers serialize closure per tournament.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from royale.errors import ArchivalError, NotFoundError, RoyaleError
from royale.models import MatchRecord, PlayerStat, RecordKind, Team, Tournament
from royale.persistence.repositories import (
    AccessRepository,
    HistoryRepository,
    MatchRecordRepository,
    PlayerStatRepository,
    TeamRepository,
    TournamentRepository,
)
from royale.standings import TournamentSnapshot, build_snapshot, ranked_dicts
from royale.storage import ObjectStorage

logger = logging.getLogger(__name__)


class ArchivalStep(str, Enum):
    LOAD = "load"
    SNAPSHOT = "snapshot"
    PERSIST_HISTORY = "persist_history"
    PURGE_STORAGE = "purge_storage"
    PURGE_PLAYER_STATS = "purge_player_stats"
    PURGE_MATCH_RECORDS = "purge_match_records"
    PURGE_AUX = "purge_aux"
    PURGE_TEAMS = "purge_teams"
    PURGE_TOURNAMENT = "purge_tournament"
    DONE = "done"


ADVISORY_STEPS = frozenset({
    ArchivalStep.PERSIST_HISTORY,
    ArchivalStep.PURGE_STORAGE,
    ArchivalStep.PURGE_PLAYER_STATS,
    ArchivalStep.PURGE_MATCH_RECORDS,
    ArchivalStep.PURGE_AUX,
})

# Failures an advisory step absorbs
_ADVISORY_ERRORS = (sqlite3.Error, RoyaleError, OSError)


@dataclass
class StepOutcome:
    step: ArchivalStep
    ok: bool
    detail: str = ""

    @property
    def advisory(self) -> bool:
        return self.step in ADVISORY_STEPS

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "ok": self.ok,
            "advisory": self.advisory,
            "detail": self.detail,
        }


@dataclass
class ArchivalReport:
    tournament_id: str
    steps: list[StepOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    history_id: str | None = None
    snapshot: TournamentSnapshot | None = None
    success: bool = False

    def record(self, step: ArchivalStep, ok: bool, detail: str = "") -> None:
        self.steps.append(StepOutcome(step=step, ok=ok, detail=detail))
        if not ok and step in ADVISORY_STEPS:
            self.warnings.append(f"{step.value}: {detail}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "success": self.success,
            "history_id": self.history_id,
            "steps": [s.to_dict() for s in self.steps],
            "warnings": self.warnings,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
        }


@dataclass
class _Loaded:
    tournament: Tournament
    teams: list[Team]
    records: list[MatchRecord]
    player_stats: list[PlayerStat]

    @property
    def team_ids(self) -> list[str]:
        return [t.id for t in self.teams]


def storage_paths(
    teams: list[Team],
    records: list[MatchRecord],
    storage: ObjectStorage,
) -> tuple[list[str], list[str]]:
    """
    Every stored object a tournament owns: automatic-record screenshots and team logos.
    Rows without a stored path (written before paths were kept) are resolved from their URL.
    Returns (paths, urls that resolve to no path of this storage).
    """
    refs = [(r.storage_path, r.screenshot_url) for r in records if r.kind is RecordKind.AUTOMATIC]
    refs.extend((t.logo_path, t.logo_url) for t in teams)
    paths: list[str] = []
    unresolved: list[str] = []
    for path, url in refs:
        if not path and url:
            path = storage.path_for_url(url)
            if path is None:
                unresolved.append(url)
                continue
        if path:
            paths.append(path)
    return paths, unresolved


class ArchivalOrchestrator:
    """Runs the closure workflow for one tournament against one connection."""

    def __init__(self, storage: ObjectStorage) -> None:
        self._storage = storage
        self._tournament_repo = TournamentRepository()
        self._team_repo = TeamRepository()
        self._record_repo = MatchRecordRepository()
        self._stat_repo = PlayerStatRepository()
        self._access_repo = AccessRepository()
        self._history_repo = HistoryRepository()

    def close(self, conn: sqlite3.Connection, tournament_id: str) -> ArchivalReport:
        report = ArchivalReport(tournament_id=tournament_id)
        logger.info("Archiving tournament %s", tournament_id)

        loaded = self._load(conn, tournament_id, report)
        snapshot = build_snapshot(loaded.teams, loaded.records, loaded.player_stats)
        report.snapshot = snapshot
        report.record(ArchivalStep.SNAPSHOT, True, f"{len(snapshot.standings)} team(s) ranked")

        self._advisory(conn, report, ArchivalStep.PERSIST_HISTORY,
                       lambda: self._persist_history(conn, loaded, snapshot, report))
        self._advisory(conn, report, ArchivalStep.PURGE_STORAGE, lambda: self._purge_storage(loaded))
        self._advisory(conn, report, ArchivalStep.PURGE_PLAYER_STATS, lambda: (
            True, f"{self._stat_repo.delete_for_teams(conn, loaded.team_ids)} player stat(s) deleted"))
        self._advisory(conn, report, ArchivalStep.PURGE_MATCH_RECORDS, lambda: (
            True, f"{self._record_repo.delete_for_teams(conn, loaded.team_ids)} match record(s) deleted"))
        self._advisory(conn, report, ArchivalStep.PURGE_AUX, lambda: self._purge_aux(conn, loaded))

        self._purge_teams_and_tournament(conn, loaded, report)

        report.success = True
        report.record(ArchivalStep.DONE, True)
        logger.info(
            "Tournament %s archived as history %s with %d warning(s)",
            tournament_id, report.history_id, len(report.warnings),
        )
        return report

    # ---------- steps ----------

    def _load(self, conn: sqlite3.Connection, tournament_id: str, report: ArchivalReport) -> _Loaded:
        try:
            tournament = self._tournament_repo.get(conn, tournament_id)
            if tournament is None:
                raise NotFoundError("Tournament", tournament_id)
            teams = self._team_repo.list_by_tournament(conn, tournament_id)
            team_ids = [t.id for t in teams]
            records = self._record_repo.list_by_teams(conn, team_ids)
            stats = self._stat_repo.list_by_teams(conn, team_ids)
        except sqlite3.Error as e:
            report.record(ArchivalStep.LOAD, False, str(e))
            logger.error("Archival of %s aborted at load: %s", tournament_id, e)
            raise ArchivalError(ArchivalStep.LOAD.value, str(e), report) from e
        report.record(
            ArchivalStep.LOAD, True,
            f"{len(teams)} team(s), {len(records)} record(s), {len(stats)} player stat(s)",
        )
        return _Loaded(tournament=tournament, teams=teams, records=records, player_stats=stats)

    def _advisory(
        self,
        conn: sqlite3.Connection,
        report: ArchivalReport,
        step: ArchivalStep,
        action: Callable[[], tuple[bool, str]],
    ) -> None:
        try:
            ok, detail = action()
        except _ADVISORY_ERRORS as e:
            if isinstance(e, sqlite3.Error):
                conn.rollback()
            logger.warning("Archival of %s: %s failed, continuing: %s", report.tournament_id, step.value, e)
            report.record(step, False, str(e))
            return
        if not ok:
            logger.warning("Archival of %s: %s incomplete: %s", report.tournament_id, step.value, detail)
        report.record(step, ok, detail)

    def _persist_history(
        self,
        conn: sqlite3.Connection,
        loaded: _Loaded,
        snapshot: TournamentSnapshot,
        report: ArchivalReport,
    ) -> tuple[bool, str]:
        mvp = snapshot.mvp
        top = snapshot.top_damage
        history = self._history_repo.create(
            conn,
            tournament_name=loaded.tournament.name,
            tournament_description=loaded.tournament.description,
            total_matches=loaded.tournament.total_matches,
            original_tournament_id=loaded.tournament.id,
            standings=ranked_dicts(snapshot.standings),
            mvp_player_name=mvp.player_name if mvp else None,
            mvp_total_kills=mvp.total_kills if mvp else 0,
            mvp_matches_count=mvp.matches_count if mvp else 0,
            top_damage_player_name=top.player_name if top else None,
            top_damage_total=top.total_damage if top else 0,
        )
        report.history_id = history.id
        return True, f"history {history.id}"

    def _purge_storage(self, loaded: _Loaded) -> tuple[bool, str]:
        paths, unresolved = storage_paths(loaded.teams, loaded.records, self._storage)
        failed = self._storage.delete(paths)
        problems = []
        if failed:
            problems.append(f"{len(failed)} of {len(paths)} object(s) not deleted: {', '.join(failed)}")
        if unresolved:
            problems.append(f"{len(unresolved)} URL(s) not in this storage: {', '.join(unresolved)}")
        if problems:
            return False, "; ".join(problems)
        return True, f"{len(paths)} object(s) deleted"

    def _purge_aux(self, conn: sqlite3.Connection, loaded: _Loaded) -> tuple[bool, str]:
        sessions, codes = self._access_repo.delete_for_teams(conn, loaded.team_ids)
        return True, f"{sessions} session(s), {codes} access code(s) deleted"

    def _purge_teams_and_tournament(self, conn: sqlite3.Connection, loaded: _Loaded, report: ArchivalReport) -> None:
        step = ArchivalStep.PURGE_TEAMS
        try:
            teams_deleted = self._team_repo.delete_for_tournament(conn, loaded.tournament.id, commit=False)
            step = ArchivalStep.PURGE_TOURNAMENT
            self._tournament_repo.delete(conn, loaded.tournament.id, commit=False)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            report.record(step, False, str(e))
            logger.error(
                "Archival of %s failed at %s; teams and tournament rolled back, manual follow-up required: %s",
                loaded.tournament.id, step.value, e,
            )
            raise ArchivalError(step.value, str(e), report) from e
        report.record(ArchivalStep.PURGE_TEAMS, True, f"{teams_deleted} team(s) deleted")
        report.record(ArchivalStep.PURGE_TOURNAMENT, True, "tournament deleted")
