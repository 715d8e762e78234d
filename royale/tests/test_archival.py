"""
Tests for tournament archival: snapshot into history, purge of live data,
advisory vs fatal step handling.
"""
from __future__ import annotations

import sqlite3

import pytest

from royale.errors import ArchivalError, NotFoundError
from royale.persistence.repositories import (
    AccessRepository,
    HistoryRepository,
    MatchRecordRepository,
    PlayerStatRepository,
    TeamRepository,
    TournamentRepository,
)
from royale.models import StandingFigure
from royale.persistence.db import init_db
from royale.services.archival import ArchivalOrchestrator, ArchivalStep
from royale.services.records import RecordService, TeamResult
from royale.services.tournaments import TournamentService
from royale.services.uploads import UploadItem, UploadService
from royale.standings import rank_standings
from royale.tests.fakes import ScriptedAnalyzer, analysis


@pytest.fixture
def played_tournament(db_conn, storage):
    """Three teams, uploads with player stats, a manual match, a daily total, a logo and access rows."""
    svc = TournamentService()
    t = svc.create_tournament(db_conn, "Spring Finals", total_matches=6, description="LAN finals")
    a = svc.add_team(db_conn, t.id, "Alpha")
    b = svc.add_team(db_conn, t.id, "Bravo")
    c = svc.add_team(db_conn, t.id, "Charlie")
    svc.set_logo(db_conn, a.id, storage, b"logo", "image/png", "alpha.png")

    analyzer = ScriptedAnalyzer([
        analysis(1, 5, [("Ace", 4, 900), ("Bolt", 1, 200)]),
        analysis(3, 2, [("Ace", 2, 300)]),
    ])
    UploadService(storage, analyzer).submit(
        db_conn, a.id, day=1, items=[
            UploadItem(data=b"1", content_type="image/png", filename="1.png"),
            UploadItem(data=b"2", content_type="image/png", filename="2.png"),
        ],
    )
    RecordService().enter_match(db_conn, t.id, 1, 3, [TeamResult(b.id, 2, 9), TeamResult(c.id, 4, 0)])
    RecordService().enter_daily_total(db_conn, t.id, c.id, day=2, kills=8, placement_points=6)

    access = AccessRepository()
    access.create_code(db_conn, "ALPHA-123", "player", team_id=a.id)
    access.create_session(db_conn, "user-1", "ALPHA-123", "player", team_id=a.id)
    return t, [a, b, c]


def test_archival_moves_standings_into_history(db_conn, storage, played_tournament):
    t, teams = played_tournament
    before = TournamentService().snapshot(db_conn, t.id)
    team_ids = [team.id for team in teams]

    report = ArchivalOrchestrator(storage).close(db_conn, t.id)

    assert report.success
    assert report.warnings == []
    assert [s.step for s in report.steps][-1] is ArchivalStep.DONE

    assert MatchRecordRepository().list_by_teams(db_conn, team_ids) == []
    assert PlayerStatRepository().list_by_teams(db_conn, team_ids) == []
    assert AccessRepository().list_codes_for_teams(db_conn, team_ids) == []
    assert AccessRepository().list_sessions_for_teams(db_conn, team_ids) == []
    assert TeamRepository().list_by_tournament(db_conn, t.id) == []
    assert TournamentRepository().get(db_conn, t.id) is None
    assert storage.objects == {}

    history = HistoryRepository().list_by_original_tournament(db_conn, t.id)
    assert len(history) == 1
    h = history[0]
    assert h.id == report.history_id
    assert h.tournament_name == "Spring Finals"
    assert h.tournament_description == "LAN finals"
    assert h.total_matches == 6
    rebuilt = rank_standings(StandingFigure.from_dict(d) for d in h.standings)
    assert rebuilt == before.standings
    assert [d["rank"] for d in h.standings] == [1, 2, 3]
    assert h.mvp_player_name == "Ace"
    assert h.mvp_total_kills == 6
    assert h.mvp_matches_count == 2
    assert h.top_damage_player_name == "Ace"
    assert h.top_damage_total == 1200


def test_missing_tournament_touches_nothing(db_conn, storage):
    with pytest.raises(NotFoundError):
        ArchivalOrchestrator(storage).close(db_conn, "nope")
    assert HistoryRepository().list_all(db_conn) == []


def test_storage_failure_is_advisory(db_conn, storage, played_tournament):
    t, teams = played_tournament
    stuck = next(iter(storage.objects))
    storage.fail_delete.add(stuck)

    report = ArchivalOrchestrator(storage).close(db_conn, t.id)

    assert report.success
    assert len(report.warnings) == 1
    assert report.warnings[0].startswith("purge_storage")
    outcome = next(s for s in report.steps if s.step is ArchivalStep.PURGE_STORAGE)
    assert not outcome.ok and outcome.advisory
    assert TournamentRepository().get(db_conn, t.id) is None


def test_history_failure_is_advisory(db_conn, storage, played_tournament, monkeypatch):
    t, _ = played_tournament

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(HistoryRepository, "create", broken)
    report = ArchivalOrchestrator(storage).close(db_conn, t.id)
    assert report.success
    assert report.history_id is None
    assert any(w.startswith("persist_history") for w in report.warnings)


def test_tournament_purge_failure_rolls_back_teams(db_conn, storage, played_tournament, monkeypatch):
    t, teams = played_tournament

    def broken(self, conn, tournament_id, commit=True):
        raise sqlite3.OperationalError("constraint failed")

    monkeypatch.setattr(TournamentRepository, "delete", broken)
    with pytest.raises(ArchivalError) as exc:
        ArchivalOrchestrator(storage).close(db_conn, t.id)

    assert exc.value.step == ArchivalStep.PURGE_TOURNAMENT.value
    report = exc.value.report
    assert not report.success
    failed = report.steps[-1]
    assert failed.step is ArchivalStep.PURGE_TOURNAMENT and not failed.ok and not failed.advisory
    # Teams are back; the pair is all-or-nothing
    assert [team.id for team in TeamRepository().list_by_tournament(db_conn, t.id)] == [team.id for team in teams]
    # Advisory steps before it already ran
    assert len(HistoryRepository().list_by_original_tournament(db_conn, t.id)) == 1
    assert MatchRecordRepository().list_by_teams(db_conn, [team.id for team in teams]) == []


def _insert_legacy_record(conn, team_id, record_id, url):
    """A row as written before storage_path and kind existed."""
    conn.execute(
        "INSERT INTO match_records (id, team_id, match_number, day, placement, kills, points, screenshot_url, created_at) "
        "VALUES (?, ?, 1, 1, 2, 3, 9, ?, '2025-01-01T00:00:00')",
        (record_id, team_id, url),
    )
    conn.commit()


def test_legacy_screenshot_is_purged_through_its_url(db_path, db_conn, storage):
    svc = TournamentService()
    t = svc.create_tournament(db_conn, "Old Cup")
    a = svc.add_team(db_conn, t.id, "Alpha")
    storage.objects["match-screenshots/u1/1_0.png"] = b"old"
    _insert_legacy_record(db_conn, a.id, "r-legacy", "https://files.test/match-screenshots/u1/1_0.png")
    init_db(db_path=db_path)

    report = ArchivalOrchestrator(storage).close(db_conn, t.id)

    assert report.success
    assert report.warnings == []
    assert storage.deleted == ["match-screenshots/u1/1_0.png"]
    assert storage.objects == {}


def test_screenshot_outside_storage_is_a_warning(db_path, db_conn, storage):
    svc = TournamentService()
    t = svc.create_tournament(db_conn, "Old Cup")
    a = svc.add_team(db_conn, t.id, "Alpha")
    _insert_legacy_record(db_conn, a.id, "r-foreign", "https://elsewhere.test/shots/1.png")
    init_db(db_path=db_path)

    report = ArchivalOrchestrator(storage).close(db_conn, t.id)

    assert report.success
    outcome = next(s for s in report.steps if s.step is ArchivalStep.PURGE_STORAGE)
    assert not outcome.ok
    assert "https://elsewhere.test/shots/1.png" in outcome.detail
    assert len(report.warnings) == 1
