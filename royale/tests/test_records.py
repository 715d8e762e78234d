"""
Tests for admin record entry, record edits, and the record-kind migration.
"""
from __future__ import annotations

import sqlite3

import pytest

from royale.errors import NotFoundError, ValidationError
from royale.models import DAILY_TOTAL_SENTINEL, MANUAL_ENTRY_SENTINEL, RecordKind
from royale.persistence.db import get_connection, init_db
from royale.persistence.repositories import MatchRecordRepository
from royale.services.records import RecordService, TeamResult
from royale.services.tournaments import TournamentService


@pytest.fixture
def tournament_with_teams(db_conn):
    svc = TournamentService()
    t = svc.create_tournament(db_conn, "Weekend Cup", total_matches=6)
    a = svc.add_team(db_conn, t.id, "Alpha")
    b = svc.add_team(db_conn, t.id, "Bravo")
    return t, a, b


class TestManualEntry:
    def test_writes_manual_records_with_table_points(self, db_conn, tournament_with_teams):
        t, a, b = tournament_with_teams
        created = RecordService().enter_match(
            db_conn, t.id, day=1, match_number=2,
            results=[TeamResult(a.id, 1, 5), TeamResult(b.id, 9, 4)],
        )
        assert [r.points for r in created] == [15, 4]
        assert all(r.kind is RecordKind.MANUAL for r in created)
        assert all(r.screenshot_url == MANUAL_ENTRY_SENTINEL for r in created)
        assert MatchRecordRepository().count_for_team(db_conn, a.id) == 1

    @pytest.mark.parametrize("placement", [0, 33, -1])
    def test_placement_out_of_range(self, db_conn, tournament_with_teams, placement):
        t, a, _ = tournament_with_teams
        with pytest.raises(ValidationError, match="between 1 and 32"):
            RecordService().enter_match(db_conn, t.id, 1, 1, [TeamResult(a.id, placement, 2)])

    def test_negative_kills(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        with pytest.raises(ValidationError):
            RecordService().enter_match(db_conn, t.id, 1, 1, [TeamResult(a.id, 3, -1)])

    def test_team_twice_rejects_whole_batch(self, db_conn, tournament_with_teams):
        t, a, b = tournament_with_teams
        with pytest.raises(ValidationError, match="already added"):
            RecordService().enter_match(
                db_conn, t.id, 1, 1,
                [TeamResult(a.id, 1, 2), TeamResult(b.id, 2, 2), TeamResult(a.id, 3, 0)],
            )
        assert MatchRecordRepository().list_by_teams(db_conn, [a.id, b.id]) == []

    def test_team_from_other_tournament(self, db_conn, tournament_with_teams):
        t, _, _ = tournament_with_teams
        svc = TournamentService()
        other = svc.create_tournament(db_conn, "Other")
        stranger = svc.add_team(db_conn, other.id, "Stranger")
        with pytest.raises(NotFoundError):
            RecordService().enter_match(db_conn, t.id, 1, 1, [TeamResult(stranger.id, 1, 1)])

    def test_match_number_zero_is_reserved(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        with pytest.raises(ValidationError):
            RecordService().enter_match(db_conn, t.id, 1, 0, [TeamResult(a.id, 1, 1)])


class TestDailyTotal:
    def test_flattened_points(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        record = RecordService().enter_daily_total(db_conn, t.id, a.id, day=2, kills=8, placement_points=6)
        assert record.points == 14
        assert record.placement == 0
        assert record.match_number == 0
        assert record.kind is RecordKind.DAILY_TOTAL
        assert record.screenshot_url == DAILY_TOTAL_SENTINEL

    def test_daily_total_not_counted_against_cap(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        RecordService().enter_daily_total(db_conn, t.id, a.id, day=1, kills=3, placement_points=0)
        assert MatchRecordRepository().count_for_team(db_conn, a.id) == 0

    def test_negative_placement_points(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        with pytest.raises(ValidationError):
            RecordService().enter_daily_total(db_conn, t.id, a.id, day=1, kills=3, placement_points=-2)

    def test_standings_add_daily_total(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        RecordService().enter_daily_total(db_conn, t.id, a.id, day=1, kills=8, placement_points=6)
        top = TournamentService().snapshot(db_conn, t.id).standings[0]
        assert top.team_id == a.id
        assert top.total_points == 14
        assert top.placement_points == 0


class TestEditRecord:
    def test_edit_recomputes_points(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        svc = RecordService()
        (record,) = svc.enter_match(db_conn, t.id, 1, 1, [TeamResult(a.id, 5, 1)])
        edited = svc.edit_record(db_conn, record.id, placement=1)
        assert edited.points == 11
        stored = MatchRecordRepository().get(db_conn, record.id)
        assert (stored.placement, stored.kills, stored.points) == (1, 1, 11)

    def test_edit_daily_total_keeps_placement_points(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        svc = RecordService()
        daily = svc.enter_daily_total(db_conn, t.id, a.id, day=1, kills=8, placement_points=6)
        edited = svc.edit_record(db_conn, daily.id, kills=10)
        assert edited.points == 16
        assert edited.placement == 0

    def test_daily_total_has_no_placement(self, db_conn, tournament_with_teams):
        t, a, _ = tournament_with_teams
        svc = RecordService()
        daily = svc.enter_daily_total(db_conn, t.id, a.id, day=1, kills=1, placement_points=1)
        with pytest.raises(ValidationError):
            svc.edit_record(db_conn, daily.id, placement=3)

    def test_missing_record(self, db_conn):
        with pytest.raises(NotFoundError):
            RecordService().edit_record(db_conn, "nope", kills=1)


def test_list_records_newest_first_with_team(db_conn, tournament_with_teams):
    t, a, b = tournament_with_teams
    svc = RecordService()
    svc.enter_match(db_conn, t.id, 1, 1, [TeamResult(a.id, 2, 2)])
    svc.enter_daily_total(db_conn, t.id, b.id, day=1, kills=1, placement_points=0)
    rows = svc.list_records(db_conn, t.id)
    assert [team.name for _, team in rows] == ["Bravo", "Alpha"]


def test_legacy_rows_get_kind_from_sentinel(db_path):
    """Rows written without a kind are classified on the next init."""
    conn = sqlite3.connect(str(db_path))
    rows = [
        ("r-auto", 3, "https://files.test/a.png"),
        ("r-manual", 2, MANUAL_ENTRY_SENTINEL),
        ("r-daily", 0, DAILY_TOTAL_SENTINEL),
        ("r-zero", 0, "https://files.test/odd.png"),
    ]
    for rid, match_number, url in rows:
        conn.execute(
            "INSERT INTO match_records (id, team_id, match_number, day, placement, kills, points, screenshot_url, created_at) "
            "VALUES (?, 'team-x', ?, 1, 0, 0, 0, ?, '2025-01-01T00:00:00')",
            (rid, match_number, url),
        )
    conn.commit()
    conn.close()

    init_db(db_path=db_path)
    conn = get_connection()
    try:
        kinds = {r["id"]: r["kind"] for r in conn.execute("SELECT id, kind FROM match_records").fetchall()}
    finally:
        conn.close()
    assert kinds == {
        "r-auto": "automatic",
        "r-manual": "manual",
        "r-daily": "daily_total",
        "r-zero": "daily_total",
    }
