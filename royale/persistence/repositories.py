"""
Repository interfaces for tournament data.
No business logic; only read/write operations.

Every write commits unless called with commit=False, which lets a service group
several writes into one transaction and commit or roll back itself.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from royale.models import (
    AccessCode,
    MatchRecord,
    PlayerStat,
    RecordKind,
    Session,
    Team,
    Tournament,
    TournamentHistory,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _placeholders(values: list[Any]) -> str:
    return ", ".join("?" for _ in values)


# ---------- TournamentRepository ----------


class TournamentRepository:
    """CRUD for tournaments. Deleted only by archival."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        total_matches: int,
        description: str | None = None,
        id: str | None = None,
    ) -> Tournament:
        tid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            "INSERT INTO tournaments (id, name, description, total_matches, created_at) VALUES (?, ?, ?, ?, ?)",
            (tid, name, description, total_matches, now.isoformat()),
        )
        conn.commit()
        return Tournament(id=tid, name=name, description=description, total_matches=total_matches, created_at=now)

    def get(self, conn: sqlite3.Connection, tournament_id: str) -> Tournament | None:
        row = conn.execute(
            "SELECT id, name, description, total_matches, created_at FROM tournaments WHERE id = ?",
            (tournament_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_tournament(row)

    def list_all(self, conn: sqlite3.Connection) -> list[Tournament]:
        """Newest first."""
        rows = conn.execute(
            "SELECT id, name, description, total_matches, created_at FROM tournaments "
            "ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_tournament(r) for r in rows]

    def delete(self, conn: sqlite3.Connection, tournament_id: str, commit: bool = True) -> int:
        cur = conn.execute("DELETE FROM tournaments WHERE id = ?", (tournament_id,))
        if commit:
            conn.commit()
        return cur.rowcount


def _row_to_tournament(r: sqlite3.Row) -> Tournament:
    return Tournament(
        id=r["id"],
        name=r["name"],
        description=r["description"],
        total_matches=r["total_matches"],
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD for teams. Listing order is insertion order; the ranker's tie order depends on it."""

    def create(self, conn: sqlite3.Connection, tournament_id: str, name: str, id: str | None = None) -> Team:
        team_id = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            "INSERT INTO teams (id, tournament_id, name, created_at) VALUES (?, ?, ?, ?)",
            (team_id, tournament_id, name, now.isoformat()),
        )
        conn.commit()
        return Team(id=team_id, tournament_id=tournament_id, name=name, created_at=now)

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(
            "SELECT id, tournament_id, name, logo_url, logo_path, created_at FROM teams WHERE id = ?",
            (team_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_team(row)

    def list_by_tournament(self, conn: sqlite3.Connection, tournament_id: str) -> list[Team]:
        rows = conn.execute(
            "SELECT id, tournament_id, name, logo_url, logo_path, created_at FROM teams "
            "WHERE tournament_id = ? ORDER BY rowid",
            (tournament_id,),
        ).fetchall()
        return [_row_to_team(r) for r in rows]

    def update_logo(
        self, conn: sqlite3.Connection, team_id: str, logo_url: str | None, logo_path: str | None
    ) -> None:
        conn.execute(
            "UPDATE teams SET logo_url = ?, logo_path = ? WHERE id = ?",
            (logo_url, logo_path, team_id),
        )
        conn.commit()

    def delete(self, conn: sqlite3.Connection, team_id: str, commit: bool = True) -> int:
        cur = conn.execute("DELETE FROM teams WHERE id = ?", (team_id,))
        if commit:
            conn.commit()
        return cur.rowcount

    def delete_for_tournament(self, conn: sqlite3.Connection, tournament_id: str, commit: bool = True) -> int:
        cur = conn.execute("DELETE FROM teams WHERE tournament_id = ?", (tournament_id,))
        if commit:
            conn.commit()
        return cur.rowcount


def _row_to_team(r: sqlite3.Row) -> Team:
    return Team(
        id=r["id"],
        tournament_id=r["tournament_id"],
        name=r["name"],
        logo_url=r["logo_url"],
        logo_path=r["logo_path"],
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- MatchRecordRepository ----------

_RECORD_COLS = (
    "id, team_id, match_number, day, placement, kills, points, screenshot_url, "
    "storage_path, kind, uploaded_by, analyzed_at, created_at"
)


class MatchRecordRepository:
    """CRUD for match records. points is stored as given; callers compute it."""

    def create(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        match_number: int,
        day: int,
        placement: int,
        kills: int,
        points: int,
        kind: RecordKind,
        screenshot_url: str,
        storage_path: str | None = None,
        uploaded_by: str | None = None,
        analyzed_at: datetime | None = None,
        id: str | None = None,
        commit: bool = True,
    ) -> MatchRecord:
        rid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            f"INSERT INTO match_records ({_RECORD_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                rid, team_id, match_number, day, placement, kills, points, screenshot_url,
                storage_path, kind.value, uploaded_by,
                analyzed_at.isoformat() if analyzed_at else None,
                now.isoformat(),
            ),
        )
        if commit:
            conn.commit()
        return MatchRecord(
            id=rid,
            team_id=team_id,
            match_number=match_number,
            day=day,
            placement=placement,
            kills=kills,
            points=points,
            kind=kind,
            screenshot_url=screenshot_url,
            storage_path=storage_path,
            uploaded_by=uploaded_by,
            analyzed_at=analyzed_at,
            created_at=now,
        )

    def get(self, conn: sqlite3.Connection, record_id: str) -> MatchRecord | None:
        row = conn.execute(f"SELECT {_RECORD_COLS} FROM match_records WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def list_by_teams(
        self, conn: sqlite3.Connection, team_ids: list[str], newest_first: bool = False
    ) -> list[MatchRecord]:
        if not team_ids:
            return []
        order = "DESC" if newest_first else "ASC"
        rows = conn.execute(
            f"SELECT {_RECORD_COLS} FROM match_records WHERE team_id IN ({_placeholders(team_ids)}) "
            f"ORDER BY created_at {order}, rowid {order}",
            tuple(team_ids),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def list_by_team(self, conn: sqlite3.Connection, team_id: str, day: int | None = None) -> list[MatchRecord]:
        if day is None:
            rows = conn.execute(
                f"SELECT {_RECORD_COLS} FROM match_records WHERE team_id = ? ORDER BY rowid",
                (team_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                f"SELECT {_RECORD_COLS} FROM match_records WHERE team_id = ? AND day = ? ORDER BY rowid",
                (team_id, day),
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def count_for_team(self, conn: sqlite3.Connection, team_id: str) -> int:
        """Per-match records across the whole tournament. Daily totals are not matches."""
        row = conn.execute(
            "SELECT COUNT(*) FROM match_records WHERE team_id = ? AND kind != ?",
            (team_id, RecordKind.DAILY_TOTAL.value),
        ).fetchone()
        return int(row[0])

    def update_result(
        self, conn: sqlite3.Connection, record_id: str, placement: int, kills: int, points: int
    ) -> None:
        conn.execute(
            "UPDATE match_records SET placement = ?, kills = ?, points = ? WHERE id = ?",
            (placement, kills, points, record_id),
        )
        conn.commit()

    def delete(self, conn: sqlite3.Connection, record_id: str) -> None:
        conn.execute("DELETE FROM match_records WHERE id = ?", (record_id,))
        conn.commit()

    def delete_for_teams(self, conn: sqlite3.Connection, team_ids: list[str], commit: bool = True) -> int:
        if not team_ids:
            return 0
        cur = conn.execute(
            f"DELETE FROM match_records WHERE team_id IN ({_placeholders(team_ids)})",
            tuple(team_ids),
        )
        if commit:
            conn.commit()
        return cur.rowcount


def _row_to_record(r: sqlite3.Row) -> MatchRecord:
    kind = RecordKind(r["kind"]) if r["kind"] else RecordKind.from_legacy(r["screenshot_url"], r["match_number"])
    return MatchRecord(
        id=r["id"],
        team_id=r["team_id"],
        match_number=r["match_number"],
        day=r["day"],
        placement=r["placement"],
        kills=r["kills"],
        points=r["points"],
        kind=kind,
        screenshot_url=r["screenshot_url"],
        storage_path=r["storage_path"],
        uploaded_by=r["uploaded_by"],
        analyzed_at=_parse_datetime(r["analyzed_at"]) if r["analyzed_at"] else None,
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- PlayerStatRepository ----------


class PlayerStatRepository:
    """Per-player lines extracted from screenshots."""

    def create_many(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        lines: Iterable[tuple[str, int, int]],
        screenshot_id: str | None = None,
    ) -> list[PlayerStat]:
        """lines: (player_name, kills, damage). All rows in one commit."""
        now = _now().isoformat()
        created: list[PlayerStat] = []
        for player_name, kills, damage in lines:
            sid = str(uuid.uuid4())
            conn.execute(
                "INSERT INTO player_stats (id, screenshot_id, team_id, player_name, kills, damage, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (sid, screenshot_id, team_id, player_name, kills, damage, now),
            )
            created.append(PlayerStat(
                id=sid, screenshot_id=screenshot_id, team_id=team_id,
                player_name=player_name, kills=kills, damage=damage,
            ))
        conn.commit()
        return created

    def list_by_teams(self, conn: sqlite3.Connection, team_ids: list[str]) -> list[PlayerStat]:
        if not team_ids:
            return []
        rows = conn.execute(
            "SELECT id, screenshot_id, team_id, player_name, kills, damage FROM player_stats "
            f"WHERE team_id IN ({_placeholders(team_ids)}) ORDER BY rowid",
            tuple(team_ids),
        ).fetchall()
        return [_row_to_stat(r) for r in rows]

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[PlayerStat]:
        return self.list_by_teams(conn, [team_id])

    def delete_for_teams(self, conn: sqlite3.Connection, team_ids: list[str], commit: bool = True) -> int:
        if not team_ids:
            return 0
        cur = conn.execute(
            f"DELETE FROM player_stats WHERE team_id IN ({_placeholders(team_ids)})",
            tuple(team_ids),
        )
        if commit:
            conn.commit()
        return cur.rowcount


def _row_to_stat(r: sqlite3.Row) -> PlayerStat:
    return PlayerStat(
        id=r["id"],
        screenshot_id=r["screenshot_id"],
        team_id=r["team_id"],
        player_name=r["player_name"],
        kills=r["kills"],
        damage=r["damage"],
    )


# ---------- AccessRepository ----------


class AccessRepository:
    """Access codes and sessions. Only creation (for seeding) and team-scoped purge live here."""

    def create_code(
        self, conn: sqlite3.Connection, code: str, role: str, team_id: str | None = None
    ) -> AccessCode:
        now = _now()
        conn.execute(
            "INSERT INTO access_codes (code, role, team_id, created_at) VALUES (?, ?, ?, ?)",
            (code, role, team_id, now.isoformat()),
        )
        conn.commit()
        return AccessCode(code=code, role=role, team_id=team_id, created_at=now)

    def create_session(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        code_used: str,
        role: str,
        team_id: str | None = None,
    ) -> Session:
        sid = str(uuid.uuid4())
        now = _now()
        conn.execute(
            "INSERT INTO sessions (id, user_id, code_used, role, team_id, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (sid, user_id, code_used, role, team_id, now.isoformat()),
        )
        conn.commit()
        return Session(id=sid, user_id=user_id, code_used=code_used, role=role, team_id=team_id, created_at=now)

    def list_codes_for_teams(self, conn: sqlite3.Connection, team_ids: list[str]) -> list[AccessCode]:
        if not team_ids:
            return []
        rows = conn.execute(
            f"SELECT code, role, team_id, created_at FROM access_codes WHERE team_id IN ({_placeholders(team_ids)})",
            tuple(team_ids),
        ).fetchall()
        return [
            AccessCode(code=r["code"], role=r["role"], team_id=r["team_id"], created_at=_parse_datetime(r["created_at"]))
            for r in rows
        ]

    def list_sessions_for_teams(self, conn: sqlite3.Connection, team_ids: list[str]) -> list[Session]:
        if not team_ids:
            return []
        rows = conn.execute(
            "SELECT id, user_id, code_used, role, team_id, created_at FROM sessions "
            f"WHERE team_id IN ({_placeholders(team_ids)})",
            tuple(team_ids),
        ).fetchall()
        return [
            Session(
                id=r["id"], user_id=r["user_id"], code_used=r["code_used"], role=r["role"],
                team_id=r["team_id"], created_at=_parse_datetime(r["created_at"]),
            )
            for r in rows
        ]

    def delete_for_teams(self, conn: sqlite3.Connection, team_ids: list[str], commit: bool = True) -> tuple[int, int]:
        """Returns (sessions deleted, codes deleted)."""
        if not team_ids:
            return 0, 0
        marks = _placeholders(team_ids)
        sessions = conn.execute(f"DELETE FROM sessions WHERE team_id IN ({marks})", tuple(team_ids)).rowcount
        codes = conn.execute(f"DELETE FROM access_codes WHERE team_id IN ({marks})", tuple(team_ids)).rowcount
        if commit:
            conn.commit()
        return sessions, codes


# ---------- HistoryRepository ----------

_HISTORY_COLS = (
    "id, tournament_name, tournament_description, total_matches, standings, "
    "mvp_player_name, mvp_total_kills, mvp_matches_count, "
    "top_damage_player_name, top_damage_total, original_tournament_id, archived_at"
)


class HistoryRepository:
    """Append-only. No update or delete."""

    def create(
        self,
        conn: sqlite3.Connection,
        tournament_name: str,
        total_matches: int,
        original_tournament_id: str,
        standings: list[dict[str, Any]],
        tournament_description: str | None = None,
        mvp_player_name: str | None = None,
        mvp_total_kills: int = 0,
        mvp_matches_count: int = 0,
        top_damage_player_name: str | None = None,
        top_damage_total: int = 0,
        id: str | None = None,
    ) -> TournamentHistory:
        hid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            f"INSERT INTO tournament_history ({_HISTORY_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                hid, tournament_name, tournament_description, total_matches, json.dumps(standings),
                mvp_player_name, mvp_total_kills, mvp_matches_count,
                top_damage_player_name, top_damage_total, original_tournament_id, now.isoformat(),
            ),
        )
        conn.commit()
        return TournamentHistory(
            id=hid,
            tournament_name=tournament_name,
            tournament_description=tournament_description,
            total_matches=total_matches,
            standings=standings,
            mvp_player_name=mvp_player_name,
            mvp_total_kills=mvp_total_kills,
            mvp_matches_count=mvp_matches_count,
            top_damage_player_name=top_damage_player_name,
            top_damage_total=top_damage_total,
            original_tournament_id=original_tournament_id,
            archived_at=now,
        )

    def get(self, conn: sqlite3.Connection, history_id: str) -> TournamentHistory | None:
        row = conn.execute(f"SELECT {_HISTORY_COLS} FROM tournament_history WHERE id = ?", (history_id,)).fetchone()
        if row is None:
            return None
        return _row_to_history(row)

    def list_all(self, conn: sqlite3.Connection) -> list[TournamentHistory]:
        """Most recently archived first."""
        rows = conn.execute(
            f"SELECT {_HISTORY_COLS} FROM tournament_history ORDER BY archived_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_history(r) for r in rows]

    def list_by_original_tournament(self, conn: sqlite3.Connection, tournament_id: str) -> list[TournamentHistory]:
        rows = conn.execute(
            f"SELECT {_HISTORY_COLS} FROM tournament_history WHERE original_tournament_id = ? ORDER BY rowid",
            (tournament_id,),
        ).fetchall()
        return [_row_to_history(r) for r in rows]


def _row_to_history(r: sqlite3.Row) -> TournamentHistory:
    return TournamentHistory(
        id=r["id"],
        tournament_name=r["tournament_name"],
        tournament_description=r["tournament_description"],
        total_matches=r["total_matches"],
        standings=json.loads(r["standings"]) if r["standings"] else [],
        mvp_player_name=r["mvp_player_name"],
        mvp_total_kills=r["mvp_total_kills"] or 0,
        mvp_matches_count=r["mvp_matches_count"] or 0,
        top_damage_player_name=r["top_damage_player_name"],
        top_damage_total=r["top_damage_total"] or 0,
        original_tournament_id=r["original_tournament_id"],
        archived_at=_parse_datetime(r["archived_at"]),
    )
