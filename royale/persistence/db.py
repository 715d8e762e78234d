"""
Database connection and initialization.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from royale.config import DB_PATH
from royale.models import RecordKind

from .schema import all_schema_sql

logger = logging.getLogger(__name__)


def _columns(conn: sqlite3.Connection, table: str) -> list[str]:
    cur = conn.execute(f"PRAGMA table_info({table})")
    return [row[1] for row in cur.fetchall()]


def _run_phase_record_columns(conn: sqlite3.Connection) -> None:
    """Add storage_path / kind / uploaded_by / analyzed_at to match_records on databases that predate them."""
    cols = _columns(conn, "match_records")
    for col in ("storage_path", "kind", "uploaded_by", "analyzed_at"):
        if col not in cols:
            conn.execute(f"ALTER TABLE match_records ADD COLUMN {col} TEXT")


def _run_phase_record_kind_backfill(conn: sqlite3.Connection) -> int:
    """
    Classify rows without a kind from their screenshot_url sentinel.
    Returns the number of rows updated. Imported rows land here too, so this runs on every init.
    """
    rows = conn.execute(
        "SELECT id, screenshot_url, match_number FROM match_records WHERE kind IS NULL"
    ).fetchall()
    for row in rows:
        kind = RecordKind.from_legacy(row[1], row[2])
        conn.execute("UPDATE match_records SET kind = ? WHERE id = ?", (kind.value, row[0]))
    if rows:
        logger.info("Backfilled kind on %d match record(s)", len(rows))
    return len(rows)


def _run_phase_history_top_damage(conn: sqlite3.Connection) -> None:
    """Add the top damage spotlight to tournament_history."""
    cols = _columns(conn, "tournament_history")
    if "top_damage_player_name" not in cols:
        conn.execute("ALTER TABLE tournament_history ADD COLUMN top_damage_player_name TEXT")
    if "top_damage_total" not in cols:
        conn.execute("ALTER TABLE tournament_history ADD COLUMN top_damage_total INTEGER NOT NULL DEFAULT 0")


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path (ROYALE_DB_PATH unless overridden)."""
    if _db_path is not None:
        return _db_path
    return Path(DB_PATH)


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist, then run additive migrations."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(all_schema_sql())
        _run_phase_record_columns(conn)
        _run_phase_record_kind_backfill(conn)
        _run_phase_history_top_damage(conn)
        conn.commit()
    finally:
        conn.close()
