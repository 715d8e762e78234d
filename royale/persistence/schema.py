"""
SQLite schema for tournament entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def tournaments_schema() -> str:
    """total_matches is the per-team cap on match records across the whole tournament."""
    return """
    CREATE TABLE IF NOT EXISTS tournaments (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        total_matches INTEGER NOT NULL DEFAULT 6,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_tournaments_created_at ON tournaments(created_at);
    """


def teams_schema() -> str:
    """logo_path is the storage key behind logo_url; both NULL when no logo was uploaded."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        tournament_id TEXT NOT NULL,
        name TEXT NOT NULL,
        logo_url TEXT,
        logo_path TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (tournament_id) REFERENCES tournaments(id)
    );
    CREATE INDEX IF NOT EXISTS ix_teams_tournament ON teams(tournament_id);
    """


def match_records_schema() -> str:
    """
    Raw results. match_number 0 = daily total. kind is automatic | manual | daily_total;
    rows imported from before the kind column are classified from screenshot_url by migration.
    """
    return """
    CREATE TABLE IF NOT EXISTS match_records (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        match_number INTEGER NOT NULL,
        day INTEGER NOT NULL,
        placement INTEGER NOT NULL DEFAULT 0,
        kills INTEGER NOT NULL DEFAULT 0,
        points INTEGER NOT NULL DEFAULT 0,
        screenshot_url TEXT NOT NULL,
        storage_path TEXT,
        kind TEXT,
        uploaded_by TEXT,
        analyzed_at TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_match_records_team ON match_records(team_id);
    CREATE INDEX IF NOT EXISTS ix_match_records_team_day ON match_records(team_id, day);
    """


def player_stats_schema() -> str:
    """team_id is denormalized from the record for tournament-wide leaderboards."""
    return """
    CREATE TABLE IF NOT EXISTS player_stats (
        id TEXT PRIMARY KEY,
        screenshot_id TEXT,
        team_id TEXT NOT NULL,
        player_name TEXT NOT NULL,
        kills INTEGER NOT NULL DEFAULT 0,
        damage INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (screenshot_id) REFERENCES match_records(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_player_stats_team ON player_stats(team_id);
    """


def access_schema() -> str:
    """Access codes and the sessions opened with them. Issued elsewhere; purged with their team."""
    return """
    CREATE TABLE IF NOT EXISTS access_codes (
        code TEXT PRIMARY KEY,
        role TEXT NOT NULL,
        team_id TEXT,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_access_codes_team ON access_codes(team_id);
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        code_used TEXT NOT NULL,
        role TEXT NOT NULL,
        team_id TEXT,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_sessions_team ON sessions(team_id);
    """


def tournament_history_schema() -> str:
    """
    Append-only archive. No foreign key: rows outlive the tournament they describe.
    top_damage_player_name / top_damage_total are added by migration.
    """
    return """
    CREATE TABLE IF NOT EXISTS tournament_history (
        id TEXT PRIMARY KEY,
        tournament_name TEXT NOT NULL,
        tournament_description TEXT,
        total_matches INTEGER NOT NULL,
        standings TEXT NOT NULL,
        mvp_player_name TEXT,
        mvp_total_kills INTEGER NOT NULL DEFAULT 0,
        mvp_matches_count INTEGER NOT NULL DEFAULT 0,
        original_tournament_id TEXT NOT NULL,
        archived_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_tournament_history_original ON tournament_history(original_tournament_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Parents before children."""
    return "\n".join([
        tournaments_schema(),
        teams_schema(),
        match_records_schema(),
        player_stats_schema(),
        access_schema(),
        tournament_history_schema(),
    ])
