"""
Persistence layer for tournament data.
No business logic; only read/write interfaces.
"""
from .db import get_connection, get_db_path, init_db, set_db_path
from .repositories import (
    AccessRepository,
    HistoryRepository,
    MatchRecordRepository,
    PlayerStatRepository,
    TeamRepository,
    TournamentRepository,
)

__all__ = [
    "get_connection",
    "get_db_path",
    "init_db",
    "set_db_path",
    "AccessRepository",
    "HistoryRepository",
    "MatchRecordRepository",
    "PlayerStatRepository",
    "TeamRepository",
    "TournamentRepository",
]
