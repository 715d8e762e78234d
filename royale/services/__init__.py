"""
Service layer: admission, uploads, record entry, archival, tournament management.
Persistence is delegated to repositories; external calls to storage and analysis.
"""
from .admission import check_admission
from .archival import ArchivalOrchestrator, ArchivalReport, ArchivalStep
from .records import RecordService, TeamResult
from .refresher import StandingsRefresher
from .tournaments import TeamSummary, TournamentService
from .uploads import UploadItem, UploadReport, UploadService

__all__ = [
    "check_admission",
    "ArchivalOrchestrator",
    "ArchivalReport",
    "ArchivalStep",
    "RecordService",
    "TeamResult",
    "StandingsRefresher",
    "TeamSummary",
    "TournamentService",
    "UploadItem",
    "UploadReport",
    "UploadService",
]
