"""
Exception hierarchy for the scoring and archival engine.
Every error carries a user-facing message; services raise, the API maps to HTTP.
"""
from __future__ import annotations


class RoyaleError(Exception):
    """Base exception. user_message is safe to show to the caller."""

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(RoyaleError):
    """Malformed input (out-of-range placement, negative kills, missing field). Raised before any write."""


class QuotaExceededError(RoyaleError):
    """Upload cap reached for a team. Raised before any write."""

    def __init__(self, message: str, remaining: int) -> None:
        super().__init__(message)
        self.remaining = remaining


class NotFoundError(RoyaleError):
    """A tournament, team, record or history row does not exist."""

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} not found: {ident}", user_message=f"{kind} not found")
        self.kind = kind
        self.ident = ident


class ExternalServiceError(RoyaleError):
    """Image analysis call failed, timed out or returned an unusable result."""


class StorageError(RoyaleError):
    """Object storage put/delete failed."""


class PersistenceError(RoyaleError):
    """A store write failed."""

    def __init__(self, operation: str, details: str | None = None) -> None:
        super().__init__(
            f"Database error during {operation}: {details}",
            user_message=f"Failed to save ({operation})",
        )
        self.operation = operation


class ArchivalError(RoyaleError):
    """A fatal archival step failed; the tournament is partially archived and needs manual follow-up."""

    def __init__(self, step: str, details: str, report: object | None = None) -> None:
        super().__init__(
            f"Archival aborted at {step}: {details}",
            user_message="Tournament archival failed; manual follow-up required",
        )
        self.step = step
        self.report = report
