"""
Periodic standings refresh.

Recomputes a tournament's snapshot every `interval` seconds and hands it to a
subscriber. Holds nothing between runs except the last delivered snapshot.
Staleness is bounded by the interval.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import sqlite3
from typing import Any, Awaitable, Callable

from royale.config import REFRESH_INTERVAL_SECONDS
from royale.errors import RoyaleError
from royale.persistence.db import get_connection
from royale.services.tournaments import TournamentService
from royale.standings import TournamentSnapshot

logger = logging.getLogger(__name__)

Subscriber = Callable[[TournamentSnapshot], "Awaitable[Any] | Any"]
Loader = Callable[[str], TournamentSnapshot]


def load_snapshot(tournament_id: str) -> TournamentSnapshot:
    """Open a connection, compute the snapshot, close."""
    conn = get_connection()
    try:
        return TournamentService().snapshot(conn, tournament_id)
    finally:
        conn.close()


class StandingsRefresher:
    def __init__(
        self,
        tournament_id: str,
        on_update: Subscriber,
        interval: float = REFRESH_INTERVAL_SECONDS,
        loader: Loader = load_snapshot,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.tournament_id = tournament_id
        self.interval = interval
        self.last: TournamentSnapshot | None = None
        self._on_update = on_update
        self._loader = loader
        self._task: asyncio.Task | None = None

    async def refresh_once(self) -> TournamentSnapshot:
        """Recompute now and deliver. Errors propagate to the caller."""
        snapshot = await asyncio.to_thread(self._loader, self.tournament_id)
        self.last = snapshot
        result = self._on_update(snapshot)
        if inspect.isawaitable(result):
            await result
        return snapshot

    async def run(self, iterations: int | None = None) -> None:
        """Refresh until cancelled (or for `iterations` rounds). A failed round is logged and skipped."""
        done = 0
        while iterations is None or done < iterations:
            try:
                await self.refresh_once()
            except (RoyaleError, sqlite3.Error) as e:
                logger.warning("Standings refresh for %s failed: %s", self.tournament_id, e)
            done += 1
            if iterations is not None and done >= iterations:
                break
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
