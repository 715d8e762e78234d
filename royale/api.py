"""
REST API for the battle-royale tournament backend.
Thin wrappers around the services; every request opens and closes its own connection.
"""
from __future__ import annotations

import logging
import threading
import weakref
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from royale import config
from royale.analysis import analyze_screenshot
from royale.auth import Caller, decode_caller
from royale.errors import (
    ArchivalError,
    ExternalServiceError,
    NotFoundError,
    QuotaExceededError,
    RoyaleError,
    StorageError,
    ValidationError,
)
from royale.logging_config import setup_logging
from royale.persistence import HistoryRepository, get_connection, get_db_path, init_db
from royale.services import (
    ArchivalOrchestrator,
    RecordService,
    TeamResult,
    TournamentService,
    UploadItem,
    UploadService,
)
from royale.services.uploads import Analyzer
from royale.standings import csv_filename, standings_to_csv
from royale.storage import ObjectStorage, get_storage

logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    init_db(db_path=get_db_path())
    if config.STORAGE_BACKEND == "local":
        Path(config.STORAGE_DIR).mkdir(parents=True, exist_ok=True)
    logger.info("Database ready at %s; storage backend %s", get_db_path(), config.STORAGE_BACKEND)
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Royale Standings API",
    description="Scoring, standings and archival for battle-royale tournaments",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)
if config.STORAGE_BACKEND == "local":
    app.mount("/files", StaticFiles(directory=config.STORAGE_DIR, check_dir=False), name="files")


# ---------- Error mapping ----------

_STATUS_BY_ERROR: list[tuple[type[RoyaleError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (QuotaExceededError, 409),
    (ExternalServiceError, 502),
    (StorageError, 502),
]


@app.exception_handler(RoyaleError)
async def royale_error_handler(request: Request, exc: RoyaleError) -> JSONResponse:
    if isinstance(exc, ArchivalError):
        logger.error("Archival failed: %s", exc)
        report = exc.report.to_dict() if exc.report is not None else None
        return JSONResponse(
            status_code=500,
            content={"detail": exc.user_message, "step": exc.step, "report": report},
        )
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    content: dict[str, Any] = {"detail": exc.user_message}
    if isinstance(exc, QuotaExceededError):
        content["remaining"] = exc.remaining
    return JSONResponse(status_code=status, content=content)


# ---------- Dependencies ----------

security = HTTPBearer(auto_error=False)


def get_caller(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> Caller:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    caller = decode_caller(credentials.credentials)
    if caller is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return caller


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return caller


def get_analyzer() -> Analyzer:
    return analyze_screenshot


# Closure of one tournament at a time; keyed by tournament id, process-local.
# An entry lives only while some request holds its lock.
_close_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
_close_locks_guard = threading.Lock()


def _close_lock(tournament_id: str) -> threading.Lock:
    with _close_locks_guard:
        lock = _close_locks.get(tournament_id)
        if lock is None:
            lock = threading.Lock()
            _close_locks[tournament_id] = lock
        return lock


# ---------- Request models ----------


class CreateTournamentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    total_matches: int = Field(config.DEFAULT_TOTAL_MATCHES, description="Per-team match cap for the whole tournament")


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ManualResult(BaseModel):
    team_id: str
    placement: int = Field(..., description="Finish rank, 1-32")
    kills: int


class ManualMatchRequest(BaseModel):
    day: int = Field(1, description="Tournament day, 1-based")
    match_number: int
    results: list[ManualResult]


class DailyTotalRequest(BaseModel):
    team_id: str
    day: int
    kills: int
    placement_points: int = Field(..., description="Placement points earned over the whole day")


class EditRecordRequest(BaseModel):
    placement: int | None = None
    kills: int | None = None
    placement_points: int | None = Field(None, description="Daily totals only")


# ---------- Tournaments ----------


@app.post("/tournaments")
def create_tournament(req: CreateTournamentRequest, caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        tournament = TournamentService().create_tournament(
            conn, name=req.name, total_matches=req.total_matches, description=req.description,
        )
        return tournament.to_dict()


@app.get("/tournaments")
def list_tournaments() -> dict[str, Any]:
    """Newest first; the first entry is the current tournament."""
    with db_conn() as conn:
        return {"tournaments": [t.to_dict() for t in TournamentService().list_tournaments(conn)]}


@app.get("/tournaments/{tournament_id}")
def get_tournament(tournament_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().get_tournament(conn, tournament_id).to_dict()


@app.post("/tournaments/{tournament_id}/close")
def close_tournament(
    tournament_id: str,
    caller: Caller = Depends(require_admin),
    storage: ObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Archive standings into history and purge the tournament. Returns the step-by-step report."""
    lock = _close_lock(tournament_id)
    with lock:
        with db_conn() as conn:
            report = ArchivalOrchestrator(storage).close(conn, tournament_id)
    logger.info("Tournament %s closed by %s", tournament_id, caller.user_id)
    return report.to_dict()


# ---------- Teams ----------


@app.get("/tournaments/{tournament_id}/teams")
def list_teams(tournament_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return {"teams": [t.to_dict() for t in TournamentService().list_teams(conn, tournament_id)]}


@app.post("/tournaments/{tournament_id}/teams")
def add_team(tournament_id: str, req: CreateTeamRequest, caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().add_team(conn, tournament_id, req.name).to_dict()


@app.delete("/teams/{team_id}")
def remove_team(
    team_id: str,
    caller: Caller = Depends(require_admin),
    storage: ObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    with db_conn() as conn:
        failed = TournamentService().remove_team(conn, team_id, storage)
    return {"team_id": team_id, "deleted": True, "storage_failures": failed}


@app.put("/teams/{team_id}/logo")
async def upload_team_logo(
    team_id: str,
    file: UploadFile = File(...),
    caller: Caller = Depends(require_admin),
    storage: ObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    data = await file.read()
    with db_conn() as conn:
        team = TournamentService().set_logo(conn, team_id, storage, data, file.content_type, file.filename)
        return team.to_dict()


@app.get("/teams/{team_id}/summary")
def team_summary(
    team_id: str,
    day: int | None = Query(None, ge=1, description="Count uploads for this day"),
    caller: Caller = Depends(get_caller),
) -> dict[str, Any]:
    if not caller.can_act_for_team(team_id):
        raise HTTPException(status_code=403, detail="Not your team")
    with db_conn() as conn:
        return TournamentService().team_summary(conn, team_id, day=day).to_dict()


# ---------- Standings ----------


@app.get("/tournaments/{tournament_id}/standings")
def get_standings(tournament_id: str) -> dict[str, Any]:
    """Ranked standings plus tournament MVP and top damage, recomputed on every call."""
    with db_conn() as conn:
        snapshot = TournamentService().snapshot(conn, tournament_id)
        out = snapshot.to_dict()
        out["tournament_id"] = tournament_id
        return out


@app.get("/tournaments/{tournament_id}/standings.csv")
def export_standings_csv(tournament_id: str) -> Response:
    with db_conn() as conn:
        service = TournamentService()
        tournament = service.get_tournament(conn, tournament_id)
        snapshot = service.snapshot(conn, tournament_id)
    return Response(
        content=standings_to_csv(snapshot.standings),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(tournament.name)}"'},
    )


# ---------- Records ----------


@app.get("/tournaments/{tournament_id}/records")
def list_records(tournament_id: str) -> dict[str, Any]:
    """Every record of the tournament, newest first, with its team's name and logo."""
    with db_conn() as conn:
        rows = RecordService().list_records(conn, tournament_id)
    records = []
    for record, team in rows:
        d = record.to_dict()
        d["team_name"] = team.name
        d["team_logo_url"] = team.logo_url
        records.append(d)
    return {"records": records}


@app.post("/tournaments/{tournament_id}/matches")
def enter_manual_match(
    tournament_id: str,
    req: ManualMatchRequest,
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    with db_conn() as conn:
        created = RecordService().enter_match(
            conn,
            tournament_id,
            day=req.day,
            match_number=req.match_number,
            results=[TeamResult(team_id=r.team_id, placement=r.placement, kills=r.kills) for r in req.results],
            entered_by=caller.user_id,
        )
    return {"records": [r.to_dict() for r in created]}


@app.post("/tournaments/{tournament_id}/daily-totals")
def enter_daily_total(
    tournament_id: str,
    req: DailyTotalRequest,
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    with db_conn() as conn:
        record = RecordService().enter_daily_total(
            conn,
            tournament_id,
            team_id=req.team_id,
            day=req.day,
            kills=req.kills,
            placement_points=req.placement_points,
            entered_by=caller.user_id,
        )
    return record.to_dict()


@app.patch("/records/{record_id}")
def edit_record(record_id: str, req: EditRecordRequest, caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        record = RecordService().edit_record(
            conn, record_id, placement=req.placement, kills=req.kills, placement_points=req.placement_points,
        )
    return record.to_dict()


# ---------- Screenshot uploads ----------


@app.post("/teams/{team_id}/screenshots")
async def upload_screenshots(
    team_id: str,
    day: int = Form(...),
    match_number: int | None = Form(None),
    files: list[UploadFile] = File(...),
    caller: Caller = Depends(get_caller),
    storage: ObjectStorage = Depends(get_storage),
    analyzer: Analyzer = Depends(get_analyzer),
) -> dict[str, Any]:
    """
    Upload up to four result screenshots for a team. The batch is admitted or rejected
    as a whole; after that each screenshot succeeds or fails on its own.
    """
    if not caller.can_act_for_team(team_id):
        raise HTTPException(status_code=403, detail="Not your team")
    items = [UploadItem(data=await f.read(), content_type=f.content_type, filename=f.filename) for f in files]

    def submit() -> dict[str, Any]:
        # Analysis calls block; keep them off the event loop
        with db_conn() as conn:
            report = UploadService(storage, analyzer).submit(
                conn, team_id, day=day, items=items, match_number=match_number, uploaded_by=caller.user_id,
            )
        return report.to_dict()

    return await run_in_threadpool(submit)


# ---------- History ----------


@app.get("/history")
def list_history() -> dict[str, Any]:
    with db_conn() as conn:
        return {"history": [h.to_dict() for h in HistoryRepository().list_all(conn)]}


@app.get("/history/{history_id}")
def get_history(history_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        history = HistoryRepository().get(conn, history_id)
    if history is None:
        raise NotFoundError("History", history_id)
    return history.to_dict()
