"""
Runtime configuration, read from the environment once at import.
Tests override the database path with persistence.db.set_db_path and the
collaborators through FastAPI dependency overrides.
"""
from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ---------- Database ----------
DB_PATH = os.environ.get("ROYALE_DB_PATH", str(PROJECT_ROOT / "data" / "royale.db"))

# ---------- Logging ----------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ---------- Caller identity ----------
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "royale-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 3  # one tournament weekend

# ---------- Image analysis ----------
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "").strip()
ANALYSIS_MODEL = os.environ.get("ANALYSIS_MODEL", "gpt-4o-mini")
ANALYSIS_TIMEOUT_SECONDS = float(os.environ.get("ANALYSIS_TIMEOUT_SECONDS", "60"))

# ---------- Object storage ----------
STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local").lower()  # local | cloudinary
STORAGE_DIR = os.environ.get("STORAGE_DIR", str(PROJECT_ROOT / "data" / "storage"))
STORAGE_BASE_URL = os.environ.get("STORAGE_BASE_URL", "http://localhost:8000/files")
SCREENSHOT_BUCKET = "match-screenshots"
LOGO_BUCKET = "team-logos"
CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.environ.get("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.environ.get("CLOUDINARY_API_SECRET")

# ---------- Upload admission ----------
MAX_BATCH_SIZE = 4
DEFAULT_TOTAL_MATCHES = 6

# ---------- Standings refresh ----------
REFRESH_INTERVAL_SECONDS = float(os.environ.get("REFRESH_INTERVAL_SECONDS", "5"))
