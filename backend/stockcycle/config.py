# backend/stockcycle/config.py
from __future__ import annotations
import os


def _split_origins(raw: str) -> set[str]:
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockcycle.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockcycle.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Frontend dev servers (Vite) allowed to call the API from the browser
    CORS_ALLOWED_ORIGINS = _split_origins(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        )
    )

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
