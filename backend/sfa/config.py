# backend/sfa/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/sfa.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///sfa.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # SQLite only: how long a writer waits on the database lock (seconds)
    SQLITE_BUSY_TIMEOUT_SECONDS = float(os.environ.get("SQLITE_BUSY_TIMEOUT_SECONDS", "10"))

    # Upper bound for one sale/void/bulk transaction
    UNIT_OF_WORK_TIMEOUT_SECONDS = float(os.environ.get("UNIT_OF_WORK_TIMEOUT_SECONDS", "10"))
    UNIT_OF_WORK_RETRY_ATTEMPTS = int(os.environ.get("UNIT_OF_WORK_RETRY_ATTEMPTS", "3"))

    CLIENT_STOCK_ENABLED = _env_bool("CLIENT_STOCK_ENABLED", True)
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
