# backend/cuehall/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cuehall.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cuehall.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # What a computed cashback usage cap of 0 means:
    # "unlimited" -> fall back to the full balance, "strict" -> nothing may be spent
    CASHBACK_ZERO_CAP_FALLBACK = os.environ.get("CASHBACK_ZERO_CAP_FALLBACK", "unlimited")

    SESSION_HISTORY_PAGE_SIZE = int(os.environ.get("SESSION_HISTORY_PAGE_SIZE", "50"))
    CASHBACK_HISTORY_LIMIT = int(os.environ.get("CASHBACK_HISTORY_LIMIT", "50"))
