# backend/pos_core/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos_core.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos_core.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Order numbers look like CMD-2026-000042
    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "CMD")
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.20")

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))
    # Absolute close variance (minor units) above which a warning is logged
    VARIANCE_ALERT_THRESHOLD = int(os.environ.get("VARIANCE_ALERT_THRESHOLD", "1000"))

    WRITE_RETRY_ATTEMPTS = int(os.environ.get("WRITE_RETRY_ATTEMPTS", "3"))
