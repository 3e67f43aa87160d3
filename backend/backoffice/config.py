# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///backoffice.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on waiting for a (product, size) or customer lock during settlement
    SETTLEMENT_LOCK_TIMEOUT_SECONDS = float(os.environ.get("SETTLEMENT_LOCK_TIMEOUT_SECONDS", "5"))

    # Database-level lock contention is retried this many times before surfacing a timeout
    SETTLEMENT_RETRY_ATTEMPTS = int(os.environ.get("SETTLEMENT_RETRY_ATTEMPTS", "3"))

    # Flat tax rate in basis points applied to the payable amount when a request carries no tax
    SALE_TAX_RATE_BPS = int(os.environ.get("SALE_TAX_RATE_BPS", "0"))

    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "SALE")

    # Front-end origins allowed to call the API from a browser
    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )
