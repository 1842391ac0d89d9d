# backend/vendorhub/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/vendorhub.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///vendorhub.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Pricing policy defaults (basis points / cents); callers may override per order
    DEFAULT_TAX_RATE_BPS = _int_env("DEFAULT_TAX_RATE_BPS", 1000)
    DEFAULT_SHIPPING_CENTS = _int_env("DEFAULT_SHIPPING_CENTS", 0)

    # Invoice generation
    INVOICE_STORAGE_DIR = os.environ.get("INVOICE_STORAGE_DIR", "")  # empty -> <instance_path>/invoices
    INVOICE_DUE_DAYS = _int_env("INVOICE_DUE_DAYS", 30)
    INVOICE_RENDER_ATTEMPTS = _int_env("INVOICE_RENDER_ATTEMPTS", 3)
    INVOICE_RETRY_BACKOFF = float(os.environ.get("INVOICE_RETRY_BACKOFF", "0.5"))  # seconds, doubled per attempt

    # Background jobs (dramatiq)
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    RUN_INLINE_JOBS = os.environ.get("RUN_INLINE_JOBS", "0") == "1"
