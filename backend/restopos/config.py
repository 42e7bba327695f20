# backend/restopos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/restopos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///restopos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Checkout rates in basis points: 1100 = 11% PPN, 0 = no service charge
    TAX_RATE_BPS = _env_int("TAX_RATE_BPS", 1100)
    SERVICE_CHARGE_BPS = _env_int("SERVICE_CHARGE_BPS", 0)

    # Optimistic-concurrency retries for stock transactions
    TRANSACTION_RETRY_ATTEMPTS = _env_int("TRANSACTION_RETRY_ATTEMPTS", 3)
    TRANSACTION_RETRY_BACKOFF = float(os.environ.get("TRANSACTION_RETRY_BACKOFF", "0.1"))

    # Stock below min_stock * factor is reported as "warning"
    LOW_STOCK_WARNING_FACTOR = _env_int("LOW_STOCK_WARNING_FACTOR", 2)

    CORS_ALLOWED_ORIGINS = _env_list(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
