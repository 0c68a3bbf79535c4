# backend/proforma/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///proforma.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Request numbering: OGL-00125 is ordinal 1 issued in 2025
    REQUEST_NUMBER_PREFIX = os.environ.get("REQUEST_NUMBER_PREFIX", "OGL")
    REQUEST_NUMBER_PAD = int(os.environ.get("REQUEST_NUMBER_PAD", "3"))

    # approved -> processing -> completed
    REQUEST_FULFILLMENT_TRACKING = _env_bool("REQUEST_FULFILLMENT_TRACKING", False)

    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "GHS")

    # Notifications: "log" writes to the app logger, "smtp" sends real mail
    NOTIFIER_BACKEND = os.environ.get("NOTIFIER_BACKEND", "log")
    NOTIFIER_TIMEOUT_SECONDS = float(os.environ.get("NOTIFIER_TIMEOUT_SECONDS", "10"))
    SMTP_HOST = os.environ.get("SMTP_HOST", "localhost")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USERNAME = os.environ.get("SMTP_USERNAME")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "no-reply@proforma.local")
