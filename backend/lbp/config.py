# backend/lbp/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/lbp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///lbp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Ledger defaults
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "XOF")
    DEFAULT_ALERT_THRESHOLD = os.environ.get("DEFAULT_ALERT_THRESHOLD", "50000")
    DEFAULT_REGISTER_NAME = "Caisse Principale"
    # Create the missing per-agency registers when the app starts
    ENSURE_REGISTERS_ON_STARTUP = os.environ.get("ENSURE_REGISTERS_ON_STARTUP", "true").lower() == "true"

    # Payment links / online payments
    PAYMENT_LINK_TTL_HOURS = int(os.environ.get("PAYMENT_LINK_TTL_HOURS", "24"))
    ONLINE_PAYMENT_USER = os.environ.get("ONLINE_PAYMENT_USER", "SYSTEM_ONLINE")

    # Alerts
    OVERDUE_INVOICE_DAYS = int(os.environ.get("OVERDUE_INVOICE_DAYS", "7"))
