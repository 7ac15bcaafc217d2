# backend/lbp/__init__.py
from __future__ import annotations

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.caisse import caisse_bp
    from .routes.invoices import invoices_bp
    from .routes.payments import payments_bp
    from .routes.payment_links import payment_links_bp
    from .routes.reports import reports_bp

    app.register_blueprint(caisse_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(payment_links_bp)
    app.register_blueprint(reports_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Code, X-Agency-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    # One register per agency, created at process start
    if app.config["ENSURE_REGISTERS_ON_STARTUP"]:
        _bootstrap_registers(app)

    return app


def _bootstrap_registers(app: Flask) -> None:
    from sqlalchemy import inspect
    from .services import cash_service

    with app.app_context():
        inspector = inspect(db.engine)
        if not (inspector.has_table("agencies") and inspector.has_table("cash_registers")):
            app.logger.info("Schema not created yet, skipping cash register bootstrap")
            return
        cash_service.ensure_agency_registers()
