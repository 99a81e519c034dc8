# invoiceflow/__init__.py
from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .errors import InvoicingError
from .extensions import db, limiter, login_manager, migrate
from .settings import Config


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("invoiceflow").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    _configure_logging(app)

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # Register Blueprints
    # ======================
    from .api.auth import auth
    from .api.clients import clients_bp
    from .api.invoices import invoices_bp

    app.register_blueprint(auth)
    app.register_blueprint(clients_bp)
    app.register_blueprint(invoices_bp)

    from .cli import register_commands

    register_commands(app)

    @app.get("/health")
    def health():
        return jsonify({"status": "OK"})

    # ======================
    # Domain errors -> JSON
    # ======================
    @app.errorhandler(InvoicingError)
    def invoicing_error(e: InvoicingError):
        return jsonify(e.to_dict()), e.status_code

    # ======================
    # Rate limit error handler
    # ======================
    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify({"message": "Too many requests. Please try again later.", "error": "RATE_LIMITED"}), 429

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        return jsonify({"message": e.description, "error": (e.name or "").upper().replace(" ", "_")}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return jsonify({"message": "Internal server error", "error": "INTERNAL_ERROR"}), 500

    return app
