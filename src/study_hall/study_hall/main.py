from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .billing.controller import register as register_billing
from .container import build_container
from .core.exceptions import (
    ConflictError,
    DomainError,
    ExternalDependencyError,
    NotFoundError,
    StateError,
    ValidationError,
)
from .database.bootstrap import apply_schema, list_tables
from .feedback.controller import register as register_feedback
from .members.controller import register as register_members
from .notifications.controller import register as register_notifications

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StateError, 409),
    (ExternalDependencyError, 503),
)


def status_for(exc: DomainError) -> int:
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status
    return 400


def create_app(settings_module: str | None = None, *, store=None, push_client=None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    backend = str(getattr(settings, "STORE_BACKEND", "mysql")).lower()
    logger.info("settings=%s store=%s", settings_module, backend)
    if store is None and backend == "mysql" and bool(getattr(settings, "AUTO_INIT_DB", False)):
        db_config = getattr(settings, "DB_CONFIG")
        schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
        apply_schema(db_config, schema_path=schema_path)
        logger.info("schema ready (tables=%d)", len(list_tables(db_config)))

    container = build_container(settings, store=store, push_client=push_client)
    app.extensions["study_hall"] = container

    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s: %s", type(exc).__name__, exc)
        return jsonify({"error": str(exc)}), status

    register_members(app, container)
    register_billing(app, container)
    register_attendance(app, container)
    register_notifications(app, container)
    register_feedback(app, container)

    return app
