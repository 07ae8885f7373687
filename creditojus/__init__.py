import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from creditojus.config import Config
from creditojus.db import close_db, init_db
from creditojus.db_migrations import register_db_cli
from creditojus.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
)
from creditojus.security import apply_security_headers
from creditojus.ui_strings import FRIENDLY_TERMS


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class() if isinstance(config_class, type) else config_class)
    configure_json_logging(app)

    _ensure_storage_dirs(app)
    _register_error_handlers(app)
    _register_auth(app)
    _register_blueprints(app)
    _register_health(app)
    _register_notifications(app)
    register_db_cli(app)
    _maybe_init_schema(app)

    app.teardown_appcontext(close_db)
    return app


def _ensure_storage_dirs(app: Flask) -> None:
    for key in ("DATABASE_DIR", "UPLOAD_DIR"):
        directory = app.config.get(key)
        if directory:
            os.makedirs(directory, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignorado fora de development.")
        return

    with app.app_context():
        init_db()


def _register_blueprints(app: Flask) -> None:
    from creditojus.routes.offer_routes import offer_bp
    from creditojus.routes.transaction_routes import transaction_bp

    app.register_blueprint(offer_bp)
    app.register_blueprint(transaction_bp)


def _register_auth(app: Flask) -> None:
    from creditojus.auth import register_auth

    register_auth(app)


def _register_notifications(app: Flask) -> None:
    from creditojus.application.notifications import register_default_notifier
    from creditojus.core.event_bus import get_event_bus

    notifier = register_default_notifier(
        get_event_bus(), enabled=bool(app.config.get("NOTIFICATIONS_ENABLED", True))
    )
    app.extensions["creditojus.notifier"] = notifier


def _register_error_handlers(app: Flask) -> None:
    from creditojus.errors import AppError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        response = observe_response(response)
        return apply_security_headers(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "service": FRIENDLY_TERMS["app_name"],
            "db": backend,
            "metrics": {
                "http": metrics_snapshot(),
            },
        }
        return payload, 200
