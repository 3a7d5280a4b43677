"""
API gateway: builds the Flask app, wires the shared services and mounts
the auth, profile and events blueprints.
This is also the local entrypoint for development.
"""

import logging
import resource
import time
import traceback
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, Response, jsonify, request, send_from_directory
from flask_compress import Compress
from flask_cors import CORS
from pymongo.database import Database
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from gatherguru.auth_service.routes import admin_bp, auth_bp, organizer_bp, profile_bp
from gatherguru.auth_service.utils import TOKEN_SERVICE_KEY, TokenService
from gatherguru.config import SETTINGS_KEY, Settings
from gatherguru.database.db_connection import DB_EXTENSION_KEY, connect, ensure_indexes
from gatherguru.errors import ApiError, CorsRejection
from gatherguru.events_service.routes import events_bp
from gatherguru.gateway.rate_limit import FixedWindowRateLimiter
from gatherguru.responses import fail
from gatherguru.uploads import LocalUploadAdapter, UploadAdapter, create_upload_adapter
from gatherguru.uploads.base import UPLOAD_ADAPTER_KEY

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")
logger = logging.getLogger(__name__)

RATE_LIMITER_KEY = "gatherguru.rate_limiter"
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "style-src 'self' 'unsafe-inline'",
    "script-src 'self'",
    "img-src 'self' data: https:",
])


def _register_security(app: Flask, settings: Settings) -> None:
    limiter: FixedWindowRateLimiter = app.extensions[RATE_LIMITER_KEY]

    @app.before_request
    def log_request() -> None:
        logger.info(f"[Gateway] Incoming {request.method} {request.path}")

    @app.before_request
    def rate_limit():
        if not request.path.startswith("/api/"):
            return None
        result = limiter.hit(request.remote_addr or "unknown")
        request.environ["gatherguru.rate_limit"] = result
        if not result.allowed:
            return fail(RATE_LIMIT_MESSAGE, 429)
        return None

    @app.before_request
    def check_origin() -> None:
        # Requests without an Origin header (curl, server-to-server) pass
        origin = request.headers.get("Origin")
        if origin and origin not in settings.allowed_origins:
            raise CorsRejection()

    @app.before_request
    def cap_body() -> None:
        # Multipart gets the framing allowance; each file is checked on store
        if request.mimetype == "multipart/form-data":
            return
        if (request.content_length or 0) > settings.max_json_length:
            raise RequestEntityTooLarge()

    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"

        result = request.environ.get("gatherguru.rate_limit")
        if result is not None:
            response.headers["RateLimit-Limit"] = str(result.limit)
            response.headers["RateLimit-Remaining"] = str(result.remaining)
            response.headers["RateLimit-Reset"] = str(max(0, int(result.reset_at - time.monotonic())))
        return response

    @app.after_request
    def log_response(response: Response) -> Response:
        logger.info(f"[Gateway] Response {response.status} for {request.method} {request.path}")
        return response


def _register_error_handlers(app: Flask, settings: Settings) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        return fail(err.message, err.status, **(err.details or {}))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(_):
        limit_mb = settings.max_json_length // (1024 * 1024)
        return fail(f"Request body exceeds the {limit_mb}MB limit", 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        if err.code == 404:
            return fail("Route not found", 404)
        if err.code == 405:
            return fail("Method not allowed", 405)
        return fail(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        stack = None if settings.is_production else "".join(
            traceback.format_exception(type(err), err, err.__traceback__)
        )
        return fail(str(err) or "Something went wrong!", 500, error=stack)


def _register_system_routes(app: Flask, settings: Settings, adapter: UploadAdapter) -> None:
    started = time.monotonic()

    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        usage = resource.getrusage(resource.RUSAGE_SELF)
        return jsonify({
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
            "environment": settings.environment,
            "memory": {"max_rss_kb": usage.ru_maxrss},
            "storage": adapter.describe(),
        }), 200

    @app.route("/api/test")
    def api_test():
        return jsonify({
            "message": "API endpoint is working!",
            "data": {
                "test": True,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "environment": settings.environment,
            },
        }), 200

    @app.route("/uploads/<path:filename>")
    def uploaded_file(filename: str):
        root = adapter.root if isinstance(adapter, LocalUploadAdapter) else settings.upload_dir
        return send_from_directory(root, filename)


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    upload_adapter: Optional[UploadAdapter] = None,
) -> Flask:
    """
    Application factory for creating the Flask app.

    Every service is built here and stored on app.extensions; pass `db` or
    `upload_adapter` to substitute your own (tests do).

    Returns:
        Flask: The configured Flask application.
    """
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length

    if db is None:
        client, db = connect(settings)
        app.extensions["gatherguru.mongo_client"] = client
    try:
        ensure_indexes(db)
    except PyMongoError as e:
        logger.exception("MongoDB connection error")
        raise RuntimeError(f"MongoDB connection failed: {e}") from e

    adapter = upload_adapter or create_upload_adapter(settings)

    app.extensions[SETTINGS_KEY] = settings
    app.extensions[DB_EXTENSION_KEY] = db
    app.extensions[TOKEN_SERVICE_KEY] = TokenService(settings.jwt_secret, settings.token_expiration_minutes)
    app.extensions[UPLOAD_ADAPTER_KEY] = adapter
    app.extensions[RATE_LIMITER_KEY] = FixedWindowRateLimiter(
        settings.rate_limit_max, settings.rate_limit_window_seconds
    )

    _register_security(app, settings)

    Compress(app)

    CORS(app, resources={
        r"/*": {
            "origins": settings.allowed_origins,
            "methods": ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Requested-With"],
            "supports_credentials": True,
        }
    })

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(organizer_bp, url_prefix="/api/organizer")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(profile_bp, url_prefix="/api/profile")

    _register_system_routes(app, settings, adapter)
    _register_error_handlers(app, settings)

    logger.info(f"Storage backend: {adapter.name}")
    return app


def main() -> None:
    settings = Settings.from_env()
    app = create_app(settings)
    logger.info(f"Server running on port {settings.port} in {settings.environment} mode")
    logger.info(f"Health check available at: http://localhost:{settings.port}/health")
    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug)


if __name__ == "__main__":
    main()
