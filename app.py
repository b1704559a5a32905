"""Application factory."""

import os
import uuid

import click
from flask import Flask, g, jsonify, make_response, render_template, request
from flask.globals import request_ctx
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFError, CSRFProtect
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.user import User
from routes.account import account_bp
from routes.auth import auth_bp
from routes.blog import blog_bp
from utils.request_validation import wants_json

CSRF_ERROR_MESSAGE = "Invalid CSRF token or session expired."
RATE_LIMIT_MESSAGE = "Too many requests, please try again later."

migrate = Migrate()
jwt = JWTManager()
csrf = CSRFProtect()
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please log in to access this page."
login_manager.login_message_category = "error"


@login_manager.user_loader
def _load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    if not app.config.get("JWT_SECRET_KEY"):
        raise RuntimeError("JWT_SECRET_KEY must be configured to sign tokens.")
    if not app.config.get("APP_HOST") and not app.config.get("TRUSTED_HOSTS"):
        app.logger.warning(
            "Neither APP_HOST nor TRUSTED_HOSTS is set; email links will use the request Host header."
        )

    # Core subsystems
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    csrf.init_app(app)
    login_manager.init_app(app)

    # CORS
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    _init_rate_limiter(app)

    # Blueprints
    app.register_blueprint(blog_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(account_bp, url_prefix="/auth")

    # Health
    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "ok"})

    # Errors
    _register_error_handlers(app)

    @app.cli.command("init-db")
    def init_db_command():
        """Create the database tables, dropping them first when RESET_DB is set."""
        reset = initialise_database(app)
        click.echo("Database reset." if reset else "Database synchronised.")

    return app


def _init_rate_limiter(app: Flask) -> Limiter:
    """Attach a per-application, in-memory rate limiter keyed by client address."""

    key_prefix = app.config.get("RATELIMIT_KEY_PREFIX") or str(uuid.uuid4())
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[lambda: app.config.get("RATE_LIMIT", "300 per 15 minutes")],
        storage_uri=app.config.get("RATELIMIT_STORAGE_URI", "memory://"),
        headers_enabled=app.config.get("RATELIMIT_HEADERS_ENABLED", True),
        key_prefix=key_prefix,
    )
    limiter.init_app(app)
    app.config["RATELIMIT_KEY_PREFIX"] = key_prefix
    app.extensions["rate_limiter"] = limiter
    return limiter


def reset_rate_limit(app: Flask) -> None:
    """Forget every client's request count for ``app``."""

    app.extensions["rate_limiter"].reset()


def initialise_database(app: Flask) -> bool:
    """Create all tables; drop them first when ``RESET_DB`` is set.

    Returns whether the database was reset.
    """

    reset = bool(app.config.get("RESET_DB"))
    with app.app_context():
        if reset:
            db.drop_all()
        db.create_all()
    if reset:
        app.logger.info("Database reset and re-synchronised successfully.")
    else:
        app.logger.info("Database synchronised successfully.")
    return reset


def _error_response(code: int, name: str, detail: str):
    request_id = g.get("request_id") or str(uuid.uuid4())
    # Templates need a URL adapter, which is missing when the Host is untrusted.
    if wants_json(request) or request_ctx.url_adapter is None:
        response = jsonify({"error": name, "detail": detail, "request_id": request_id})
        response.status_code = code
    else:
        response = make_response(
            render_template("error.html", title=name, code=code, name=name, detail=detail), code
        )
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def _register_error_handlers(app: Flask) -> None:
    """Register error handlers and request IDs."""

    @app.before_request
    def _assign_request_id():  # pragma: no cover
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    @app.after_request
    def _add_request_id_header(response):  # pragma: no cover
        request_id = g.get("request_id")
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        return response

    @app.errorhandler(CSRFError)
    def _handle_csrf_error(error: CSRFError):
        app.logger.warning("Rejected request to %s: %s", request.path, error.description)
        return _error_response(403, "Forbidden", CSRF_ERROR_MESSAGE)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        detail = RATE_LIMIT_MESSAGE if error.code == 429 else error.description
        return _error_response(error.code or 500, getattr(error, "name", "Error"), detail)

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):  # pragma: no cover
        app.logger.exception("Unhandled application error", exc_info=error)
        return _error_response(500, "Internal Server Error", "An unexpected error occurred.")


if __name__ == "__main__":
    application = create_app()
    initialise_database(application)
    application.run(host="0.0.0.0", port=int(os.environ.get("PORT", 3000)))
