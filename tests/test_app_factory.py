"""Tests for the Flask application factory."""
from __future__ import annotations

import pytest

from app import initialise_database
from conftest import build_app
from models import db
from models.blog_post import BlogPost


def test_health_endpoint_returns_ok(client):
    """The health endpoint should respond with an OK payload."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}
    assert response.headers.get("X-Request-ID")


def test_blueprints_registered(app):
    """Application factory should register expected blueprints."""
    assert {"auth", "account", "blog"}.issubset(set(app.blueprints.keys()))


def test_missing_token_secret_is_fatal():
    with pytest.raises(RuntimeError):
        build_app(JWT_SECRET_KEY="")


def test_initialise_database_keeps_rows_without_reset(app, make_post):
    make_post()

    assert initialise_database(app) is False

    with app.app_context():
        assert BlogPost.query.count() == 1


def test_initialise_database_drops_rows_on_reset(app, make_post):
    make_post()
    app.config["RESET_DB"] = True

    assert initialise_database(app) is True

    with app.app_context():
        assert BlogPost.query.count() == 0
        db.session.remove()


def test_init_db_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["init-db"])

    assert result.exit_code == 0
    assert "Database synchronised." in result.output
