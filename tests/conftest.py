"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import re
import sys
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.blog_post import BlogPost  # noqa: E402
from models.user import User  # noqa: E402
from services import mail  # noqa: E402

DEFAULT_PASSWORD = "Password123"
_TOKEN_PATTERN = re.compile(r"token=([A-Za-z0-9_\-.]+)")


class _BaseTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test-session-secret"
    JWT_SECRET_KEY = "test-jwt-secret"
    WTF_CSRF_ENABLED = False
    RESET_DB = False
    APP_HOST = None
    TRUSTED_HOSTS = None
    VERIFY_AUTO_LOGIN = True
    ALLOW_ANONYMOUS_POSTS = False
    RATE_LIMIT = "300 per 15 minutes"


def build_app(**overrides) -> Flask:
    """Create an application with tables, applying config overrides."""

    class TestConfig(_BaseTestConfig):
        pass

    for key, value in overrides.items():
        setattr(TestConfig, key, value)

    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
    return application


@pytest.fixture()
def app() -> Flask:
    """Create a Flask application instance for tests."""

    application = build_app()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> list:
    """Capture outgoing email instead of talking to an SMTP server."""

    sent: list = []
    monkeypatch.setattr(mail, "_deliver", sent.append)
    return sent


@pytest.fixture()
def make_user(app: Flask):
    """Factory persisting a user and returning its id."""

    def _make_user(
        email: str = "writer@example.com",
        username: str = "writer",
        password: str = DEFAULT_PASSWORD,
        *,
        verified: bool = True,
    ) -> int:
        with app.app_context():
            user = User(email=email, username=username, is_verified=verified)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def make_post(app: Flask):
    """Factory persisting a post and returning its id."""

    def _make_post(title: str = "A title", content: str = "Some content", author: str = "writer") -> int:
        with app.app_context():
            post = BlogPost(title=title, content=content, author=author)
            db.session.add(post)
            db.session.commit()
            return post.id

    return _make_post


def login(client: FlaskClient, identifier: str = "writer", password: str = DEFAULT_PASSWORD, **extra):
    return client.post(
        "/auth/login",
        data={"identifier": identifier, "password": password, **extra},
    )


@pytest.fixture()
def logged_in_client(client: FlaskClient, make_user) -> FlaskClient:
    """A client logged in as the verified user ``writer``."""

    make_user()
    response = login(client)
    assert response.status_code == 302
    return client


def token_from(message) -> str:
    """Extract the token query parameter from an email's plain-text body."""

    body = message.get_body(preferencelist=("plain",)).get_content()
    match = _TOKEN_PATTERN.search(body)
    assert match, body
    return match.group(1)


def page_text(client: FlaskClient, path: str) -> str:
    """Fetch ``path`` and return its body, consuming any flashed messages."""

    return client.get(path).get_data(as_text=True)
