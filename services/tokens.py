"""Signed, time-limited confirmation tokens.

Tokens are JWTs issued with the application's ``JWT_SECRET_KEY``. They are not
stored anywhere, so validity rests on the signature and the ``exp`` claim
alone. Each token carries a ``purpose`` claim so a link minted for one flow
cannot be replayed against another.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

VERIFY = "verify"
RESET_PASSWORD = "reset"
UPDATE_EMAIL = "update_email"
UPDATE_USERNAME = "update_username"
DELETE_ACCOUNT = "delete_account"


class TokenInvalid(Exception):
    """Raised for any token that cannot be trusted: tampered, expired or misused."""


def issue_token(
    purpose: str,
    subject,
    ttl: timedelta | None = None,
    **claims,
) -> str:
    """Sign ``subject`` and ``claims`` for ``purpose``, valid for ``ttl``."""

    if ttl is None:
        ttl = current_app.config["TOKEN_TTL"]
    return create_access_token(
        identity=str(subject),
        additional_claims={"purpose": purpose, **claims},
        expires_delta=ttl,
    )


def verify_token(token: str | None, purpose: str) -> dict:
    """Return the decoded claims of ``token`` or raise :class:`TokenInvalid`."""

    if not token:
        raise TokenInvalid("missing token")
    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as exc:
        raise TokenInvalid(str(exc)) from exc
    if claims.get("purpose") != purpose:
        raise TokenInvalid("token issued for another purpose")
    return claims


def subject_id(claims: dict) -> int:
    """Return the integer account id a token was issued for."""

    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise TokenInvalid("malformed subject") from exc
