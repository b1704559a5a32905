"""User model definition."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask_login import UserMixin
from sqlalchemy import func, or_
from werkzeug.security import check_password_hash, generate_password_hash

from . import db


class User(UserMixin, db.Model):
    """A registered blog account."""

    __tablename__ = "users"
    # Ids are never reused after a delete.
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    username = db.Column(db.String(30), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    is_verified = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        server_default=db.false(),
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def set_password(self, password: str) -> None:
        """Hash and store the password."""

        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""

        return check_password_hash(self.password_hash, password)

    def mark_verified(self) -> bool:
        """Flag the account as verified, returning False if it already was."""

        if self.is_verified:
            return False
        self.is_verified = True
        return True

    @classmethod
    def find_by_email(cls, email: str | None) -> Optional["User"]:
        if not email:
            return None
        return cls.query.filter(cls.email == email).first()

    @classmethod
    def find_by_identifier(cls, identifier: str) -> Optional["User"]:
        """Look up an account by exact email or case-insensitive username."""

        return cls.query.filter(
            or_(
                cls.email == identifier,
                func.lower(cls.username) == identifier.lower(),
            )
        ).first()

    @classmethod
    def email_taken(cls, email: str, exclude_id: int | None = None) -> bool:
        query = cls.query.filter(cls.email == email)
        if exclude_id is not None:
            query = query.filter(cls.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    @classmethod
    def username_taken(cls, username: str, exclude_id: int | None = None) -> bool:
        query = cls.query.filter(func.lower(cls.username) == username.lower())
        if exclude_id is not None:
            query = query.filter(cls.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.username}>"


# Usernames are unique regardless of case.
db.Index("uq_users_username_lower", func.lower(User.username), unique=True)
