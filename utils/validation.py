"""Declarative field validation.

Each field is described by an ordered list of steps. A step is a pure function
``value -> (value, message)``: sanitising steps return a new value and no
message, checks return the value unchanged and either ``None`` or an error
message. The first message produced for a field ends that field's chain.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from email_validator import EmailNotValidError, validate_email

from utils.sanitize import strip_html

Step = Callable[[str], "tuple[str, Optional[str]]"]

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
PASSWORD_MIN_LENGTH = 8


@dataclass(frozen=True)
class FieldRules:
    name: str
    steps: tuple[Step, ...]
    optional: bool = False


@dataclass
class ValidationResult:
    data: dict = field(default_factory=dict)
    errors: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def rules(name: str, *steps: Step, optional: bool = False) -> FieldRules:
    return FieldRules(name=name, steps=tuple(steps), optional=optional)


def validate(
    payload: dict, schema: Iterable[FieldRules], location: str = "body"
) -> ValidationResult:
    """Run every field's chain against ``payload``."""

    result = ValidationResult()
    for field_rules in schema:
        raw = payload.get(field_rules.name)
        if raw is None and field_rules.optional:
            continue
        value = "" if raw is None else str(raw)
        for step in field_rules.steps:
            value, message = step(value)
            if message is not None:
                result.errors.append(
                    {"msg": message, "path": field_rules.name, "location": location}
                )
                break
        else:
            result.data[field_rules.name] = value
    return result


# Steps


def trim(value: str) -> tuple[str, None]:
    return value.strip(), None


def sanitize(value: str) -> tuple[str, None]:
    return strip_html(value).strip(), None


def required(message: str) -> Step:
    def check(value: str):
        return value, None if value else message

    return check


def max_length(limit: int, message: str) -> Step:
    def check(value: str):
        return value, None if len(value) <= limit else message

    return check


def min_length(limit: int, message: str) -> Step:
    def check(value: str):
        return value, None if len(value) >= limit else message

    return check


def length_between(lower: int, upper: int, message: str) -> Step:
    def check(value: str):
        return value, None if lower <= len(value) <= upper else message

    return check


def matches(pattern: re.Pattern, message: str) -> Step:
    def check(value: str):
        return value, None if pattern.match(value) else message

    return check


def email_address(message: str) -> Step:
    def check(value: str):
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            return value, message
        return value, None

    return check


# Schemas

_TITLE_MAX = "Title must be less than 100 characters"
_AUTHOR_MAX = "Author name must be less than 100 characters"

POST_CREATE_RULES = (
    rules("title", trim, sanitize, required("Title is required"), max_length(100, _TITLE_MAX)),
    rules("content", trim, sanitize, required("Content is required")),
)

POST_AUTHOR_RULES = rules(
    "author", trim, sanitize, required("Author is required"), max_length(100, _AUTHOR_MAX)
)

POST_EDIT_RULES = (
    rules(
        "title",
        trim,
        sanitize,
        required("Title must not be empty"),
        max_length(100, _TITLE_MAX),
        optional=True,
    ),
    rules("content", trim, sanitize, required("Content must not be empty"), optional=True),
)


def _username_rules(name: str) -> FieldRules:
    return rules(
        name,
        trim,
        required("Username is required."),
        length_between(3, 30, "Username must be between 3 and 30 characters."),
        matches(
            USERNAME_PATTERN,
            "Username can only contain letters, numbers, and underscores.",
        ),
    )


def _email_rules(name: str) -> FieldRules:
    return rules(
        name,
        trim,
        required("Email is required."),
        email_address("Must be a valid email address"),
    )


def _password_rules(name: str) -> FieldRules:
    return rules(
        name,
        required("Password is required."),
        min_length(
            PASSWORD_MIN_LENGTH,
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.",
        ),
    )


SIGNUP_RULES = (
    _email_rules("email"),
    _username_rules("username"),
    _password_rules("password"),
)

LOGIN_RULES = (
    rules("identifier", trim, required("Email or username is required.")),
    rules("password", required("Password is required.")),
)

RESET_PASSWORD_RULES = (_password_rules("password"),)

UPDATE_EMAIL_RULES = (_email_rules("new_email"),)

UPDATE_USERNAME_RULES = (_username_rules("new_username"),)
