"""Utilities for sending transactional emails."""

from __future__ import annotations

import smtplib
from html import escape
from email.message import EmailMessage

from flask import current_app, request, url_for


class MailDeliveryError(Exception):
    """Raised when an email could not be delivered."""


def build_message(recipient: str, subject: str, text: str, html: str) -> EmailMessage:
    """Construct a multipart text/HTML message."""

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = current_app.config["MAIL_DEFAULT_SENDER"]
    message["To"] = recipient
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def _deliver(message: EmailMessage) -> None:
    config = current_app.config
    with smtplib.SMTP(
        host=config["MAIL_SERVER"],
        port=config["MAIL_PORT"],
        timeout=config["MAIL_TIMEOUT"],
    ) as smtp:
        if config["MAIL_USE_TLS"]:
            smtp.starttls()
        if config.get("MAIL_USERNAME") and config.get("MAIL_PASSWORD"):
            smtp.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"])
        smtp.send_message(message)


def send_email(message: EmailMessage) -> None:
    """Send an email using the configured SMTP server."""

    try:
        _deliver(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailDeliveryError(f"Failed to send email to {message['To']}") from exc
    current_app.logger.info("Sent %r to %s", message["Subject"], message["To"])


def external_link(endpoint: str, **values) -> str:
    """Absolute URL for ``endpoint``, honouring the ``APP_HOST`` override."""

    path = url_for(endpoint, **values)
    host = current_app.config.get("APP_HOST") or request.host
    return f"{request.scheme}://{host}{path}"


def _link_message(recipient, subject, greeting, lines, link, footer=None):
    text_parts = [greeting, *lines, link]
    html_parts = [f"<p>{escape(greeting)}</p>", *(f"<p>{escape(line)}</p>" for line in lines)]
    html_parts.append(f'<p><a href="{link}">{link}</a></p>')
    if footer:
        text_parts.append(footer)
        html_parts.append(f"<p>{footer}</p>")
    return build_message(
        recipient, subject, "\n\n".join(text_parts), "\n".join(html_parts)
    )


def send_verification_email(user, token: str) -> None:
    link = external_link("auth.verify", token=token)
    send_email(
        _link_message(
            user.email,
            "Please verify your email",
            f"Hi {user.username},",
            ["Click below to verify your email (valid for 1 hour):"],
            link,
        )
    )


def send_password_reset_email(user, token: str, endpoint: str = "auth.reset_password") -> None:
    link = external_link(endpoint, token=token)
    send_email(
        _link_message(
            user.email,
            "Password Reset",
            f"Hi {user.username},",
            ["You requested a password reset.", "Click below to reset (valid for 1 hour):"],
            link,
            footer="If you did not request this, please ignore this email.",
        )
    )


def send_email_change_confirmation(user, new_email: str, token: str) -> None:
    link = external_link("account.confirm_update_email", token=token)
    send_email(
        _link_message(
            user.email,
            "Confirm Email Change",
            f"Hello {user.username},",
            [
                f"You requested to change your email address to {new_email}.",
                "Please click the link below to confirm this change:",
            ],
            link,
        )
    )


def send_username_change_confirmation(user, new_username: str, token: str) -> None:
    link = external_link("account.confirm_update_username", token=token)
    send_email(
        _link_message(
            user.email,
            "Confirm Username Change",
            f"Hello {user.username},",
            [
                f"You requested to change your username to {new_username}.",
                "Please click the link below to confirm this change:",
            ],
            link,
        )
    )


def send_account_deletion_confirmation(user, token: str) -> None:
    link = external_link("account.confirm_delete_account", token=token)
    send_email(
        _link_message(
            user.email,
            "Confirm Account Deletion",
            f"Hello {user.username},",
            [
                "You requested to delete your account. This action is irreversible.",
                "Please click the link below to confirm account deletion:",
            ],
            link,
        )
    )
