"""Account settings blueprint.

Every change here follows the same two steps: the POST handler mails a signed
confirmation link, and the GET handler behind that link re-checks the current
state of the database before applying the change.
"""

from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import DELETED_AUTHOR, db
from models.blog_post import BlogPost
from models.user import User
from routes.auth import TOKEN_INVALID, end_session, send_verification
from services import mail, tokens
from services.mail import MailDeliveryError
from services.tokens import TokenInvalid
from utils.validation import UPDATE_EMAIL_RULES, UPDATE_USERNAME_RULES, validate

account_bp = Blueprint("account", __name__)

CONFIRMATION_SENT = "A confirmation email has been sent to your email address."
EMAIL_IN_USE = "Email already in use by another account."
USERNAME_IN_USE = "Username already in use."
ALREADY_YOUR_EMAIL = "That is already your email address."


def _settings_redirect():
    return redirect(url_for("account.settings"))


def _claims_and_user(purpose: str):
    """Decode the request's token and load its account.

    The token must name the account by both id and email, so a link cannot act
    on a different account that later reuses the id. Returns ``(claims, user)``
    or ``(None, None)`` after flashing the reason.
    """

    token = request.args.get("token")
    if not token:
        flash("Missing token.", "error")
        return None, None
    try:
        claims = tokens.verify_token(token, purpose)
        user_id = tokens.subject_id(claims)
    except TokenInvalid:
        flash(TOKEN_INVALID, "error")
        return None, None

    user = db.session.get(User, user_id)
    if user is None:
        flash("User not found.", "error")
        return None, None
    if claims.get("email") != user.email:
        flash(TOKEN_INVALID, "error")
        return None, None
    return claims, user


def _mail_failed():
    current_app.logger.exception("Confirmation email to user %s failed", current_user.id)
    flash("We could not send the confirmation email. Please try again later.", "error")
    return _settings_redirect()


@account_bp.route("/account-settings", methods=["GET"])
@login_required
def settings():
    return render_template("auth/account_settings.html", title="Account Settings", user=current_user)


# Email


@account_bp.route("/update-email", methods=["GET"])
@login_required
def update_email_form():
    return render_template("auth/update_email.html", title="Update Email Address")


@account_bp.route("/update-email", methods=["POST"])
@login_required
def update_email():
    result = validate(request.form, UPDATE_EMAIL_RULES)
    if not result.ok:
        return (
            render_template(
                "auth/update_email.html",
                title="Update Email Address",
                errors=result.errors,
            ),
            422,
        )

    new_email = result.data["new_email"]
    if new_email == current_user.email:
        flash(ALREADY_YOUR_EMAIL, "error")
        return redirect(url_for("account.update_email_form"))
    if User.email_taken(new_email, exclude_id=current_user.id):
        flash(EMAIL_IN_USE, "error")
        return redirect(url_for("account.update_email_form"))

    token = tokens.issue_token(
        tokens.UPDATE_EMAIL, current_user.id, email=current_user.email, new_email=new_email
    )
    try:
        mail.send_email_change_confirmation(current_user, new_email, token)
    except MailDeliveryError:
        return _mail_failed()

    flash("A confirmation email has been sent to your current email address.", "success")
    return _settings_redirect()


@account_bp.route("/confirm-update-email", methods=["GET"])
def confirm_update_email():
    claims, user = _claims_and_user(tokens.UPDATE_EMAIL)
    if user is None:
        return _settings_redirect()

    new_email = claims.get("new_email")
    if not new_email:
        flash(TOKEN_INVALID, "error")
        return _settings_redirect()
    if User.email_taken(new_email, exclude_id=user.id):
        flash(EMAIL_IN_USE, "error")
        return _settings_redirect()

    user.email = new_email
    user.is_verified = False
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        flash(EMAIL_IN_USE, "error")
        return _settings_redirect()

    current_app.logger.info("Account %s changed its email address", user.id)
    if send_verification(user):
        flash("Email updated successfully. Please verify your new email address.", "success")
    else:
        flash(
            "Email updated, but the verification email failed to send.",
            "warning",
        )
    return _settings_redirect()


# Username


@account_bp.route("/update-username", methods=["GET"])
@login_required
def update_username_form():
    return render_template("auth/update_username.html", title="Update Username")


@account_bp.route("/update-username", methods=["POST"])
@login_required
def update_username():
    result = validate(request.form, UPDATE_USERNAME_RULES)
    if not result.ok:
        return (
            render_template(
                "auth/update_username.html",
                title="Update Username",
                errors=result.errors,
            ),
            422,
        )

    new_username = result.data["new_username"]
    if User.username_taken(new_username, exclude_id=current_user.id):
        flash(USERNAME_IN_USE, "error")
        return redirect(url_for("account.update_username_form"))

    token = tokens.issue_token(
        tokens.UPDATE_USERNAME,
        current_user.id,
        email=current_user.email,
        new_username=new_username,
    )
    try:
        mail.send_username_change_confirmation(current_user, new_username, token)
    except MailDeliveryError:
        return _mail_failed()

    flash("A confirmation email has been sent to your current email address.", "success")
    return _settings_redirect()


@account_bp.route("/confirm-update-username", methods=["GET"])
def confirm_update_username():
    claims, user = _claims_and_user(tokens.UPDATE_USERNAME)
    if user is None:
        return _settings_redirect()

    new_username = claims.get("new_username")
    if not new_username:
        flash(TOKEN_INVALID, "error")
        return _settings_redirect()
    if User.username_taken(new_username, exclude_id=user.id):
        flash(USERNAME_IN_USE, "error")
        return _settings_redirect()

    old_username = user.username
    try:
        user.username = new_username
        moved = BlogPost.reassign_author(old_username, new_username)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        flash(USERNAME_IN_USE, "error")
        return _settings_redirect()

    current_app.logger.info(
        "Account %s renamed; %d post(s) reattributed", user.id, moved
    )
    flash("Username updated successfully.", "success")
    return _settings_redirect()


# Password


@account_bp.route("/update-password", methods=["GET"])
@login_required
def update_password_form():
    return render_template("auth/update_password.html", title="Update Password")


@account_bp.route("/update-password", methods=["POST"])
@login_required
def update_password():
    token = tokens.issue_token(tokens.RESET_PASSWORD, current_user.email)
    try:
        mail.send_password_reset_email(
            current_user, token, endpoint="account.confirm_update_password"
        )
    except MailDeliveryError:
        return _mail_failed()

    flash(CONFIRMATION_SENT, "success")
    return _settings_redirect()


@account_bp.route("/confirm-update-password", methods=["GET"])
def confirm_update_password():
    token = request.args.get("token")
    try:
        claims = tokens.verify_token(token, tokens.RESET_PASSWORD)
    except TokenInvalid:
        flash(TOKEN_INVALID, "error")
        return _settings_redirect()
    if User.find_by_email(claims.get("sub")) is None:
        flash("User not found.", "error")
        return _settings_redirect()
    return render_template("auth/reset.html", title="Update Password", token=token)


# Deletion


@account_bp.route("/delete-account", methods=["GET"])
@login_required
def delete_account_form():
    return render_template("auth/delete_account.html", title="Delete Account")


@account_bp.route("/delete-account", methods=["POST"])
@login_required
def delete_account():
    token = tokens.issue_token(
        tokens.DELETE_ACCOUNT, current_user.id, email=current_user.email
    )
    try:
        mail.send_account_deletion_confirmation(current_user, token)
    except MailDeliveryError:
        return _mail_failed()

    flash(CONFIRMATION_SENT, "success")
    return _settings_redirect()


@account_bp.route("/confirm-delete-account", methods=["GET"])
def confirm_delete_account():
    """Anonymise the account's posts, delete it and end the session."""

    _, user = _claims_and_user(tokens.DELETE_ACCOUNT)
    if user is None:
        return _settings_redirect()

    user_id = user.id
    try:
        moved = BlogPost.reassign_author(user.username, DELETED_AUTHOR)
        db.session.delete(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Deleting account %s failed", user_id)
        flash("Internal server error.", "error")
        return _settings_redirect()

    current_app.logger.info("Deleted account %s; %d post(s) anonymised", user_id, moved)
    return end_session(url_for("blog.index"))
