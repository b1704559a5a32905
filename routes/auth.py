"""Authentication blueprint: signup, verification, login, logout and password reset."""

from __future__ import annotations

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_user, logout_user
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User
from services import mail, tokens
from services.mail import MailDeliveryError
from services.tokens import TokenInvalid
from utils.validation import LOGIN_RULES, RESET_PASSWORD_RULES, SIGNUP_RULES, validate

auth_bp = Blueprint("auth", __name__)

INVALID_CREDENTIALS = "Invalid email/username or password"
UNVERIFIED = "Please verify your email before logging in."
FORGOT_MESSAGE = "If that email exists, a reset link has been sent."
TOKEN_INVALID = "Token is invalid or has expired."


def _truthy(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "on", "yes"}


def _conflict_message(email: str, username: str) -> str | None:
    """Return the flash message for an email/username collision, if any."""

    if User.email_taken(email):
        return "Email address already in use."
    if User.username_taken(username):
        return "Username already in use."
    return None


def send_verification(user: User) -> bool:
    """Issue a verification token for ``user`` and mail it. Returns success."""

    token = tokens.issue_token(
        tokens.VERIFY,
        user.email,
        ttl=current_app.config["VERIFY_TOKEN_TTL"],
    )
    try:
        mail.send_verification_email(user, token)
    except MailDeliveryError:
        current_app.logger.exception("Verification email to user %s failed", user.id)
        return False
    return True


def end_session(target: str):
    """Log out, drop the session and its cookies, and redirect to ``target``."""

    logout_user()
    session.clear()
    response = redirect(target)
    response.delete_cookie(current_app.config.get("REMEMBER_COOKIE_NAME", "remember_token"))
    return response


@auth_bp.route("/signup", methods=["GET"])
def signup_form():
    return render_template("auth/signup.html", title="Sign Up")


@auth_bp.route("/signup", methods=["POST"])
def signup():
    """Register a new, unverified account and send its verification link."""

    result = validate(request.form, SIGNUP_RULES)
    if not result.ok:
        return (
            render_template(
                "auth/signup.html",
                title="Sign Up",
                errors=result.errors,
                old_input=request.form,
            ),
            422,
        )

    email = result.data["email"]
    username = result.data["username"]

    conflict = _conflict_message(email, username)
    if conflict:
        flash(conflict, "error")
        return redirect(url_for("auth.signup_form"))

    user = User(email=email, username=username, is_verified=False)
    user.set_password(result.data["password"])
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Another signup claimed the email or username after the pre-check.
        db.session.rollback()
        flash(_conflict_message(email, username) or "Email address already in use.", "error")
        return redirect(url_for("auth.signup_form"))

    current_app.logger.info("Created account %s", user.id)
    if send_verification(user):
        flash("Signup successful! Check your email to verify your account.", "success")
    else:
        flash(
            "Your account was created, but the verification email failed to send. "
            "Please ensure the email address is valid.",
            "warning",
        )
    return redirect(url_for("auth.login"))


@auth_bp.route("/verify", methods=["GET"])
def verify():
    """Mark the account named in a verification token as verified."""

    try:
        claims = tokens.verify_token(request.args.get("token"), tokens.VERIFY)
    except TokenInvalid:
        flash("Verification link is invalid or has expired.", "error")
        return redirect(url_for("auth.login"))

    user = User.find_by_email(claims.get("sub"))
    if user is None:
        flash("Verification link is invalid or has expired.", "error")
        return redirect(url_for("auth.login"))

    if not user.mark_verified():
        flash("Your account is already verified.", "success")
        return redirect(url_for("blog.index"))

    db.session.commit()
    current_app.logger.info("Verified account %s", user.id)

    if current_app.config.get("VERIFY_AUTO_LOGIN", True):
        session.permanent = True
        login_user(user)
        flash("Your email has been verified! You are now logged in.", "success")
    else:
        flash("Your email has been verified! You can now log in.", "success")
    return redirect(url_for("blog.index"))


@auth_bp.route("/login", methods=["GET"])
def login():
    return render_template("auth/login.html", title="Login")


@auth_bp.route("/login", methods=["POST"])
def login_submit():
    """Authenticate by email or username."""

    result = validate(request.form, LOGIN_RULES)
    if not result.ok:
        return (
            render_template(
                "auth/login.html",
                title="Login",
                errors=result.errors,
                old_input=request.form,
            ),
            422,
        )

    user = User.find_by_identifier(result.data["identifier"])
    if user is None or not user.check_password(result.data["password"]):
        flash(INVALID_CREDENTIALS, "error")
        return redirect(url_for("auth.login"))

    if not user.is_verified:
        flash(UNVERIFIED, "error")
        return redirect(url_for("auth.login"))

    remember = _truthy(request.form.get("remember_me"))
    session.permanent = True
    login_user(
        user,
        remember=remember,
        duration=current_app.config["REMEMBER_COOKIE_DURATION"] if remember else None,
    )
    flash(f"Welcome back, {user.username}!", "success")
    return redirect(url_for("blog.index"))


@auth_bp.route("/logout", methods=["GET"])
def logout():
    return end_session(url_for("blog.index"))


@auth_bp.route("/forgot", methods=["GET"])
def forgot_form():
    return render_template("auth/forgot.html", title="Forgot Password")


@auth_bp.route("/forgot", methods=["POST"])
def forgot():
    """Mail a reset link without revealing whether the address is registered."""

    email = (request.form.get("email") or "").strip()
    user = User.find_by_email(email)
    if user is not None:
        token = tokens.issue_token(tokens.RESET_PASSWORD, user.email)
        try:
            mail.send_password_reset_email(user, token)
        except MailDeliveryError:
            current_app.logger.exception("Password reset email to user %s failed", user.id)

    flash(FORGOT_MESSAGE, "success")
    return redirect(url_for("auth.forgot_form"))


@auth_bp.route("/reset", methods=["GET"])
def reset_password():
    token = request.args.get("token")
    if not token:
        flash("Missing token.", "error")
        return redirect(url_for("auth.forgot_form"))
    return render_template("auth/reset.html", title="Reset Password", token=token)


@auth_bp.route("/reset", methods=["POST"])
def reset_password_submit():
    """Store a new password for the account named in a reset token."""

    token = request.form.get("token")
    if not token:
        flash("Missing token.", "error")
        return redirect(url_for("auth.forgot_form"))

    try:
        claims = tokens.verify_token(token, tokens.RESET_PASSWORD)
    except TokenInvalid:
        flash(TOKEN_INVALID, "error")
        return redirect(url_for("auth.forgot_form"))

    user = User.find_by_email(claims.get("sub"))
    if user is None:
        flash(TOKEN_INVALID, "error")
        return redirect(url_for("auth.forgot_form"))

    result = validate(request.form, RESET_PASSWORD_RULES)
    if not result.ok:
        return (
            render_template(
                "auth/reset.html",
                title="Reset Password",
                token=token,
                errors=result.errors,
            ),
            422,
        )

    user.set_password(result.data["password"])
    db.session.commit()
    current_app.logger.info("Password reset for account %s", user.id)

    flash("Password reset successful.", "success")
    if current_user.is_authenticated:
        return redirect(url_for("account.settings"))
    return redirect(url_for("auth.login"))
