"""Blog blueprint: post listing, CRUD and content statistics."""

from __future__ import annotations

from flask import (
    Blueprint,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import InternalServerError

from models import db
from models.blog_post import BlogPost
from services.post_stats import content_length_stats
from utils.request_validation import get_payload, wants_json
from utils.validation import (
    POST_AUTHOR_RULES,
    POST_CREATE_RULES,
    POST_EDIT_RULES,
    validate,
)

blog_bp = Blueprint("blog", __name__)

NOT_FOUND = "Post not found"
NOT_AUTHORISED = "You are not authorised to modify this post."


def _get_post_or_404(post_id: int) -> BlogPost:
    return BlogPost.query.get_or_404(post_id, description=NOT_FOUND)


def _anonymous_posting() -> bool:
    return bool(current_app.config.get("ALLOW_ANONYMOUS_POSTS"))


def _require_author(post: BlogPost):
    """Return a redirect response unless the current user wrote ``post``."""

    if not post.is_authored_by(current_user):
        flash(NOT_AUTHORISED, "error")
        return redirect(url_for("blog.show_post", post_id=post.id))
    return None


def _validation_failed(template: str, errors: list[dict], **context):
    if wants_json(request):
        return jsonify({"errors": errors}), 400
    return render_template(template, errors=errors, **context), 400


@blog_bp.route("/", methods=["GET"])
def index():
    posts = BlogPost.query.all()
    if wants_json(request):
        return jsonify({"results": [post.to_dict() for post in posts], "count": len(posts)})
    return render_template("index.html", title="Blog Posts", posts=posts)


@blog_bp.route("/create", methods=["GET"])
def create_form():
    if not current_user.is_authenticated and not _anonymous_posting():
        return current_app.login_manager.unauthorized()
    return render_template("create.html", title="Create Post")


@blog_bp.route("/create", methods=["POST"])
def create_post():
    """Create a post authored by the logged-in user (or a named guest)."""

    if not current_user.is_authenticated and not _anonymous_posting():
        return current_app.login_manager.unauthorized()

    payload = get_payload(request)
    schema = POST_CREATE_RULES
    if not current_user.is_authenticated:
        schema = (*POST_CREATE_RULES, POST_AUTHOR_RULES)
    result = validate(payload, schema)
    if not result.ok:
        return _validation_failed(
            "create.html", result.errors, title="Create Post", old_input=payload
        )

    author = (
        current_user.username if current_user.is_authenticated else result.data["author"]
    )
    post = BlogPost(
        title=result.data["title"],
        content=result.data["content"],
        author=author,
    )
    try:
        db.session.add(post)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create post")
        raise InternalServerError("Internal Server Error") from exc

    if wants_json(request):
        return jsonify(post.to_dict()), 201
    return redirect(url_for("blog.index"))


@blog_bp.route("/post/<int:post_id>", methods=["GET"])
def show_post(post_id: int):
    post = _get_post_or_404(post_id)
    if wants_json(request):
        return jsonify(post.to_dict())
    return render_template("post.html", title=post.title, post=post)


@blog_bp.route("/edit/<int:post_id>", methods=["GET"])
@login_required
def edit_form(post_id: int):
    post = _get_post_or_404(post_id)
    denied = _require_author(post)
    if denied is not None:
        return denied
    return render_template("edit.html", title="Edit Post", post=post)


@blog_bp.route("/edit/<int:post_id>", methods=["POST"])
@login_required
def edit_post(post_id: int):
    """Update a post's title and/or content; only its author may do so."""

    post = _get_post_or_404(post_id)
    denied = _require_author(post)
    if denied is not None:
        return denied

    payload = get_payload(request)
    result = validate(payload, POST_EDIT_RULES)
    if not result.ok:
        return _validation_failed("edit.html", result.errors, title="Edit Post", post=post)

    for field in ("title", "content"):
        if field in result.data:
            setattr(post, field, result.data[field])
    db.session.commit()

    if wants_json(request):
        return jsonify(post.to_dict())
    return redirect(url_for("blog.show_post", post_id=post.id))


@blog_bp.route("/delete/<int:post_id>", methods=["POST"])
@login_required
def delete_post(post_id: int):
    post = _get_post_or_404(post_id)
    denied = _require_author(post)
    if denied is not None:
        return denied

    db.session.delete(post)
    db.session.commit()
    current_app.logger.info("Post %s deleted by %s", post_id, current_user.username)

    if wants_json(request):
        return "", 204
    return redirect(url_for("blog.index"))


@blog_bp.route("/stats", methods=["GET"])
def stats():
    lengths = [len(content) for (content,) in db.session.query(BlogPost.content)]
    summary = content_length_stats(lengths)
    if wants_json(request):
        return jsonify(summary)
    return render_template("stats.html", title="Post Statistics", **summary)
