"""Tests covering post CRUD and the statistics page."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from conftest import build_app, login, page_text
from models import db
from models.blog_post import BlogPost


def _post(app, post_id: int) -> BlogPost | None:
    with app.app_context():
        return db.session.get(BlogPost, post_id)


def test_index_without_posts(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "No posts available" in response.get_data(as_text=True)


def test_index_lists_posts_in_store_order(client, make_post):
    make_post(title="First")
    make_post(title="Second")

    body = client.get("/").get_data(as_text=True)

    assert body.index("First") < body.index("Second")


def test_create_requires_login(client):
    response = client.post("/create", data={"title": "T", "content": "C"})

    assert response.status_code == 302
    assert response.location.startswith("/auth/login")


def test_create_attributes_post_to_session_user(app, logged_in_client):
    response = logged_in_client.post(
        "/create",
        data={"title": "New post", "content": "This is a new blog post.", "author": "Someone Else"},
    )

    assert response.status_code == 302
    assert response.location == "/"
    with app.app_context():
        post = BlogPost.query.one()
        assert post.title == "New post"
        assert post.content == "This is a new blog post."
        assert post.author == "writer"


def test_create_strips_html(app, logged_in_client):
    logged_in_client.post(
        "/create",
        data={"title": "<i>Safe</i>", "content": "Hello <script>alert('x')</script>world"},
    )

    with app.app_context():
        post = BlogPost.query.one()
        assert post.title == "Safe"
        assert "<script>" not in post.content
        assert "alert" not in post.content


def test_create_validation_errors_as_json(app, logged_in_client):
    response = logged_in_client.post("/create", json={"title": "", "content": "Body"})

    assert response.status_code == 400
    assert response.get_json() == {
        "errors": [{"msg": "Title is required", "path": "title", "location": "body"}]
    }
    with app.app_context():
        assert BlogPost.query.count() == 0


def test_create_validation_errors_rerender_form(logged_in_client):
    response = logged_in_client.post("/create", data={"title": "x" * 101, "content": "Body"})

    assert response.status_code == 400
    assert "Title must be less than 100 characters" in response.get_data(as_text=True)


def test_create_store_failure_returns_500(logged_in_client, monkeypatch):
    def _fail():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db.session, "commit", _fail)

    response = logged_in_client.post("/create", json={"title": "T", "content": "C"})

    assert response.status_code == 500
    assert response.get_json()["error"] == "Internal Server Error"


def test_anonymous_posting_requires_author():
    app = build_app(ALLOW_ANONYMOUS_POSTS=True)
    client = app.test_client()

    missing = client.post("/create", json={"title": "T", "content": "C"})
    assert missing.status_code == 400
    assert missing.get_json()["errors"][0]["path"] == "author"

    created = client.post("/create", json={"title": "T", "content": "C", "author": "<b>Guest</b>"})
    assert created.status_code == 201
    assert created.get_json()["author"] == "Guest"


def test_show_post(client, make_post):
    post_id = make_post(title="Readable", content="Body text")

    response = client.get(f"/post/{post_id}")

    assert response.status_code == 200
    assert "Readable" in response.get_data(as_text=True)


def test_show_missing_post_is_404(client):
    response = client.get("/post/999")

    assert response.status_code == 404
    assert "Post not found" in response.get_data(as_text=True)


def test_author_can_edit(app, logged_in_client, make_post):
    post_id = make_post(title="Old Title", content="Old content")

    response = logged_in_client.post(
        f"/edit/{post_id}", data={"title": "Updated Title", "content": "Updated content"}
    )

    assert response.status_code == 302
    assert response.location == f"/post/{post_id}"
    post = _post(app, post_id)
    assert post.title == "Updated Title"
    assert post.content == "Updated content"


def test_edit_can_change_a_single_field(app, logged_in_client, make_post):
    post_id = make_post(title="Old Title", content="Old content")

    logged_in_client.post(f"/edit/{post_id}", json={"content": "Only the body"})

    post = _post(app, post_id)
    assert post.title == "Old Title"
    assert post.content == "Only the body"


def test_edit_rejects_blank_title(app, logged_in_client, make_post):
    post_id = make_post(title="Old Title", content="Old content")

    response = logged_in_client.post(f"/edit/{post_id}", json={"title": "  "})

    assert response.status_code == 400
    assert _post(app, post_id).title == "Old Title"


def test_non_author_cannot_edit(app, logged_in_client, make_post):
    post_id = make_post(title="Old Title", content="Old content", author="someone_else")

    response = logged_in_client.post(
        f"/edit/{post_id}", data={"title": "Hijacked", "content": "Hijacked"}
    )

    assert response.status_code == 302
    assert response.location == f"/post/{post_id}"
    assert _post(app, post_id).title == "Old Title"
    assert "You are not authorised to modify this post." in page_text(
        logged_in_client, f"/post/{post_id}"
    )


def test_edit_requires_login(client, make_post):
    post_id = make_post()

    response = client.post(f"/edit/{post_id}", data={"title": "x", "content": "y"})

    assert response.status_code == 302
    assert response.location.startswith("/auth/login")


def test_edit_missing_post_is_404(logged_in_client):
    assert logged_in_client.get("/edit/999").status_code == 404
    assert logged_in_client.post("/edit/999", data={"title": "x"}).status_code == 404


def test_author_can_delete(app, logged_in_client, make_post):
    post_id = make_post()

    response = logged_in_client.post(f"/delete/{post_id}")

    assert response.status_code == 302
    assert response.location == "/"
    assert _post(app, post_id) is None


def test_non_author_cannot_delete(app, logged_in_client, make_post):
    post_id = make_post(author="someone_else")

    response = logged_in_client.post(f"/delete/{post_id}")

    assert response.status_code == 302
    assert _post(app, post_id) is not None


def test_delete_missing_post_is_404(logged_in_client):
    response = logged_in_client.post("/delete/999")

    assert response.status_code == 404
    assert "Post not found" in response.get_data(as_text=True)


def test_stats_without_posts(client):
    body = client.get("/stats").get_data(as_text=True)

    assert "Average Length: 0 characters" in body
    assert "Median Length: 0 characters" in body
    assert "Maximum Length: 0 characters" in body
    assert "Minimum Length: 0 characters" in body


def test_stats_page(client, make_post):
    for content in ("abc", "abcde", "abcdefg"):
        make_post(content=content)

    body = client.get("/stats").get_data(as_text=True)

    assert "Average Length: 5 characters" in body
    assert "Median Length: 5 characters" in body
    assert "Maximum Length: 7 characters" in body
    assert "Minimum Length: 3 characters" in body


def test_stats_as_json(client, make_post):
    for content in ("abc", "abcd", "ab", "abcdef"):
        make_post(content=content)

    response = client.get("/stats", headers={"Accept": "application/json"})

    assert response.get_json() == {
        "average_length": 4,
        "median_length": 4,
        "max_length": 6,
        "min_length": 2,
        "total_length": 15,
    }


def test_logged_in_user_sees_own_edit_link(logged_in_client, make_post):
    post_id = make_post()

    body = logged_in_client.get(f"/post/{post_id}").get_data(as_text=True)

    assert f"/edit/{post_id}" in body


def test_other_visitors_do_not_see_edit_link(client, make_user, make_post):
    make_user(email="other@example.com", username="other")
    login(client, "other")
    post_id = make_post()

    body = client.get(f"/post/{post_id}").get_data(as_text=True)

    assert f"/edit/{post_id}" not in body
