"""Seed verified demo accounts and a handful of posts."""

from app import create_app, initialise_database
from models import db
from models.blog_post import BlogPost
from models.user import User

DEMO_USERS = [
    ("alice@example.com", "alice", "AlicePass123"),
    ("bob@example.com", "bob_writes", "BobPass1234"),
]

DEMO_POSTS = [
    ("alice", "Hello, world", "A first post to prove the pipes are connected."),
    ("alice", "On small functions", "Short functions are easier to name, test, and delete."),
    ("bob_writes", "Reading list", "Three books on databases worth a second look."),
]


def get_or_create_user(email: str, username: str, password: str) -> User:
    user = User.find_by_email(email)
    if user is None:
        user = User(email=email, username=username)
        db.session.add(user)
    user.username = username
    user.is_verified = True
    user.set_password(password)
    return user


def main() -> None:
    app = create_app()
    initialise_database(app)
    with app.app_context():
        for email, username, password in DEMO_USERS:
            get_or_create_user(email, username, password)
        db.session.flush()

        created = 0
        for author, title, content in DEMO_POSTS:
            exists = BlogPost.query.filter_by(author=author, title=title).first()
            if exists is None:
                db.session.add(BlogPost(author=author, title=title, content=content))
                created += 1

        db.session.commit()
        print(f"Seeded {len(DEMO_USERS)} users and {created} new posts.")


if __name__ == "__main__":
    main()
