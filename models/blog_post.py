"""Blog post model."""

from __future__ import annotations

from datetime import datetime

from . import db

DELETED_AUTHOR = "[Deleted-User]"


class BlogPost(db.Model):
    """A blog post. ``author`` is a copy of a name, not a foreign key."""

    __tablename__ = "blog_posts"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=False)
    author = db.Column(db.String(100), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def is_authored_by(self, user) -> bool:
        if user is None or not getattr(user, "is_authenticated", False):
            return False
        return self.author == user.username

    @classmethod
    def reassign_author(cls, old_author: str, new_author: str) -> int:
        """Rewrite the author of every post by ``old_author``.

        Runs inside the caller's transaction; nothing is committed here.
        """

        return cls.query.filter(cls.author == old_author).update(
            {cls.author: new_author}, synchronize_session=False
        )

    def to_dict(self) -> dict:
        """Serialize the post to a dictionary."""

        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "author": self.author,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<BlogPost {self.id} by {self.author}>"
