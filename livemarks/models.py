import uuid
from datetime import datetime, timezone

from flask_login import UserMixin

from livemarks.extensions import db, login_manager


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_bookmark_id() -> str:
    return str(uuid.uuid4())


class User(UserMixin, db.Model):
    __tablename__ = "users"

    # Subject identifier issued by the OAuth provider.
    id = db.Column(db.String(255), primary_key=True)
    email = db.Column(db.String(320), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_sign_in_at = db.Column(db.DateTime(timezone=True), nullable=True)

    bookmarks = db.relationship("Bookmark", backref="owner", lazy=True)

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, user_id)


class Bookmark(db.Model):
    __tablename__ = "bookmarks"

    id = db.Column(db.String(36), primary_key=True, default=new_bookmark_id)
    owner_id = db.Column(
        db.String(255), db.ForeignKey("users.id"), nullable=False, index=True
    )
    title = db.Column(db.String(512), nullable=False)
    url = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.Index("ix_bookmark_owner_created", "owner_id", "created_at"),)

    def as_dict(self):
        created_at = self.created_at
        # SQLite hands back naive datetimes; stored values are always UTC.
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "owner_id": self.owner_id,
            "created_at": created_at.isoformat(),
        }


class BookmarkChange(db.Model):
    """Append-only change log read by the live feed, one row per insert/delete."""

    __tablename__ = "bookmark_changes"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(255), nullable=False, index=True)
    bookmark_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(16), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.Index("ix_change_owner_cursor", "owner_id", "id"),)
