from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from livemarks.backend import RepositoryError
from livemarks.extensions import db
from livemarks.models import Bookmark, BookmarkChange


CHANGE_INSERT = "insert"
CHANGE_DELETE = "delete"


def _log_change(owner_id: str, bookmark_id: str, action: str, payload: dict) -> None:
    db.session.add(
        BookmarkChange(
            owner_id=owner_id,
            bookmark_id=bookmark_id,
            action=action,
            payload=payload,
        )
    )


class BookmarkRepository:
    """Bookmark rows, always scoped to one owner."""

    def insert(self, owner_id: str, title: str, url: str) -> Bookmark:
        try:
            bookmark = Bookmark(owner_id=owner_id, title=title, url=url)
            db.session.add(bookmark)
            db.session.flush()
            _log_change(owner_id, bookmark.id, CHANGE_INSERT, bookmark.as_dict())
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error("Bookmark insert failed for %s: %s", owner_id, exc)
            raise RepositoryError("insert failed") from exc
        return bookmark

    def delete(self, bookmark_id: str, owner_id: str) -> int:
        try:
            rows = Bookmark.query.filter_by(id=bookmark_id, owner_id=owner_id).all()
            for row in rows:
                _log_change(owner_id, row.id, CHANGE_DELETE, {"id": row.id})
                db.session.delete(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(
                "Bookmark delete failed for %s/%s: %s", owner_id, bookmark_id, exc
            )
            raise RepositoryError("delete failed") from exc
        return len(rows)

    def get(self, bookmark_id: str, owner_id: str) -> Bookmark | None:
        try:
            return Bookmark.query.filter_by(id=bookmark_id, owner_id=owner_id).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RepositoryError("select failed") from exc

    def list_for_owner(self, owner_id: str) -> list[Bookmark]:
        try:
            return (
                Bookmark.query.filter_by(owner_id=owner_id)
                .order_by(Bookmark.created_at.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RepositoryError("select failed") from exc

    def latest_cursor(self, owner_id: str) -> int:
        try:
            return (
                db.session.query(db.func.max(BookmarkChange.id))
                .filter_by(owner_id=owner_id)
                .scalar()
                or 0
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RepositoryError("cursor lookup failed") from exc

    def changes_since(
        self, owner_id: str, cursor: int, actions, limit: int = 200
    ) -> list[BookmarkChange]:
        try:
            return (
                BookmarkChange.query.filter_by(owner_id=owner_id)
                .filter(BookmarkChange.id > cursor)
                .filter(BookmarkChange.action.in_(list(actions)))
                .order_by(BookmarkChange.id.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RepositoryError("change log read failed") from exc
