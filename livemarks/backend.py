from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from flask import current_app

if TYPE_CHECKING:
    from livemarks.services.change_feed import ChangeFeed
    from livemarks.services.repository import BookmarkRepository
    from livemarks.services.session_store import OAuthSessionStore


EXTENSION_KEY = "livemarks.backend"


class BackendError(Exception):
    pass


class SessionExchangeError(BackendError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RepositoryError(BackendError):
    pass


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: str | None = None
    name: str | None = None


@dataclass
class Backend:
    """Handles on the hosted collaborators: sessions, bookmark storage and the change feed."""

    sessions: OAuthSessionStore
    bookmarks: BookmarkRepository
    feed: ChangeFeed


def build_backend(app) -> Backend:
    from livemarks.services.change_feed import ChangeFeed
    from livemarks.services.repository import BookmarkRepository
    from livemarks.services.session_store import OAuthSessionStore

    repository = BookmarkRepository()
    return Backend(
        sessions=OAuthSessionStore.from_config(app.config),
        bookmarks=repository,
        feed=ChangeFeed(repository),
    )


def get_backend() -> Backend:
    return current_app.extensions[EXTENSION_KEY]
