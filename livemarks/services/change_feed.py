from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable

from livemarks.services.repository import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    BookmarkRepository,
)


DEFAULT_EVENTS = (CHANGE_INSERT, CHANGE_DELETE)


@dataclass(frozen=True)
class FeedEvent:
    cursor: int
    action: str
    owner_id: str
    record: dict = field(default_factory=dict)


class Subscription:
    def __init__(
        self,
        feed: ChangeFeed,
        owner_id: str,
        on_event: Callable[[FeedEvent], None],
        events,
        cursor: int,
        on_attached: Callable[[], None] | None = None,
    ):
        self.feed = feed
        self.owner_id = owner_id
        self.events = tuple(events)
        self.cursor = cursor
        self.attached = False
        self.closed = False
        self._on_event = on_event
        self._on_attached = on_attached

    def poll(self) -> int:
        """Deliver pending events in cursor order; the first call confirms attachment."""
        if self.closed:
            return 0
        if not self.attached:
            self.attached = True
            if self._on_attached:
                self._on_attached()

        changes = self.feed.repository.changes_since(
            self.owner_id, self.cursor, self.events
        )
        delivered = 0
        for change in changes:
            if self.closed:
                break
            self.cursor = change.id
            record = dict(change.payload or {})
            record.setdefault("id", change.bookmark_id)
            self._on_event(
                FeedEvent(
                    cursor=change.id,
                    action=change.action,
                    owner_id=change.owner_id,
                    record=record,
                )
            )
            delivered += 1
        return delivered

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed._discard(self)


class ChangeFeed:
    """Row-level insert/delete notifications read from the bookmark change log."""

    def __init__(self, repository: BookmarkRepository):
        self.repository = repository
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        owner_id: str,
        on_event: Callable[[FeedEvent], None],
        events=DEFAULT_EVENTS,
        since: int | None = None,
        on_attached: Callable[[], None] | None = None,
    ) -> Subscription:
        cursor = since if since is not None else self.repository.latest_cursor(owner_id)
        subscription = Subscription(
            self,
            owner_id=owner_id,
            on_event=on_event,
            events=events,
            cursor=cursor,
            on_attached=on_attached,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def poll(self) -> int:
        with self._lock:
            subscriptions = list(self._subscriptions)
        return sum(subscription.poll() for subscription in subscriptions)

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
