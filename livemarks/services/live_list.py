from __future__ import annotations

from livemarks.services.change_feed import ChangeFeed, FeedEvent, Subscription
from livemarks.services.repository import CHANGE_DELETE, CHANGE_INSERT


LIST_STATE_DETACHED = "detached"
LIST_STATE_LOADING = "loading"
LIST_STATE_EMPTY = "empty"
LIST_STATE_READY = "ready"


class LiveBookmarkList:
    """One user's bookmarks, newest first, kept current from the change feed.

    The list is seeded from a snapshot and then reconciled against insert and
    delete events keyed on the bookmark id. Attaching to a different owner
    drops the previous subscription and every record it produced before the
    new snapshot is applied.
    """

    def __init__(self, feed: ChangeFeed):
        self._feed = feed
        self._subscription: Subscription | None = None
        self.owner_id: str | None = None
        self.items: list[dict] = []
        self.attached = False

    def attach(self, owner_id: str, snapshot, since: int | None = None) -> None:
        self.detach()
        self.owner_id = owner_id
        self.items = [dict(record) for record in snapshot]
        self._subscription = self._feed.subscribe(
            owner_id,
            self._apply,
            events=(CHANGE_INSERT, CHANGE_DELETE),
            since=since,
            on_attached=self._mark_attached,
        )

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
        self._subscription = None
        self.owner_id = None
        self.items = []
        self.attached = False

    def poll(self) -> int:
        if self._subscription is None:
            return 0
        return self._subscription.poll()

    @property
    def state(self) -> str:
        if self._subscription is None:
            return LIST_STATE_DETACHED
        if self.items:
            return LIST_STATE_READY
        if not self.attached:
            return LIST_STATE_LOADING
        return LIST_STATE_EMPTY

    def ids(self) -> list[str]:
        return [item.get("id") for item in self.items]

    def as_dict(self) -> dict:
        return {
            "state": self.state,
            "owner_id": self.owner_id,
            "items": list(self.items),
        }

    def _mark_attached(self) -> None:
        self.attached = True

    def _apply(self, event: FeedEvent) -> None:
        if self._subscription is None or event.owner_id != self.owner_id:
            return
        record_id = event.record.get("id")
        if event.action == CHANGE_INSERT:
            for index, item in enumerate(self.items):
                if item.get("id") == record_id:
                    self.items[index] = dict(event.record)
                    return
            self.items.insert(0, dict(event.record))
        elif event.action == CHANGE_DELETE:
            self.items = [item for item in self.items if item.get("id") != record_id]
