from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from smartmarks.client.feed import ChangeFeed, StatusHandler, Subscription
from smartmarks.client.notify import Notifier, SessionSignals
from smartmarks.client.records import Bookmark, ChangeNotification
from smartmarks.client.store import BOOKMARKS_TABLE, StoreClient, StoreError

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(items: list[Bookmark]) -> list[Bookmark]:
    return sorted(items, key=lambda item: (item.created_at or _EPOCH, item.id), reverse=True)


class BookmarkReconciler:
    """Keeps one user's bookmark list in step with the store.

    The list is loaded as a snapshot and then patched from the change stream.
    Inserts are prepended without re-sorting, so a record delivered late can
    sit out of ``created_at`` order until the next ``load()``.
    """

    def __init__(
        self,
        store: StoreClient,
        feed: ChangeFeed,
        user_id: int,
        notifier: Notifier | None = None,
        signals: SessionSignals | None = None,
        optimistic_delete: bool = False,
    ):
        self.store = store
        self.feed = feed
        self.user_id = user_id
        self.notifier = notifier or Notifier()
        self.signals = signals
        self.optimistic_delete = optimistic_delete
        self.loading = True
        self._items: list[Bookmark] = []
        self._deleting: set[int] = set()
        self._subscription: Subscription | None = None
        self._lock = threading.RLock()
        self._closed = False
        if self.signals is not None:
            self.signals.bookmark_added.connect(self._on_bookmark_added, weak=False)

    @property
    def bookmarks(self) -> list[Bookmark]:
        with self._lock:
            return list(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def is_deleting(self, bookmark_id: int) -> bool:
        with self._lock:
            return bookmark_id in self._deleting

    def load(self) -> bool:
        """Replace the list with a fresh snapshot; False when the fetch failed."""
        user_id = self.user_id
        with self._lock:
            self.loading = True
        try:
            items = self.store.list_bookmarks()
        except StoreError as exc:
            if not self._closed:
                self.notifier.error(f"Failed to fetch bookmarks: {exc.message}")
            items = None
        with self._lock:
            if self._closed or user_id != self.user_id:
                return False
            if items is not None:
                self._items = _newest_first(
                    [item for item in items if item.user_id == user_id]
                )
            self.loading = False
        return items is not None

    def apply_change(self, change: ChangeNotification) -> None:
        with self._lock:
            if self._closed or change.table != BOOKMARKS_TABLE:
                return
            if change.user_id != self.user_id:
                return
            if change.kind == "INSERT" and change.new is not None:
                if any(item.id == change.new.id for item in self._items):
                    return
                self._items.insert(0, change.new)
            elif change.kind == "UPDATE" and change.new is not None:
                self._items = [
                    change.new if item.id == change.new.id else item
                    for item in self._items
                ]
            elif change.kind == "DELETE" and change.record_id is not None:
                self._items = [
                    item for item in self._items if item.id != change.record_id
                ]
            else:
                logger.debug("ignoring change notification %r", change)

    def subscribe(self, on_status: StatusHandler | None = None) -> Subscription | None:
        """Open the change subscription, releasing any previous one first."""
        with self._lock:
            if self._closed:
                return None
            self.unsubscribe()
            self._subscription = self.feed.subscribe(
                self.user_id, self.apply_change, on_status=on_status
            )
            return self._subscription

    def unsubscribe(self) -> None:
        with self._lock:
            subscription, self._subscription = self._subscription, None
        self.feed.unsubscribe(subscription)

    def switch_user(self, user_id: int, on_status: StatusHandler | None = None) -> None:
        with self._lock:
            self.unsubscribe()
            self.user_id = user_id
            self._items = []
            self._deleting.clear()
        self.load()
        self.subscribe(on_status=on_status)

    def delete(self, bookmark_id: int) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._deleting.add(bookmark_id)
        try:
            self.store.delete_bookmark(bookmark_id)
        except StoreError as exc:
            if not self._closed:
                self.notifier.error(f"Failed to delete: {exc.message}")
            return False
        finally:
            with self._lock:
                self._deleting.discard(bookmark_id)

        if self._closed:
            return True
        if self.optimistic_delete:
            with self._lock:
                self._items = [item for item in self._items if item.id != bookmark_id]
        self.notifier.success("Bookmark deleted!")
        return True

    def _on_bookmark_added(self, sender, **kwargs) -> None:
        if not self._closed:
            self.load()

    def close(self) -> None:
        self.unsubscribe()
        with self._lock:
            self._closed = True
        if self.signals is not None:
            self.signals.bookmark_added.disconnect(self._on_bookmark_added)
