from __future__ import annotations

import threading

from smartmarks.client.notify import Notifier, SessionSignals
from smartmarks.client.records import Bookmark
from smartmarks.client.store import StoreClient, StoreError
from smartmarks.services.common import validate_bookmark_fields


class BookmarkEditor:
    def __init__(
        self,
        store: StoreClient,
        user_id: int,
        notifier: Notifier | None = None,
        signals: SessionSignals | None = None,
    ):
        self.store = store
        self.user_id = user_id
        self.notifier = notifier or Notifier()
        self.signals = signals
        self.title = ""
        self.url = ""
        self.submitting = False
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def can_submit(self) -> bool:
        return not self.submitting and bool(self.title.strip()) and bool(self.url.strip())

    def submit(self) -> Bookmark | None:
        if self._closed:
            return None
        error = validate_bookmark_fields(self.title, self.url)
        if error:
            self.notifier.error(error)
            return None

        with self._lock:
            if self.submitting:
                return None
            self.submitting = True
        try:
            bookmark = self.store.create_bookmark(
                self.title.strip(), self.url.strip(), self.user_id
            )
        except StoreError as exc:
            if not self._closed:
                self.notifier.error(f"Failed to add bookmark: {exc.message}")
            return None
        finally:
            with self._lock:
                self.submitting = False

        # The record exists either way; only the view updates are dropped.
        if self._closed:
            return bookmark
        self.title = ""
        self.url = ""
        self.notifier.success("Bookmark added successfully!")
        if self.signals is not None:
            self.signals.bookmark_added.send(self, bookmark=bookmark)
        return bookmark

    def close(self) -> None:
        """Detach from the view; a create still in flight no longer touches it."""
        self._closed = True
