from __future__ import annotations

import logging
import threading
from typing import Callable

from smartmarks.client.records import ChangeNotification
from smartmarks.client.store import BOOKMARKS_TABLE, StoreClient, StoreError, StoreTimeout

logger = logging.getLogger(__name__)

STATUS_SUBSCRIBED = "SUBSCRIBED"
STATUS_CHANNEL_ERROR = "CHANNEL_ERROR"
STATUS_TIMED_OUT = "TIMED_OUT"

ChangeHandler = Callable[[ChangeNotification], None]
StatusHandler = Callable[[str, Exception | None], None]


class Subscription:
    """One long-polling subscription to a user's change stream.

    Status callbacks report SUBSCRIBED once the server acknowledges, then
    CHANNEL_ERROR or TIMED_OUT if the stream breaks; a broken subscription
    stops itself and is never reused. ``close()`` stops delivery without
    reporting a status.
    """

    def __init__(
        self,
        store: StoreClient,
        user_id: int,
        on_change: ChangeHandler,
        on_status: StatusHandler | None = None,
        table: str = BOOKMARKS_TABLE,
        event: str = "*",
        wait: float = 20.0,
    ):
        self.store = store
        self.user_id = user_id
        self.table = table
        self.event = event
        self.wait = wait
        self.cursor: int | None = None
        self._on_change = on_change
        self._on_status = on_status
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def closed(self) -> bool:
        return self._stopped.is_set()

    def _report(self, status: str, error: Exception | None = None) -> None:
        if status != STATUS_SUBSCRIBED:
            self._stopped.set()
            logger.warning("change stream for user %s: %s (%s)", self.user_id, status, error)
        if self._on_status is not None:
            self._on_status(status, error)

    def _fail(self, exc: StoreError) -> None:
        if self.closed:
            return
        if isinstance(exc, StoreTimeout):
            self._report(STATUS_TIMED_OUT, exc)
        else:
            self._report(STATUS_CHANNEL_ERROR, exc)

    def open(self) -> bool:
        if self.closed:
            return False
        try:
            payload = self.store.subscribe_changes(
                self.user_id, table=self.table, event=self.event
            )
        except StoreError as exc:
            self._fail(exc)
            return False
        if self.closed:
            return False
        try:
            self.cursor = int(payload.get("cursor") or 0)
        except (AttributeError, TypeError, ValueError) as exc:
            self._report(STATUS_CHANNEL_ERROR, exc)
            return False
        self._report(STATUS_SUBSCRIBED)
        return True

    def poll_once(self, wait: float | None = None) -> bool:
        """Fetch and deliver one page of changes; False once the stream is down."""
        if self.closed or self.cursor is None:
            return False
        try:
            payload = self.store.pull_changes(
                self.user_id,
                since=self.cursor,
                wait=self.wait if wait is None else wait,
                table=self.table,
                event=self.event,
            )
        except StoreError as exc:
            self._fail(exc)
            return False

        try:
            for item in payload.get("events") or []:
                if self.closed:
                    return False
                self._on_change(ChangeNotification.from_dict(item))
            self.cursor = int(payload.get("cursor") or self.cursor)
        except Exception as exc:
            logger.exception("change stream for user %s failed to apply an event", self.user_id)
            if not self.closed:
                self._report(STATUS_CHANNEL_ERROR, exc)
            return False
        return not self.closed

    def _run(self) -> None:
        if not self.open():
            return
        while self.poll_once():
            pass

    def start(self) -> "Subscription":
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"change-stream-{self.table}-{self.user_id}",
        )
        self._thread.start()
        return self

    def close(self) -> None:
        self._stopped.set()


class ChangeFeed:
    def __init__(self, store: StoreClient, wait: float = 20.0, autostart: bool = True):
        self.store = store
        self.wait = wait
        self.autostart = autostart

    def subscribe(
        self,
        user_id: int,
        on_change: ChangeHandler,
        on_status: StatusHandler | None = None,
        table: str = BOOKMARKS_TABLE,
        event: str = "*",
    ) -> Subscription:
        subscription = Subscription(
            self.store,
            user_id,
            on_change,
            on_status=on_status,
            table=table,
            event=event,
            wait=self.wait,
        )
        if self.autostart:
            subscription.start()
        return subscription

    def unsubscribe(self, subscription: Subscription | None) -> None:
        if subscription is not None:
            subscription.close()
