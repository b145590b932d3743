from __future__ import annotations

import logging
import threading

from smartmarks.client.feed import (
    STATUS_CHANNEL_ERROR,
    STATUS_SUBSCRIBED,
    STATUS_TIMED_OUT,
)
from smartmarks.client.reconciler import BookmarkReconciler

logger = logging.getLogger(__name__)

CONNECTING = "connecting"
CONNECTED = "connected"
DISCONNECTED = "disconnected"

DEFAULT_RETRY_DELAY = 3.0


class ConnectionMonitor:
    """Tracks the health of a reconciler's subscription and reconnects it.

    State moves connecting -> connected on acknowledgment, to disconnected on
    error, timeout or going offline, and back to connecting on a retry, the
    view becoming visible again or the network coming back. Errors arm a
    single retry timer; a pending timer is always cancelled before a new
    attempt so attempts never overlap.
    """

    def __init__(
        self,
        reconciler: BookmarkReconciler,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timer_factory=threading.Timer,
        on_state_change=None,
    ):
        self.reconciler = reconciler
        self.retry_delay = retry_delay
        self.timer_factory = timer_factory
        self.on_state_change = on_state_change
        self.state = CONNECTING
        self.attempts = 0
        self._timer = None
        self._lost_connection = False
        self._online = True
        self._stopped = False
        self._lock = threading.RLock()

    def _set_state(self, state: str) -> None:
        with self._lock:
            if self.state == state:
                return
            self.state = state
        logger.info("live updates %s", state)
        if self.on_state_change is not None:
            self.on_state_change(state)

    def _cancel_timer(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def connect(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._cancel_timer()
            self.attempts += 1
            attempt = self.attempts
        self._set_state(CONNECTING)
        self.reconciler.subscribe(
            on_status=lambda status, error=None: self.handle_status(
                status, error, attempt=attempt
            )
        )

    start = connect

    def retry(self) -> None:
        """Manual retry; reconnects even if a subscription looks healthy."""
        self.connect()

    def handle_status(self, status: str, error=None, attempt: int | None = None) -> None:
        with self._lock:
            if self._stopped:
                return
            # Late callbacks from a torn-down attempt are ignored.
            if attempt is not None and attempt != self.attempts:
                return
        if status == STATUS_SUBSCRIBED:
            with self._lock:
                resync = self._lost_connection
                self._lost_connection = False
            self._set_state(CONNECTED)
            if resync:
                self.reconciler.load()
            return
        if status in {STATUS_CHANNEL_ERROR, STATUS_TIMED_OUT}:
            logger.warning("subscription failed with %s: %s", status, error)
            self._disconnect()
            self._schedule_retry()

    def _disconnect(self) -> None:
        with self._lock:
            self._lost_connection = True
        self._set_state(DISCONNECTED)

    def _schedule_retry(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._cancel_timer()
            timer = self.timer_factory(self.retry_delay, self._retry_from_timer)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _retry_from_timer(self) -> None:
        with self._lock:
            if self._stopped or self.state != DISCONNECTED or not self._online:
                return
        self.connect()

    def on_visibility_change(self, visible: bool) -> None:
        if visible and self.state == DISCONNECTED and self._online:
            self.connect()

    def on_online(self) -> None:
        with self._lock:
            self._online = True
        if self.state == DISCONNECTED:
            self.connect()

    def on_offline(self) -> None:
        with self._lock:
            self._online = False
        self._cancel_timer()
        self.reconciler.unsubscribe()
        self._disconnect()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
        self._cancel_timer()
        self.reconciler.unsubscribe()
