from __future__ import annotations

import logging
import threading

from blinker import Signal

logger = logging.getLogger(__name__)


class Notifier:
    """Collects user-facing notifications, the client's stand-in for toasts."""

    def __init__(self, echo=None):
        self._lock = threading.Lock()
        self._echo = echo
        self.messages: list[tuple[str, str]] = []

    def _push(self, level: str, message: str) -> None:
        with self._lock:
            self.messages.append((level, message))
        if self._echo is not None:
            logger.debug("%s: %s", level, message)
            self._echo(level, message)
        elif level == "error":
            logger.warning(message)
        else:
            logger.info(message)

    def success(self, message: str) -> None:
        self._push("success", message)

    def error(self, message: str) -> None:
        self._push("error", message)

    def last(self) -> tuple[str, str] | None:
        with self._lock:
            return self.messages[-1] if self.messages else None


class SessionSignals:
    """Same-session notifications between components of one client session."""

    def __init__(self):
        self.bookmark_added = Signal("bookmark-added")
