from __future__ import annotations

import httpx

from smartmarks.client.config import ClientConfig
from smartmarks.client.editor import BookmarkEditor
from smartmarks.client.feed import ChangeFeed
from smartmarks.client.identity import IdentityClient
from smartmarks.client.monitor import ConnectionMonitor
from smartmarks.client.notify import Notifier, SessionSignals
from smartmarks.client.reconciler import BookmarkReconciler
from smartmarks.client.store import StoreClient
from smartmarks.services.gate import gate_redirect


class ClientSession:
    """Owns every collaborator a client needs for one signed-in session.

    Components are built from the session rather than reaching for shared
    module state; closing the session releases the HTTP connection pool.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
        notifier: Notifier | None = None,
        autostart: bool = True,
    ):
        self.config = config
        self.http = httpx.Client(
            base_url=config.base_url,
            timeout=config.http_timeout,
            transport=transport,
        )
        self.store = StoreClient(self.http, token=config.token)
        self.identity = IdentityClient(self.store)
        self.feed = ChangeFeed(self.store, wait=config.poll_wait, autostart=autostart)
        self.notifier = notifier or Notifier()
        self.signals = SessionSignals()

    def gate(self, view: str):
        """Resolve the identity and return ``(identity, redirect_view)``."""
        identity = self.identity.get_current_identity()
        return identity, gate_redirect(view, identity)

    def editor(self, user_id: int) -> BookmarkEditor:
        return BookmarkEditor(
            self.store, user_id, notifier=self.notifier, signals=self.signals
        )

    def reconciler(self, user_id: int, optimistic_delete: bool = False) -> BookmarkReconciler:
        return BookmarkReconciler(
            self.store,
            self.feed,
            user_id,
            notifier=self.notifier,
            signals=self.signals,
            optimistic_delete=optimistic_delete,
        )

    def monitor(self, reconciler: BookmarkReconciler, **kwargs) -> ConnectionMonitor:
        kwargs.setdefault("retry_delay", self.config.retry_delay)
        return ConnectionMonitor(reconciler, **kwargs)

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
