from __future__ import annotations

import logging

from smartmarks.client.records import Identity
from smartmarks.client.store import StoreClient, StoreError

logger = logging.getLogger(__name__)


class IdentityClient:
    def __init__(self, store: StoreClient):
        self.store = store

    def get_current_identity(self) -> Identity | None:
        if not self.store.token:
            return None
        try:
            return Identity.from_dict(self.store.me())
        except StoreError as exc:
            logger.debug("identity lookup failed: %s", exc)
            return None

    def sign_in(self, username: str, password: str) -> tuple[Identity, str]:
        payload = self.store.issue_token(username, password)
        token = payload["token"]
        self.store.set_token(token)
        return Identity.from_dict(payload["user"]), token

    def sign_out(self) -> None:
        if not self.store.token:
            return
        try:
            self.store.revoke_token()
        finally:
            self.store.set_token(None)
