from __future__ import annotations

import httpx

from smartmarks.client.records import Bookmark

API_PREFIX = "/api/v1"
BOOKMARKS_TABLE = "bookmarks"


class StoreError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StoreTimeout(StoreError):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP {response.status_code}"


def _owner_filter(user_id: int) -> str:
    return f"user_id=eq.{user_id}"


class StoreClient:
    """Thin JSON client for the bookmark API.

    Every call either returns decoded data or raises StoreError carrying the
    server's error message unchanged.
    """

    def __init__(self, http: httpx.Client, token: str | None = None):
        self.http = http
        self.token = token

    def set_token(self, token: str | None) -> None:
        self.token = token

    def _headers(self) -> dict:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self.http.request(
                method, f"{API_PREFIX}{path}", headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as exc:
            raise StoreTimeout(str(exc) or "request timed out") from exc
        except httpx.HTTPError as exc:
            raise StoreError(str(exc) or exc.__class__.__name__) from exc
        if response.status_code >= 400:
            raise StoreError(_error_message(response), response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError("invalid JSON response", response.status_code) from exc

    def issue_token(self, username: str, password: str, token_name: str | None = None):
        payload = {"username": username, "password": password}
        if token_name:
            payload["token_name"] = token_name
        return self._request("POST", "/auth/token", json=payload)

    def revoke_token(self) -> None:
        self._request("DELETE", "/auth/token")

    def me(self) -> dict:
        return self._request("GET", "/me")

    def list_bookmarks(self) -> list[Bookmark]:
        payload = self._request("GET", "/bookmarks")
        return [Bookmark.from_dict(item) for item in payload.get("items") or []]

    def create_bookmark(self, title: str, url: str, user_id: int) -> Bookmark:
        payload = self._request(
            "POST",
            "/bookmarks",
            json={"title": title, "url": url, "user_id": user_id},
        )
        return Bookmark.from_dict(payload)

    def update_bookmark(
        self, bookmark_id: int, title: str | None = None, url: str | None = None
    ) -> Bookmark:
        changes = {}
        if title is not None:
            changes["title"] = title
        if url is not None:
            changes["url"] = url
        payload = self._request("PATCH", f"/bookmarks/{bookmark_id}", json=changes)
        return Bookmark.from_dict(payload)

    def delete_bookmark(self, bookmark_id: int) -> None:
        self._request("DELETE", f"/bookmarks/{bookmark_id}")

    def subscribe_changes(self, user_id: int, table=BOOKMARKS_TABLE, event="*") -> dict:
        return self._request(
            "POST",
            "/changes/subscribe",
            json={"table": table, "filter": _owner_filter(user_id), "event": event},
        )

    def pull_changes(
        self,
        user_id: int,
        since: int,
        wait: float = 0.0,
        table=BOOKMARKS_TABLE,
        event="*",
    ) -> dict:
        params = {
            "since": since,
            "wait": wait,
            "table": table,
            "filter": _owner_filter(user_id),
            "event": event,
        }
        timeout = None
        if wait:
            base = self.http.timeout
            read = (base.read or 0) + wait
            timeout = httpx.Timeout(base.connect, read=read, write=base.write, pool=base.pool)
        kwargs = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        return self._request("GET", "/changes", **kwargs)
