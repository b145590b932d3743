import threading

import httpx

from smartmarks.client.feed import (
    STATUS_CHANNEL_ERROR,
    STATUS_SUBSCRIBED,
    STATUS_TIMED_OUT,
    ChangeFeed,
)
from smartmarks.client.store import StoreClient


def _event(cursor, kind="INSERT", bookmark_id=1):
    record = {
        "id": bookmark_id,
        "user_id": 7,
        "title": "Example",
        "url": "https://example.com",
        "created_at": "2026-01-01T00:00:00+00:00",
    }
    return {
        "cursor": cursor,
        "table": "bookmarks",
        "kind": kind,
        "new": record if kind != "DELETE" else None,
        "old": record if kind != "INSERT" else None,
        "commit_timestamp": "2026-01-01T00:00:00+00:00",
    }


def _store(handler):
    http = httpx.Client(base_url="http://testserver", transport=httpx.MockTransport(handler))
    return StoreClient(http, token="sm_test")


def _collect():
    changes, statuses = [], []
    return changes, statuses, changes.append, lambda status, error=None: statuses.append(
        (status, error)
    )


def test_open_then_poll_delivers_changes_and_advances_cursor():
    seen_requests = []

    def handler(request):
        seen_requests.append(request)
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 4})
        return httpx.Response(
            200, json={"events": [_event(5), _event(6, "DELETE")], "cursor": 6}
        )

    changes, statuses, on_change, on_status = _collect()
    feed = ChangeFeed(_store(handler), wait=0, autostart=False)
    subscription = feed.subscribe(7, on_change, on_status=on_status)

    assert subscription.open() is True
    assert statuses == [(STATUS_SUBSCRIBED, None)]
    assert subscription.poll_once() is True

    assert [change.kind for change in changes] == ["INSERT", "DELETE"]
    assert changes[0].new.id == 1
    assert changes[1].new is None
    assert changes[1].record_id == 1
    assert subscription.cursor == 6

    pull = seen_requests[-1]
    assert pull.headers["Authorization"] == "Bearer sm_test"
    assert pull.url.params["since"] == "4"
    assert pull.url.params["filter"] == "user_id=eq.7"
    assert pull.url.params["table"] == "bookmarks"


def test_server_error_reports_channel_error_and_stops():
    def handler(request):
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 0})
        return httpx.Response(500, json={"error": "stream unavailable"})

    changes, statuses, on_change, on_status = _collect()
    subscription = ChangeFeed(_store(handler), wait=0, autostart=False).subscribe(
        7, on_change, on_status=on_status
    )
    subscription.open()

    assert subscription.poll_once() is False
    assert subscription.closed is True
    status, error = statuses[-1]
    assert status == STATUS_CHANNEL_ERROR
    assert error.message == "stream unavailable"
    assert subscription.poll_once() is False


def test_rejected_subscription_reports_channel_error():
    def handler(request):
        return httpx.Response(403, json={"error": "cannot subscribe to another user"})

    _, statuses, on_change, on_status = _collect()
    subscription = ChangeFeed(_store(handler), autostart=False).subscribe(
        7, on_change, on_status=on_status
    )

    assert subscription.open() is False
    assert [status for status, _ in statuses] == [STATUS_CHANNEL_ERROR]


def test_read_timeout_reports_timed_out():
    def handler(request):
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 0})
        raise httpx.ReadTimeout("timed out", request=request)

    _, statuses, on_change, on_status = _collect()
    subscription = ChangeFeed(_store(handler), wait=0, autostart=False).subscribe(
        7, on_change, on_status=on_status
    )
    subscription.open()

    assert subscription.poll_once() is False
    assert [status for status, _ in statuses] == [STATUS_SUBSCRIBED, STATUS_TIMED_OUT]


def test_closed_subscription_does_not_deliver_or_report():
    def handler(request):
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 0})
        return httpx.Response(200, json={"events": [_event(1)], "cursor": 1})

    changes, statuses, on_change, on_status = _collect()
    subscription = ChangeFeed(_store(handler), wait=0, autostart=False).subscribe(
        7, on_change, on_status=on_status
    )
    subscription.open()
    subscription.close()

    assert subscription.poll_once() is False
    assert changes == []
    assert statuses == [(STATUS_SUBSCRIBED, None)]


def test_started_subscription_runs_on_worker_thread_until_closed():
    delivered = threading.Event()
    served = {"pulls": 0}

    def handler(request):
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 0})
        served["pulls"] += 1
        if served["pulls"] == 1:
            return httpx.Response(200, json={"events": [_event(1)], "cursor": 1})
        return httpx.Response(200, json={"events": [], "cursor": 1})

    changes = []

    def on_change(change):
        changes.append(change)
        delivered.set()

    feed = ChangeFeed(_store(handler), wait=0)
    subscription = feed.subscribe(7, on_change)
    assert delivered.wait(timeout=5)

    feed.unsubscribe(subscription)
    subscription._thread.join(timeout=5)

    assert not subscription._thread.is_alive()
    assert len(changes) == 1


def test_malformed_event_reports_channel_error_and_stops():
    broken = _event(1)
    del broken["new"]["user_id"]

    def handler(request):
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 0})
        return httpx.Response(200, json={"events": [broken], "cursor": 1})

    changes, statuses, on_change, on_status = _collect()
    subscription = ChangeFeed(_store(handler), wait=0, autostart=False).subscribe(
        7, on_change, on_status=on_status
    )
    subscription.open()

    assert subscription.poll_once() is False
    assert subscription.closed is True
    assert changes == []
    assert subscription.cursor == 0
    status, error = statuses[-1]
    assert status == STATUS_CHANNEL_ERROR
    assert isinstance(error, KeyError)


def test_failing_change_handler_stops_worker_with_channel_error():
    reported = threading.Event()

    def handler(request):
        if request.url.path == "/api/v1/changes/subscribe":
            return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": 0})
        return httpx.Response(200, json={"events": [_event(1)], "cursor": 1})

    def on_change(change):
        raise RuntimeError("view crashed")

    statuses = []

    def on_status(status, error=None):
        statuses.append(status)
        if status == STATUS_CHANNEL_ERROR:
            reported.set()

    subscription = ChangeFeed(_store(handler), wait=0).subscribe(
        7, on_change, on_status=on_status
    )
    assert reported.wait(timeout=5)
    subscription._thread.join(timeout=5)

    assert not subscription._thread.is_alive()
    assert subscription.closed is True
    assert statuses == [STATUS_SUBSCRIBED, STATUS_CHANNEL_ERROR]


def test_unreadable_acknowledgment_reports_channel_error():
    def handler(request):
        return httpx.Response(200, json={"status": "SUBSCRIBED", "cursor": "head"})

    _, statuses, on_change, on_status = _collect()
    subscription = ChangeFeed(_store(handler), autostart=False).subscribe(
        7, on_change, on_status=on_status
    )

    assert subscription.open() is False
    assert [status for status, _ in statuses] == [STATUS_CHANNEL_ERROR]
