from smartmarks.client.feed import STATUS_CHANNEL_ERROR, STATUS_SUBSCRIBED, STATUS_TIMED_OUT
from smartmarks.client.monitor import (
    CONNECTED,
    CONNECTING,
    DISCONNECTED,
    ConnectionMonitor,
)


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeReconciler:
    def __init__(self):
        self.subscribe_calls = []
        self.unsubscribe_calls = 0
        self.loads = 0

    def subscribe(self, on_status=None):
        self.subscribe_calls.append(on_status)
        return object()

    def unsubscribe(self):
        self.unsubscribe_calls += 1

    def load(self):
        self.loads += 1

    def report(self, status, error=None):
        self.subscribe_calls[-1](status, error)


def _monitor(reconciler, timers):
    def timer_factory(delay, callback):
        timer = FakeTimer(delay, callback)
        timers.append(timer)
        return timer

    states = []
    monitor = ConnectionMonitor(
        reconciler,
        retry_delay=3,
        timer_factory=timer_factory,
        on_state_change=states.append,
    )
    return monitor, states


def test_subscribed_status_marks_connected():
    reconciler = FakeReconciler()
    monitor, states = _monitor(reconciler, [])
    assert monitor.state == CONNECTING

    monitor.start()
    reconciler.report(STATUS_SUBSCRIBED)

    assert monitor.state == CONNECTED
    assert states == [CONNECTED]
    assert reconciler.loads == 0


def test_channel_error_disconnects_and_retries_after_fixed_delay():
    reconciler = FakeReconciler()
    timers = []
    monitor, states = _monitor(reconciler, timers)
    monitor.start()
    reconciler.report(STATUS_SUBSCRIBED)

    reconciler.report(STATUS_CHANNEL_ERROR, RuntimeError("socket closed"))

    assert monitor.state == DISCONNECTED
    assert len(timers) == 1
    assert timers[0].delay == 3
    assert timers[0].started is True
    assert len(reconciler.subscribe_calls) == 1

    timers[0].fire()

    assert monitor.state == CONNECTING
    assert len(reconciler.subscribe_calls) == 2

    reconciler.report(STATUS_SUBSCRIBED)
    assert monitor.state == CONNECTED
    assert reconciler.loads == 1
    assert states == [CONNECTED, DISCONNECTED, CONNECTING, CONNECTED]


def test_timeout_is_treated_like_channel_error():
    reconciler = FakeReconciler()
    timers = []
    monitor, _ = _monitor(reconciler, timers)
    monitor.start()

    reconciler.report(STATUS_TIMED_OUT)

    assert monitor.state == DISCONNECTED
    assert len(timers) == 1


def test_retries_are_unbounded_but_serialized():
    reconciler = FakeReconciler()
    timers = []
    monitor, _ = _monitor(reconciler, timers)
    monitor.start()

    for _ in range(4):
        reconciler.report(STATUS_CHANNEL_ERROR)
        timers[-1].fire()

    assert len(reconciler.subscribe_calls) == 5
    assert monitor.attempts == 5


def test_manual_retry_cancels_pending_timer():
    reconciler = FakeReconciler()
    timers = []
    monitor, _ = _monitor(reconciler, timers)
    monitor.start()
    reconciler.report(STATUS_CHANNEL_ERROR)

    monitor.retry()

    assert timers[0].cancelled is True
    assert monitor.state == CONNECTING
    timers[0].fire()
    assert len(reconciler.subscribe_calls) == 2


def test_stale_status_from_old_attempt_is_ignored():
    reconciler = FakeReconciler()
    monitor, _ = _monitor(reconciler, [])
    monitor.start()
    stale = reconciler.subscribe_calls[-1]
    monitor.retry()

    stale(STATUS_CHANNEL_ERROR, None)

    assert monitor.state == CONNECTING


def test_visibility_regained_reconnects_only_when_disconnected():
    reconciler = FakeReconciler()
    monitor, _ = _monitor(reconciler, [])
    monitor.start()
    reconciler.report(STATUS_SUBSCRIBED)

    monitor.on_visibility_change(True)
    assert len(reconciler.subscribe_calls) == 1

    reconciler.report(STATUS_CHANNEL_ERROR)
    monitor.on_visibility_change(False)
    assert len(reconciler.subscribe_calls) == 1
    monitor.on_visibility_change(True)
    assert len(reconciler.subscribe_calls) == 2
    assert monitor.state == CONNECTING


def test_offline_disconnects_and_online_reconnects():
    reconciler = FakeReconciler()
    timers = []
    monitor, _ = _monitor(reconciler, timers)
    monitor.start()
    reconciler.report(STATUS_SUBSCRIBED)

    monitor.on_offline()
    assert monitor.state == DISCONNECTED
    assert reconciler.unsubscribe_calls == 1

    monitor.on_visibility_change(True)
    assert len(reconciler.subscribe_calls) == 1

    monitor.on_online()
    assert len(reconciler.subscribe_calls) == 2
    reconciler.report(STATUS_SUBSCRIBED)
    assert monitor.state == CONNECTED
    assert reconciler.loads == 1


def test_stop_cancels_timer_and_ignores_later_events():
    reconciler = FakeReconciler()
    timers = []
    monitor, _ = _monitor(reconciler, timers)
    monitor.start()
    reconciler.report(STATUS_CHANNEL_ERROR)

    monitor.stop()
    monitor.on_online()
    monitor.retry()

    assert timers[0].cancelled is True
    assert len(reconciler.subscribe_calls) == 1
    assert reconciler.unsubscribe_calls == 1
