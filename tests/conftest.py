"""
Pytest fixtures for runtap tests: an in-memory transport, a manual clock
scheduler and a recording presentation sink.
"""

from typing import Callable, Optional

import pytest

from runtap.errors import TransportError, TransportErrorKind
from runtap.scheduler import ScheduledTask, Scheduler
from runtap.session import Session
from runtap.transport.base import Transport, TransportEvent, TransportEventKind, TransportHandle, TransportListener

ENDPOINT = "ws://backend.test/terminal"


class FakeTransport(Transport):
    """Transport whose events are fired by the test."""

    def __init__(self) -> None:
        self.handles: list[TransportHandle] = []
        self.sent: list[str] = []
        self.close_calls: list[TransportHandle] = []
        self.fail_next_open: Optional[str] = None
        self.open_synchronously = False

    def open(self, address: str, listener: TransportListener) -> TransportHandle:
        if self.fail_next_open is not None:
            message, self.fail_next_open = self.fail_next_open, None
            raise TransportError(TransportErrorKind.CONNECT_FAILED, message)

        handle = TransportHandle(address)
        handle.extra.update(listener=listener, open=False, closed=False)
        self.handles.append(handle)
        if self.open_synchronously:
            self.fire_open(handle)
        return handle

    def send(self, handle: TransportHandle, text: str) -> None:
        if not handle.extra["open"] or handle.extra["closed"]:
            raise TransportError(TransportErrorKind.NOT_OPEN, "handle not open")
        self.sent.append(text)

    def close(self, handle: TransportHandle) -> None:
        self.close_calls.append(handle)
        handle.extra["closed"] = True

    # ----- test controls -----

    @property
    def last(self) -> TransportHandle:
        return self.handles[-1]

    def _fire(self, handle: Optional[TransportHandle], kind: TransportEventKind, data: str | bytes = "") -> None:
        handle = handle or self.last
        handle.extra["listener"](TransportEvent(kind, data))

    def fire_open(self, handle: Optional[TransportHandle] = None) -> None:
        (handle or self.last).extra["open"] = True
        self._fire(handle, TransportEventKind.OPENED)

    def deliver(self, raw: str | bytes, handle: Optional[TransportHandle] = None) -> None:
        self._fire(handle, TransportEventKind.DATA_RECEIVED, raw)

    def fire_close(self, handle: Optional[TransportHandle] = None, reason: str = "") -> None:
        (handle or self.last).extra["open"] = False
        self._fire(handle, TransportEventKind.CLOSED, reason)

    def fire_fail(self, detail: str = "boom", handle: Optional[TransportHandle] = None) -> None:
        (handle or self.last).extra["open"] = False
        self._fire(handle, TransportEventKind.FAILED, detail)


class ManualScheduler(Scheduler):
    """Scheduler driven by advance() instead of wall-clock time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.tasks: list[tuple[float, ScheduledTask]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(callback, delay)
        self.tasks.append((self.now + delay, task))
        return task

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [task for when, task in self.tasks if when <= self.now]
        self.tasks = [(when, task) for when, task in self.tasks if when > self.now]
        for task in due:
            task.run()

    @property
    def pending(self) -> list[ScheduledTask]:
        return [task for _, task in self.tasks if task.pending]


class RecordingSink:
    """Sink that keeps every event."""

    def __init__(self) -> None:
        self.events: list = []

    def __call__(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]

    def statuses(self) -> list[tuple[str, str]]:
        from runtap.events import StatusChanged

        return [(e.severity.value, e.label) for e in self.of_type(StatusChanged)]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def session(transport, scheduler, sink) -> Session:
    return Session(transport, ENDPOINT, sinks=[sink], scheduler=scheduler, reconnect_delay=0.5)


@pytest.fixture
def connected(session, transport, sink) -> Session:
    """Session in (Connected, Idle) with the sink cleared."""
    session.connect()
    transport.fire_open()
    sink.clear()
    return session


@pytest.fixture
def running(connected, transport, sink) -> Session:
    """Session in (Connected, Running) with sent messages and the sink cleared."""
    assert connected.run("int main(){return 0;}")
    transport.sent.clear()
    sink.clear()
    return connected
