"""WebSocketTransport against a scripted stand-in for websocket.WebSocketApp."""

import queue
import threading

import pytest
import websocket

from runtap.errors import TransportError, TransportErrorKind
from runtap.transport import TransportEventKind, TransportHandle, WebSocketTransport
from runtap.transport.websocket import _Connection


class ScriptedWebSocketApp:
    """Mimics the WebSocketApp callback sequence for one scripted behaviour."""

    behaviour = "open"
    incoming: list = []
    instances: list = []
    # Like the real WebSocketApp: close() before the socket exists does nothing
    close_needs_socket = False
    handshake = None

    def __init__(self, url, on_open=None, on_message=None, on_error=None, on_close=None):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent = []
        self.run_kwargs = None
        self.sock = None
        self._closed = threading.Event()
        self.started = threading.Event()
        ScriptedWebSocketApp.instances.append(self)

    def run_forever(self, **kwargs):
        self.run_kwargs = kwargs
        self.started.set()
        if self.behaviour == "refuse":
            self.on_error(self, ConnectionRefusedError("[Errno 111] Connection refused"))
            self.on_close(self, None, None)
            return True
        if self.behaviour == "hang":
            self._closed.wait(timeout=5)
            self.on_close(self, None, None)
            return False
        if self.behaviour == "drop":
            self.on_open(self)
            self.on_error(self, websocket.WebSocketConnectionClosedException("Connection to remote host was lost."))
            return True

        if self.handshake is not None:
            self.handshake.wait(timeout=5)
        self.sock = object()
        self.on_open(self)
        for message in self.incoming:
            self.on_message(self, message)
        self._closed.wait(timeout=5)
        self.on_close(self, 1000, "bye")
        return False

    def send(self, text):
        if self._closed.is_set():
            raise websocket.WebSocketConnectionClosedException("socket is already closed.")
        self.sent.append(text)

    def close(self, **kwargs):
        if self.close_needs_socket and self.sock is None:
            return
        self._closed.set()

    @property
    def closed(self):
        return self._closed.is_set()


@pytest.fixture
def scripted(monkeypatch):
    ScriptedWebSocketApp.behaviour = "open"
    ScriptedWebSocketApp.incoming = []
    ScriptedWebSocketApp.instances = []
    ScriptedWebSocketApp.close_needs_socket = False
    ScriptedWebSocketApp.handshake = None
    monkeypatch.setattr(websocket, "WebSocketApp", ScriptedWebSocketApp)
    return ScriptedWebSocketApp


class Collector:
    def __init__(self):
        self.events = queue.Queue()

    def __call__(self, event):
        self.events.put(event)

    def next(self, timeout=2.0):
        return self.events.get(timeout=timeout)

    def drain(self, wait=0.2):
        found = []
        try:
            while True:
                found.append(self.events.get(timeout=wait))
        except queue.Empty:
            return found


def test_open_receive_close(scripted):
    scripted.incoming = ["BUILD_LOG:Compiling", b"OUTPUT:bin"]
    collector = Collector()
    transport = WebSocketTransport(connect_timeout=2, ping_interval=30, ping_timeout=10)

    handle = transport.open("ws://backend.test/terminal", collector)

    assert collector.next().kind == TransportEventKind.OPENED
    first = collector.next()
    second = collector.next()
    assert (first.kind, first.data) == (TransportEventKind.DATA_RECEIVED, "BUILD_LOG:Compiling")
    assert (second.kind, second.data) == (TransportEventKind.DATA_RECEIVED, b"OUTPUT:bin")

    transport.send(handle, "RUN:x")
    assert scripted.instances[0].sent == ["RUN:x"]
    assert scripted.instances[0].run_kwargs["ping_interval"] == 30

    transport.close(handle)
    terminal = collector.next()
    assert terminal.kind == TransportEventKind.CLOSED
    assert collector.drain() == []


def test_close_is_idempotent(scripted):
    collector = Collector()
    transport = WebSocketTransport(connect_timeout=2)
    handle = transport.open("ws://backend.test/terminal", collector)
    collector.next()

    transport.close(handle)
    transport.close(handle)
    assert collector.next().kind == TransportEventKind.CLOSED
    assert collector.drain() == []


def test_send_after_close_raises_not_open(scripted):
    collector = Collector()
    transport = WebSocketTransport(connect_timeout=2)
    handle = transport.open("ws://backend.test/terminal", collector)
    collector.next()
    transport.close(handle)

    with pytest.raises(TransportError) as exc_info:
        transport.send(handle, "INPUT:5")
    assert exc_info.value.kind == TransportErrorKind.NOT_OPEN


def test_send_before_open_raises_not_open(scripted):
    scripted.behaviour = "hang"
    transport = WebSocketTransport(connect_timeout=2)
    handle = transport.open("ws://backend.test/terminal", Collector())

    with pytest.raises(TransportError) as exc_info:
        transport.send(handle, "RUN:x")
    assert exc_info.value.kind == TransportErrorKind.NOT_OPEN
    transport.close(handle)


def test_refused_connection_fails_once(scripted):
    scripted.behaviour = "refuse"
    collector = Collector()
    WebSocketTransport(connect_timeout=2).open("ws://backend.test/terminal", collector)

    event = collector.next()
    assert event.kind == TransportEventKind.FAILED
    assert "refused" in event.data
    assert collector.drain() == []


def test_lost_connection_fails(scripted):
    collector = Collector()
    scripted.behaviour = "drop"
    WebSocketTransport(connect_timeout=2).open("ws://backend.test/terminal", collector)

    assert collector.next().kind == TransportEventKind.OPENED
    failed = collector.next()
    assert failed.kind == TransportEventKind.FAILED
    assert "lost" in failed.data
    assert collector.drain() == []


def test_connect_timeout(scripted):
    scripted.behaviour = "hang"
    collector = Collector()
    WebSocketTransport(connect_timeout=0.05).open("ws://backend.test/terminal", collector)

    event = collector.next()
    assert event.kind == TransportEventKind.FAILED
    assert "within" in event.data
    assert collector.drain(wait=0.3) == []


def test_rejects_non_websocket_address(scripted):
    with pytest.raises(TransportError) as exc_info:
        WebSocketTransport().open("http://backend.test/terminal", Collector())
    assert exc_info.value.kind == TransportErrorKind.CONNECT_FAILED
    assert scripted.instances == []


def test_ping_disabled(scripted):
    collector = Collector()
    transport = WebSocketTransport(connect_timeout=2, ping_interval=0)
    handle = transport.open("ws://backend.test/terminal", collector)
    collector.next()
    assert "ping_interval" not in scripted.instances[0].run_kwargs
    transport.close(handle)


def test_close_during_handshake_closes_socket_once_open(scripted):
    scripted.close_needs_socket = True
    scripted.handshake = threading.Event()
    collector = Collector()
    transport = WebSocketTransport(connect_timeout=2)
    handle = transport.open("ws://backend.test/terminal", collector)
    app = scripted.instances[0]
    assert app.started.wait(timeout=2)

    transport.close(handle)
    assert not app.closed

    scripted.handshake.set()
    terminal = collector.next()
    assert terminal.kind == TransportEventKind.CLOSED
    assert app.closed
    assert collector.drain() == []


def test_connect_timeout_closes_late_handshake(scripted):
    scripted.close_needs_socket = True
    scripted.handshake = threading.Event()
    collector = Collector()
    WebSocketTransport(connect_timeout=0.2).open("ws://backend.test/terminal", collector)
    app = scripted.instances[0]
    assert app.started.wait(timeout=2)

    assert collector.next().kind == TransportEventKind.FAILED
    assert not app.closed

    scripted.handshake.set()
    assert app._closed.wait(timeout=2)
    assert collector.drain() == []


def test_retired_connection_never_runs(scripted):
    collector = Collector()
    conn = _Connection(TransportHandle("ws://backend.test/terminal"), collector)
    conn.ws_app = scripted("ws://backend.test/terminal")
    conn.mark_closing()

    WebSocketTransport()._run(conn, {})

    assert conn.ws_app.run_kwargs is None
    assert collector.next().kind == TransportEventKind.CLOSED
    assert collector.drain() == []
