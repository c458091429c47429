"""WebSocket transport built on websocket-client.

WebSocketApp handles the socket, we enforce the event contract: one OPENED,
data only while open, exactly one terminal event per handle.

PUBLIC API:
  - WebSocketTransport: Transport over ws:// and wss:// endpoints
"""

import logging
import threading

import websocket

from runtap.errors import TransportError, TransportErrorKind
from runtap.transport.base import Transport, TransportEvent, TransportEventKind, TransportHandle, TransportListener

__all__ = ["WebSocketTransport"]

logger = logging.getLogger(__name__)


class _Connection:
    """One WebSocketApp plus the bookkeeping that keeps its events in order."""

    def __init__(self, handle: TransportHandle, listener: TransportListener):
        self.handle = handle
        self.listener = listener
        self.ws_app: websocket.WebSocketApp | None = None
        self.thread: threading.Thread | None = None

        self._lock = threading.Lock()
        self._opened = False
        self._terminated = False
        self._closing = False
        self._error: str | None = None

    @property
    def is_open(self) -> bool:
        return self._opened and not self._terminated and not self._closing

    def _emit(self, kind: TransportEventKind, data: str | bytes = "") -> None:
        try:
            self.listener(TransportEvent(kind, data))
        except Exception as e:
            logger.error(f"Error in transport listener for handle {self.handle.handle_id}: {e}")

    def on_open(self, ws):
        """WebSocket opened. Closed again at once if the handle was retired meanwhile."""
        with self._lock:
            retired = self._closing or self._terminated
            if not retired:
                self._opened = True
        if retired:
            logger.debug(f"Handle {self.handle.handle_id} retired during handshake, closing")
            ws.close()
            return
        logger.info(f"WebSocket connected: {self.handle.address}")
        self._emit(TransportEventKind.OPENED)

    def on_message(self, ws, message):
        """Forward raw message text untouched."""
        with self._lock:
            if not self._opened or self._terminated:
                return
        self._emit(TransportEventKind.DATA_RECEIVED, message)

    def on_error(self, ws, error):
        """WebSocket error. Reported with the terminal event."""
        logger.error(f"WebSocket error on {self.handle.address}: {error}")
        with self._lock:
            if self._error is None:
                self._error = str(error) or type(error).__name__

    def on_close(self, ws, code, reason):
        """WebSocket closed."""
        logger.info(f"WebSocket closed: {code} {reason}")
        self.terminate(reason or "")

    def terminate(self, reason: str = "") -> None:
        """Deliver the terminal event if it has not been delivered yet."""
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
            # A deliberate close is never a failure
            failed = not self._closing and (self._error is not None or not self._opened)
            detail = self._error or reason or ("Connection refused" if not self._opened else "")

        if failed:
            self._emit(TransportEventKind.FAILED, detail)
        else:
            self._emit(TransportEventKind.CLOSED, reason)

    def fail_if_not_open(self, timeout: float) -> None:
        """Fail the handle when it has not opened within timeout seconds."""
        with self._lock:
            if self._opened or self._terminated or self._closing:
                return
            self._error = f"Failed to connect within {timeout}s"

        logger.warning(f"Connect timeout for {self.handle.address}")
        self.terminate()
        if self.ws_app:
            self.ws_app.close()

    @property
    def retired(self) -> bool:
        with self._lock:
            return self._closing or self._terminated

    def mark_closing(self) -> bool:
        """Flag a deliberate close. Returns False if already closing or closed."""
        with self._lock:
            if self._closing or self._terminated:
                return False
            self._closing = True
            return True


class WebSocketTransport(Transport):
    """Transport over ws:// and wss:// endpoints.

    Each handle gets its own WebSocketApp running in a daemon thread.
    Listener callbacks run on that thread.

    Attributes:
        connect_timeout: Seconds to wait for the handshake before failing.
        ping_interval: Seconds between keepalive pings (0 disables).
        ping_timeout: Seconds to wait for a pong.
    """

    def __init__(self, connect_timeout: float = 5.0, ping_interval: float = 30, ping_timeout: float = 10):
        """Initialize WebSocket transport.

        Args:
            connect_timeout: Seconds to wait for the handshake.
            ping_interval: Keepalive ping interval in seconds.
            ping_timeout: Pong wait in seconds, must be below ping_interval.
        """
        self.connect_timeout = connect_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

    def open(self, address: str, listener: TransportListener) -> TransportHandle:
        if not address.startswith(("ws://", "wss://")):
            raise TransportError(TransportErrorKind.CONNECT_FAILED, f"Unsupported endpoint address: {address}")

        handle = TransportHandle(address)
        conn = _Connection(handle, listener)
        handle.extra["connection"] = conn

        # Create WebSocketApp with callbacks
        conn.ws_app = websocket.WebSocketApp(
            address,
            on_open=conn.on_open,
            on_message=conn.on_message,
            on_error=conn.on_error,
            on_close=conn.on_close,
        )

        run_kwargs = {"skip_utf8_validation": True}
        if self.ping_interval:
            run_kwargs["ping_interval"] = self.ping_interval
            run_kwargs["ping_timeout"] = self.ping_timeout

        conn.thread = threading.Thread(
            target=self._run,
            args=(conn, run_kwargs),
            name=f"runtap-ws-{handle.handle_id}",
        )
        conn.thread.daemon = True
        conn.thread.start()

        if self.connect_timeout:
            watchdog = threading.Timer(self.connect_timeout, conn.fail_if_not_open, args=(self.connect_timeout,))
            watchdog.daemon = True
            watchdog.start()

        return handle

    def send(self, handle: TransportHandle, text: str) -> None:
        conn = self._connection(handle)
        if conn is None or not conn.is_open or conn.ws_app is None:
            raise TransportError(TransportErrorKind.NOT_OPEN, f"Handle {handle.handle_id} is not open")

        try:
            conn.ws_app.send(text)
        except websocket.WebSocketException as e:
            raise TransportError(TransportErrorKind.NOT_OPEN, f"Send on handle {handle.handle_id} failed: {e}") from e

    def close(self, handle: TransportHandle) -> None:
        conn = self._connection(handle)
        if conn is None or not conn.mark_closing():
            return

        logger.debug(f"Closing handle {handle.handle_id}")
        if conn.ws_app:
            conn.ws_app.close()

    def _connection(self, handle: TransportHandle) -> _Connection | None:
        return handle.extra.get("connection")

    def _run(self, conn: _Connection, run_kwargs: dict) -> None:
        if conn.retired:
            conn.terminate()
            return
        try:
            conn.ws_app.run_forever(**run_kwargs)
        except Exception as e:
            conn.on_error(conn.ws_app, e)
        finally:
            # run_forever can return without calling on_close
            conn.terminate()
