"""Execution session state machine.

Tracks connection and execution state for one backend connection, validates
run/stop/input requests against that state, and turns decoded backend
messages into presentation events.

Each connect() starts a new generation with a fresh transport handle. Events
are bound to the generation that opened their handle and anything from an
older generation is dropped, so a late close from a replaced connection can
never disturb the current one.

PUBLIC API:
  - Session: Thread-safe session state machine
  - SessionSnapshot: Immutable view of session state
  - ConnectionState: Disconnected, Connecting, Connected
  - ExecutionState: Idle, Running
  - StatusNote: Transient outcome that colours the status label
  - project_status: Pure projection of state onto (severity, label)
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Iterable

from runtap.errors import TransportError
from runtap.events import (
    BuildLogAppended,
    ErrorReported,
    InputEchoed,
    LocalNotice,
    OutputAppended,
    RunEnded,
    RunStarted,
    SessionEvent,
    Severity,
    SinkLike,
    StatusChanged,
)
from runtap.protocol import BuildLog, DecodeFailure, Ended, Error, Input, Output, Run, decode, encode
from runtap.scheduler import ScheduledTask, Scheduler, TimerScheduler
from runtap.transport.base import Transport, TransportEvent, TransportEventKind, TransportHandle

__all__ = [
    "Session",
    "SessionSnapshot",
    "ConnectionState",
    "ExecutionState",
    "StatusNote",
    "project_status",
    "DEFAULT_RECONNECT_DELAY",
    "NO_ACTIVE_RUN_NOTICE",
]

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 0.5
NO_ACTIVE_RUN_NOTICE = "Cannot send input, no active run"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ExecutionState(str, Enum):
    """Execution state. Only meaningful while connected."""

    IDLE = "idle"
    RUNNING = "running"


class StatusNote(str, Enum):
    """Last transient outcome shown in place of the plain state label."""

    NONE = "none"
    STOPPING = "stopping"
    BACKEND_ERROR = "backend_error"


def project_status(
    connection: ConnectionState, execution: ExecutionState, note: StatusNote = StatusNote.NONE
) -> tuple[Severity, str]:
    """Project session state onto a status indicator.

    Args:
        connection: Connection state.
        execution: Execution state.
        note: Transient outcome. STOPPING only shows while disconnected,
            BACKEND_ERROR only while connected and idle.

    Returns:
        Tuple of (severity, label).
    """
    if connection == ConnectionState.DISCONNECTED:
        if note == StatusNote.STOPPING:
            return Severity.ERR, "Stopping"
        return Severity.ERR, "Disconnected"

    if connection == ConnectionState.CONNECTING:
        return Severity.WARN, "Connecting"

    if execution == ExecutionState.RUNNING:
        return Severity.WARN, "Running"

    if note == StatusNote.BACKEND_ERROR:
        return Severity.ERR, "Error"
    return Severity.OK, "Connected (Idle)"


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a session, safe to read from any thread."""

    endpoint: str
    generation: int
    connection_state: ConnectionState
    execution_state: ExecutionState
    severity: Severity
    label: str
    reconnect_pending: bool

    @property
    def input_enabled(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTED and self.execution_state == ExecutionState.RUNNING


class Session:
    """Thread-safe execution session state machine.

    Every public operation and every transport callback runs under one
    reentrant lock, so each transition is atomic and events reach the sinks
    in arrival order.

    Usage errors are not exceptions: run(), stop() and send_input() return
    False when their preconditions are not met.

    Attributes:
        reconnect_delay: Seconds between stop() and the automatic reconnect.
    """

    def __init__(
        self,
        transport: Transport,
        endpoint: str,
        sinks: Iterable[SinkLike] = (),
        scheduler: Scheduler | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ):
        """Initialize a disconnected session.

        Args:
            transport: Transport used to open connections.
            endpoint: Backend address, e.g. "ws://localhost:8080/terminal".
            sinks: Presentation sinks receiving every event.
            scheduler: Scheduler for the post-stop reconnect. Defaults to
                TimerScheduler.
            reconnect_delay: Seconds between stop() and the automatic reconnect.
        """
        self.reconnect_delay = reconnect_delay
        self._transport = transport
        self._endpoint = endpoint
        self._sinks: list[SinkLike] = list(sinks)
        self._scheduler = scheduler or TimerScheduler()
        self._lock = threading.RLock()

        self._connection_state = ConnectionState.DISCONNECTED
        self._execution_state = ExecutionState.IDLE
        self._note = StatusNote.NONE

        # Generation whose handle events are accepted; None once retired
        self._generation = 0
        self._active_generation: int | None = None
        self._handle: TransportHandle | None = None

        # Pending post-stop reconnect; the token is what the deferred call checks
        self._reconnect_token: object | None = None
        self._reconnect_task: ScheduledTask | None = None

    # ----- state accessors -----

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def execution_state(self) -> ExecutionState:
        return self._execution_state

    @property
    def status(self) -> tuple[Severity, str]:
        return project_status(self._connection_state, self._execution_state, self._note)

    @property
    def input_enabled(self) -> bool:
        return (
            self._connection_state == ConnectionState.CONNECTED and self._execution_state == ExecutionState.RUNNING
        )

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_token is not None

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            severity, label = self.status
            return SessionSnapshot(
                endpoint=self._endpoint,
                generation=self._generation,
                connection_state=self._connection_state,
                execution_state=self._execution_state,
                severity=severity,
                label=label,
                reconnect_pending=self.reconnect_pending,
            )

    # ----- sinks -----

    def add_sink(self, sink: SinkLike) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: SinkLike) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    # ----- operations -----

    def connect(self, endpoint: str | None = None) -> int:
        """Open a fresh connection, replacing any existing one.

        Cancels a pending automatic reconnect and closes the previous handle
        without waiting for it. Events still in flight for the old handle are
        dropped.

        Args:
            endpoint: Optional new backend address. Keeps the current one if
                omitted.

        Returns:
            Generation number of the new connection.
        """
        with self._lock:
            self._cancel_reconnect()
            if endpoint:
                self._endpoint = endpoint

            self._retire_handle()

            self._generation += 1
            generation = self._generation
            self._active_generation = generation
            self._set_state(ConnectionState.CONNECTING, ExecutionState.IDLE, StatusNote.NONE)
            logger.info(f"Connecting to {self._endpoint} (generation {generation})")
            self._emit_status()

            listener = partial(self._on_transport_event, generation)
            try:
                handle = self._transport.open(self._endpoint, listener)
            except TransportError as e:
                logger.warning(f"Connect to {self._endpoint} failed: {e}")
                self._on_terminal(generation, TransportEvent(TransportEventKind.FAILED, str(e)))
                return generation

            if self._active_generation == generation:
                self._handle = handle
            else:
                # Transport reported a terminal event from inside open()
                self._close_quietly(handle)
            return generation

    def disconnect(self) -> bool:
        """Close the connection and cancel any pending automatic reconnect.

        Returns:
            True if there was anything to disconnect.
        """
        with self._lock:
            had_reconnect = self._cancel_reconnect()
            before = self.status
            was_live = self._connection_state != ConnectionState.DISCONNECTED

            self._retire_handle()
            self._set_state(ConnectionState.DISCONNECTED, ExecutionState.IDLE, StatusNote.NONE)

            if self.status != before:
                self._emit_status()
            if was_live:
                logger.info(f"Disconnected from {self._endpoint}")
            return was_live or had_reconnect

    def run(self, source_code: str) -> bool:
        """Submit source code for compilation and execution.

        At most one run per session: refused unless connected and idle.

        Returns:
            True if the RUN message was sent.
        """
        with self._lock:
            if not self._is_idle_connected():
                logger.debug(f"run() ignored in state {self._describe_state()}")
                return False

            if not self._send(encode(Run(source_code))):
                return False

            self._set_state(ConnectionState.CONNECTED, ExecutionState.RUNNING, StatusNote.NONE)
            logger.info(f"Run submitted ({len(source_code)} chars)")
            self._emit(RunStarted(source_code))
            self._emit_status()
            return True

    def send_input(self, text: str) -> bool:
        """Forward one line of input to the running program.

        Without an active run nothing is sent and a local notice is emitted
        instead.

        Returns:
            True if the INPUT message was sent.
        """
        with self._lock:
            if not self.input_enabled:
                self._emit(LocalNotice(NO_ACTIVE_RUN_NOTICE))
                return False

            if not self._send(encode(Input(text))):
                return False

            self._emit(InputEchoed(text))
            return True

    def stop(self) -> bool:
        """Stop the running program by closing the connection.

        The protocol has no kill message; closing the connection ends the
        remote process. A fresh connection is opened automatically after
        reconnect_delay unless connect() or disconnect() is called first.

        Returns:
            True if a run was stopped.
        """
        with self._lock:
            if not self.input_enabled:
                logger.debug(f"stop() ignored in state {self._describe_state()}")
                return False

            self._retire_handle()
            self._set_state(ConnectionState.DISCONNECTED, ExecutionState.IDLE, StatusNote.STOPPING)
            logger.info(f"Run stopped, reconnecting in {self.reconnect_delay}s")
            self._emit_status()
            self._schedule_reconnect()
            return True

    # ----- transport callbacks -----

    def _on_transport_event(self, generation: int, event: TransportEvent) -> None:
        with self._lock:
            if generation != self._active_generation:
                logger.debug(f"Dropped {event.kind.value} from stale generation {generation}")
                return

            if event.kind == TransportEventKind.OPENED:
                self._on_opened(generation)
            elif event.kind == TransportEventKind.DATA_RECEIVED:
                self._on_data(event.data)
            elif event.kind.is_terminal:
                self._on_terminal(generation, event)

    def _on_opened(self, generation: int) -> None:
        if self._connection_state != ConnectionState.CONNECTING:
            logger.debug(f"Dropped open in state {self._describe_state()}")
            return

        self._set_state(ConnectionState.CONNECTED, ExecutionState.IDLE, StatusNote.NONE)
        logger.info(f"Connected to {self._endpoint} (generation {generation})")
        self._emit_status()

    def _on_data(self, raw: str | bytes) -> None:
        message = decode(raw)
        if isinstance(message, DecodeFailure):
            logger.debug(f"Dropped undecodable message ({message.value})")
            return

        if self._connection_state != ConnectionState.CONNECTED:
            logger.debug(f"Dropped {message.tag.value} in state {self._describe_state()}")
            return

        if isinstance(message, BuildLog):
            self._emit(BuildLogAppended(message.text))
        elif isinstance(message, Output):
            self._emit(OutputAppended(message.chunk))
        elif isinstance(message, Ended):
            self._set_state(ConnectionState.CONNECTED, ExecutionState.IDLE, StatusNote.NONE)
            logger.info(f"Run ended ({message.reason or 'no reason'})")
            self._emit(RunEnded(message.reason))
            self._emit_status()
        elif isinstance(message, Error):
            self._set_state(ConnectionState.CONNECTED, ExecutionState.IDLE, StatusNote.BACKEND_ERROR)
            logger.info(f"Backend reported error: {message.text.strip()}")
            self._emit(ErrorReported(message.text))
            self._emit_status()

    def _on_terminal(self, generation: int, event: TransportEvent) -> None:
        self._active_generation = None
        self._handle = None
        self._set_state(ConnectionState.DISCONNECTED, ExecutionState.IDLE, StatusNote.NONE)

        if event.kind == TransportEventKind.FAILED:
            logger.warning(f"Connection failed (generation {generation}): {event.data}")
            self._emit_status()
            self._emit(LocalNotice(f"Connection failed: {event.data}" if event.data else "Connection failed"))
        else:
            logger.info(f"Connection closed (generation {generation})")
            self._emit_status()

    # ----- helpers -----

    def _is_idle_connected(self) -> bool:
        return self._connection_state == ConnectionState.CONNECTED and self._execution_state == ExecutionState.IDLE

    def _describe_state(self) -> str:
        return f"({self._connection_state.value}, {self._execution_state.value})"

    def _set_state(self, connection: ConnectionState, execution: ExecutionState, note: StatusNote) -> None:
        self._connection_state = connection
        self._execution_state = execution if connection == ConnectionState.CONNECTED else ExecutionState.IDLE
        self._note = note

    def _send(self, text: str) -> bool:
        if self._handle is None:
            self._emit(LocalNotice("Not connected"))
            return False
        try:
            self._transport.send(self._handle, text)
        except TransportError as e:
            logger.warning(f"Send failed: {e}")
            self._emit(LocalNotice(f"Send failed: {e}"))
            return False
        return True

    def _retire_handle(self) -> None:
        """Stop accepting events for the current handle and close it."""
        handle = self._handle
        self._handle = None
        self._active_generation = None
        if handle is not None:
            self._close_quietly(handle)

    def _close_quietly(self, handle: TransportHandle) -> None:
        try:
            self._transport.close(handle)
        except Exception as e:
            logger.warning(f"Error closing handle {handle.handle_id}: {e}")

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        token = object()
        self._reconnect_token = token
        self._reconnect_task = self._scheduler.call_later(self.reconnect_delay, partial(self._auto_reconnect, token))

    def _auto_reconnect(self, token: object) -> None:
        with self._lock:
            # Superseded by connect()/disconnect() while this call waited on the lock
            if self._reconnect_token is not token:
                return
            self._reconnect_token = None
            self._reconnect_task = None
            logger.info("Automatic reconnect after stop")
            self.connect()

    def _cancel_reconnect(self) -> bool:
        pending = self._reconnect_token is not None
        task = self._reconnect_task
        self._reconnect_token = None
        self._reconnect_task = None
        if task is not None:
            task.cancel()
        return pending

    def _emit_status(self) -> None:
        severity, label = self.status
        self._emit(StatusChanged(severity, label))

    def _emit(self, event: SessionEvent) -> None:
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception:
                logger.exception(f"Presentation sink failed on {type(event).__name__}")
