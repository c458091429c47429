"""Semantic events emitted by a session and the sink that consumes them.

The session never renders anything. It emits one of these events per
observable change and a presentation sink decides what to do with it.

PUBLIC API:
  - Severity: ok/warn/err
  - StatusChanged, BuildLogAppended, OutputAppended, ErrorReported,
    InputEchoed, LocalNotice, RunStarted, RunEnded: Event types
  - SessionEvent: Union of all event types
  - PresentationSink: Base class routing events to overridable hooks
  - SinkLike: A PresentationSink or any callable taking one event
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

__all__ = [
    "Severity",
    "StatusChanged",
    "BuildLogAppended",
    "OutputAppended",
    "ErrorReported",
    "InputEchoed",
    "LocalNotice",
    "RunStarted",
    "RunEnded",
    "SessionEvent",
    "PresentationSink",
    "SinkLike",
]


class Severity(str, Enum):
    """Status severity, as shown by a status indicator."""

    OK = "ok"
    WARN = "warn"
    ERR = "err"


@dataclass(frozen=True)
class StatusChanged:
    severity: Severity
    label: str


@dataclass(frozen=True)
class BuildLogAppended:
    text: str


@dataclass(frozen=True)
class OutputAppended:
    """Raw output chunk, ANSI escapes untouched."""

    chunk: str


@dataclass(frozen=True)
class ErrorReported:
    """Backend-reported build or runtime error. Not a transport failure."""

    text: str


@dataclass(frozen=True)
class InputEchoed:
    text: str


@dataclass(frozen=True)
class LocalNotice:
    """Client-generated notice. Never sent on the wire."""

    text: str


@dataclass(frozen=True)
class RunStarted:
    source_code: str


@dataclass(frozen=True)
class RunEnded:
    reason: str = ""


type SessionEvent = (
    StatusChanged | BuildLogAppended | OutputAppended | ErrorReported | InputEchoed | LocalNotice | RunStarted | RunEnded
)


class PresentationSink:
    """Receives session events and renders them.

    Override the ``on_*`` hooks you care about; the rest are no-ops. Hooks
    are called on whatever thread delivered the transport event, one at a
    time and in arrival order.
    """

    def handle(self, event: SessionEvent) -> None:
        """Route an event to its hook."""
        if isinstance(event, StatusChanged):
            self.on_status_changed(event.severity, event.label)
        elif isinstance(event, BuildLogAppended):
            self.on_build_log(event.text)
        elif isinstance(event, OutputAppended):
            self.on_output(event.chunk)
        elif isinstance(event, ErrorReported):
            self.on_error(event.text)
        elif isinstance(event, InputEchoed):
            self.on_input_echoed(event.text)
        elif isinstance(event, LocalNotice):
            self.on_notice(event.text)
        elif isinstance(event, RunStarted):
            self.on_run_started(event.source_code)
        elif isinstance(event, RunEnded):
            self.on_run_ended(event.reason)

    def __call__(self, event: SessionEvent) -> None:
        self.handle(event)

    def on_status_changed(self, severity: Severity, label: str) -> None:
        pass

    def on_build_log(self, text: str) -> None:
        pass

    def on_output(self, chunk: str) -> None:
        pass

    def on_error(self, text: str) -> None:
        pass

    def on_input_echoed(self, text: str) -> None:
        pass

    def on_notice(self, text: str) -> None:
        pass

    def on_run_started(self, source_code: str) -> None:
        pass

    def on_run_ended(self, reason: str) -> None:
        pass


type SinkLike = PresentationSink | Callable[[SessionEvent], None]
