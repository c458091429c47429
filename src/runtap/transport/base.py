"""Abstract duplex connection capability.

The session never touches a concrete socket - it opens handles through a
Transport and receives lifecycle and data events through a listener.

PUBLIC API:
  - Transport: Base abstract class for duplex message transports
  - TransportHandle: Opaque handle for one connection
  - TransportEvent: Lifecycle or data event delivered to a listener
  - TransportEventKind: Opened, DataReceived, Closed, Failed
  - TransportListener: Callback type receiving TransportEvents
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

__all__ = ["Transport", "TransportHandle", "TransportEvent", "TransportEventKind", "TransportListener"]

_handle_ids = itertools.count(1)


class TransportEventKind(str, Enum):
    """Kinds of events a transport delivers for a handle."""

    OPENED = "opened"
    DATA_RECEIVED = "data_received"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransportEventKind.CLOSED, TransportEventKind.FAILED)


@dataclass(frozen=True)
class TransportEvent:
    """Event delivered for one handle.

    Attributes:
        kind: Event kind.
        data: Raw message for DATA_RECEIVED, failure detail for FAILED,
            close reason for CLOSED.
    """

    kind: TransportEventKind
    data: str | bytes = ""


type TransportListener = Callable[[TransportEvent], None]


@dataclass(eq=False)
class TransportHandle:
    """Opaque handle for one connection.

    Owned by whoever opened it. Never reused after close.

    Attributes:
        address: Endpoint the handle was opened against.
        handle_id: Process-unique identifier, for logs.
        extra: Implementation-specific state.
    """

    address: str
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    extra: dict[str, Any] = field(default_factory=dict)


class Transport(ABC):
    """Base abstract class for duplex message transports.

    Implementations must deliver, per handle, at most one OPENED event,
    DATA_RECEIVED events only after OPENED, and exactly one terminal event
    (CLOSED or FAILED), after which nothing more is delivered.
    """

    @abstractmethod
    def open(self, address: str, listener: TransportListener) -> TransportHandle:
        """Start opening a connection.

        Args:
            address: Endpoint address.
            listener: Receives every event for the returned handle.

        Returns:
            Handle for the new connection. OPENED arrives asynchronously.

        Raises:
            TransportError: CONNECT_FAILED if the endpoint is rejected outright.
        """
        pass

    @abstractmethod
    def send(self, handle: TransportHandle, text: str) -> None:
        """Send one text message.

        Raises:
            TransportError: NOT_OPEN if the handle is not open.
        """
        pass

    @abstractmethod
    def close(self, handle: TransportHandle) -> None:
        """Close a handle. Closing an already-closed handle is a no-op."""
        pass
