"""Duplex connection transports.

PUBLIC API:
  - Transport: Base abstract class for duplex message transports
  - TransportHandle: Opaque handle for one connection
  - TransportEvent: Lifecycle or data event delivered to a listener
  - TransportEventKind: Opened, DataReceived, Closed, Failed
  - WebSocketTransport: Transport over ws:// and wss:// endpoints
"""

from runtap.transport.base import Transport, TransportEvent, TransportEventKind, TransportHandle, TransportListener
from runtap.transport.websocket import WebSocketTransport

__all__ = [
    "Transport",
    "TransportEvent",
    "TransportEventKind",
    "TransportHandle",
    "TransportListener",
    "WebSocketTransport",
]
