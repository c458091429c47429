"""runtap exceptions.

PUBLIC API:
  - RunTapError: Base exception for all runtap operations
  - TransportErrorKind: Reasons a transport operation failed
  - TransportError: Connection transport failure
  - ConfigError: Invalid or unreadable configuration
  - FilesAPIError: Backend file API failure
"""

from enum import Enum


class RunTapError(Exception):
    """Base exception for all runtap operations."""

    pass


class TransportErrorKind(str, Enum):
    """Transport failure kinds."""

    CONNECT_FAILED = "connect_failed"
    NOT_OPEN = "not_open"


class TransportError(RunTapError):
    """Raised when the connection transport cannot open or send.

    Attributes:
        kind: Which operation failed.
    """

    def __init__(self, kind: TransportErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


class ConfigError(RunTapError):
    """Raised when runtap.toml cannot be read or holds invalid values."""

    pass


class FilesAPIError(RunTapError):
    """Raised when the backend file API is unreachable or reports an error."""

    pass
