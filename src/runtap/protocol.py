"""Wire codec for the runtap execution protocol.

Every message is UTF-8 text shaped ``TAG:PAYLOAD``. Only the first colon is
structural - the payload is the rest of the message and is never escaped, so
it may itself contain colons and newlines.

PUBLIC API:
  - Tag: Wire tags (outbound RUN/INPUT, inbound BUILD_LOG/OUTPUT/END/ERROR)
  - Run, Input: Outbound messages
  - BuildLog, Output, Ended, Error: Inbound messages
  - DecodeFailure: Reasons raw text did not decode to a message
  - encode: Message to wire text
  - decode: Wire text to message or DecodeFailure
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Literal

__all__ = [
    "DELIMITER",
    "Tag",
    "Run",
    "Input",
    "BuildLog",
    "Output",
    "Ended",
    "Error",
    "DecodeFailure",
    "Message",
    "InboundMessage",
    "OutboundMessage",
    "encode",
    "decode",
]

DELIMITER = ":"


class Tag(str, Enum):
    """Leading token of a wire message."""

    RUN = "RUN"
    INPUT = "INPUT"
    BUILD_LOG = "BUILD_LOG"
    OUTPUT = "OUTPUT"
    END = "END"
    ERROR = "ERROR"


class DecodeFailure(str, Enum):
    """Why raw text could not be decoded.

    Callers drop both kinds silently - keepalive text and tags from a newer
    or older backend must never disturb a session.
    """

    NO_DELIMITER = "no_delimiter"
    UNKNOWN_TAG = "unknown_tag"


@dataclass(frozen=True)
class Run:
    """Submit source code for compilation and execution."""

    source_code: str
    tag: ClassVar[Tag] = Tag.RUN

    @property
    def payload(self) -> str:
        return self.source_code


@dataclass(frozen=True)
class Input:
    """One line of interactive input for the running program."""

    text: str
    tag: ClassVar[Tag] = Tag.INPUT

    @property
    def payload(self) -> str:
        return self.text


@dataclass(frozen=True)
class BuildLog:
    """One compiler/build diagnostic line."""

    text: str
    tag: ClassVar[Tag] = Tag.BUILD_LOG

    @property
    def payload(self) -> str:
        return self.text


@dataclass(frozen=True)
class Output:
    """Raw program output chunk, ANSI escapes included."""

    chunk: str
    tag: ClassVar[Tag] = Tag.OUTPUT

    @property
    def payload(self) -> str:
        return self.chunk


@dataclass(frozen=True)
class Ended:
    """Execution finished.

    Attributes:
        reason: Payload as sent by the backend. Conventionally empty; some
            backends send ``SUCCESS`` or ``TIMEOUT``.
    """

    reason: str = ""
    tag: ClassVar[Tag] = Tag.END

    @property
    def payload(self) -> str:
        return self.reason


@dataclass(frozen=True)
class Error:
    """Unrecoverable build or runtime error reported by the backend."""

    text: str
    tag: ClassVar[Tag] = Tag.ERROR

    @property
    def payload(self) -> str:
        return self.text


type OutboundMessage = Run | Input
type InboundMessage = BuildLog | Output | Ended | Error
type Message = OutboundMessage | InboundMessage
type Direction = Literal["inbound", "outbound"]

_DECODERS: dict[str, dict[str, Callable[[str], Message]]] = {
    "inbound": {
        Tag.BUILD_LOG.value: BuildLog,
        Tag.OUTPUT.value: Output,
        Tag.END.value: Ended,
        Tag.ERROR.value: Error,
    },
    "outbound": {
        Tag.RUN.value: Run,
        Tag.INPUT.value: Input,
    },
}


def encode(message: Message) -> str:
    """Encode a message as ``TAG:PAYLOAD``.

    Total for every message type; the payload is written verbatim.
    """
    return f"{message.tag.value}{DELIMITER}{message.payload}"


def decode(raw: str | bytes, direction: Direction = "inbound") -> Message | DecodeFailure:
    """Decode wire text into a typed message.

    Args:
        raw: Text as delivered by the transport. Bytes are decoded as UTF-8
            with replacement.
        direction: Which side's tags to accept. Clients decode "inbound"
            (backend to client); "outbound" decodes what a client sends.

    Returns:
        The decoded message, or a DecodeFailure describing why not.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    tag, sep, payload = raw.partition(DELIMITER)
    if not sep:
        return DecodeFailure.NO_DELIMITER

    factory = _DECODERS[direction].get(tag)
    if factory is None:
        return DecodeFailure.UNKNOWN_TAG

    return factory(payload)
