"""Console buffer - the presentation sink behind the REPL commands.

PUBLIC API:
  - ConsoleBuffer: Thread-safe build log, program output and notice buffers
"""

import threading
import time
from collections import deque

from runtap.events import PresentationSink, Severity

__all__ = ["ConsoleBuffer"]


class ConsoleBuffer(PresentationSink):
    """Collects session events into readable text buffers.

    Build log and program output are kept as separate areas, both cleared
    when a new run starts. Output chunks are stored raw, ANSI escapes
    included.

    Attributes:
        severity: Latest status severity.
        label: Latest status label.
        last_end_reason: Payload of the most recent END message.
    """

    def __init__(self, maxlen: int = 5000):
        """Initialize empty buffers.

        Args:
            maxlen: Maximum entries kept per buffer (oldest dropped first).
        """
        self._lock = threading.Lock()
        self._build_log: deque[str] = deque(maxlen=maxlen)
        self._output: deque[str] = deque(maxlen=maxlen)
        self._notices: deque[dict] = deque(maxlen=500)

        self.severity = Severity.ERR
        self.label = "Disconnected"
        self.last_end_reason: str | None = None

    def on_status_changed(self, severity: Severity, label: str) -> None:
        with self._lock:
            self.severity = severity
            self.label = label

    def on_build_log(self, text: str) -> None:
        with self._lock:
            self._build_log.append(text + "\n")

    def on_output(self, chunk: str) -> None:
        with self._lock:
            self._output.append(chunk)

    def on_error(self, text: str) -> None:
        with self._lock:
            self._build_log.append(f"\n[ERROR] {text}")

    def on_input_echoed(self, text: str) -> None:
        with self._lock:
            self._output.append(f"\n[Input Sent: {text}]\n")

    def on_notice(self, text: str) -> None:
        with self._lock:
            self._build_log.append(f"\n[System] {text}")
            self._notices.append({"time": time.time(), "message": text})

    def on_run_started(self, source_code: str) -> None:
        with self._lock:
            self._build_log.clear()
            self._output.clear()
            self.last_end_reason = None

    def on_run_ended(self, reason: str) -> None:
        with self._lock:
            self.last_end_reason = reason

    def read_build_log(self, clear: bool = False) -> str:
        """Build log text.

        Args:
            clear: Empty the buffer after reading.
        """
        with self._lock:
            text = "".join(self._build_log)
            if clear:
                self._build_log.clear()
            return text

    def read_output(self, clear: bool = False) -> str:
        """Program output text, raw.

        Args:
            clear: Empty the buffer after reading.
        """
        with self._lock:
            text = "".join(self._output)
            if clear:
                self._output.clear()
            return text

    def notices(self) -> list[dict]:
        """Local notices, oldest first, as {"time", "message"} dicts."""
        with self._lock:
            return list(self._notices)

    def clear(self) -> None:
        """Clear all buffers."""
        with self._lock:
            self._build_log.clear()
            self._output.clear()
            self._notices.clear()
