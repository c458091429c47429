"""Main service orchestrator for runtap business logic."""

import logging
import time
from pathlib import Path
from typing import Any, Optional

from runtap.config import RunTapConfig, get_config
from runtap.files import CompileResult, FilesClient
from runtap.scheduler import Scheduler
from runtap.services.console import ConsoleBuffer
from runtap.session import ConnectionState, Session
from runtap.transport import Transport, WebSocketTransport

logger = logging.getLogger(__name__)


class RunTapService:
    """Main service wiring configuration, session and console buffer.

    Shared by the REPL and MCP commands so both see one session.

    Attributes:
        config: Resolved configuration.
        console: Presentation sink buffering session events.
        session: The execution session.
    """

    def __init__(
        self,
        config: Optional[RunTapConfig] = None,
        transport: Optional[Transport] = None,
        scheduler: Optional[Scheduler] = None,
        files: Optional[FilesClient] = None,
    ):
        """Initialize service.

        Args:
            config: Configuration. Loads runtap.toml when omitted.
            transport: Transport override. Defaults to WebSocketTransport.
            scheduler: Scheduler override for the post-stop reconnect.
            files: File API client override.
        """
        self.config = config or get_config()
        self.console = ConsoleBuffer(maxlen=self.config.buffer_size)

        if transport is None:
            transport = WebSocketTransport(
                connect_timeout=self.config.connect_timeout,
                ping_interval=self.config.ping_interval,
                ping_timeout=self.config.ping_timeout,
            )

        self.session = Session(
            transport,
            self.config.endpoint,
            sinks=[self.console],
            scheduler=scheduler,
            reconnect_delay=self.config.reconnect_delay,
        )
        self._files = files

    @property
    def files(self) -> FilesClient:
        """File API client, created on first use."""
        if self._files is None:
            self._files = FilesClient(self.config.files_url, timeout=self.config.files_timeout)
        return self._files

    def connect(self, endpoint: Optional[str] = None, wait: float = 0.0) -> dict[str, Any]:
        """Open a fresh session connection.

        Args:
            endpoint: Optional endpoint override.
            wait: Seconds to wait for the connection to settle.

        Returns:
            Status dict after connecting (or after the wait).
        """
        self.session.connect(endpoint)
        if wait > 0:
            self.wait_until_settled(wait)
        return self.status()

    def wait_until_settled(self, timeout: float) -> bool:
        """Wait until the session is no longer connecting.

        Returns:
            True if settled within timeout.
        """
        deadline = time.time() + timeout
        while self.session.connection_state == ConnectionState.CONNECTING:
            if time.time() >= deadline:
                return False
            time.sleep(0.05)
        return True

    def disconnect(self) -> bool:
        return self.session.disconnect()

    def run(self, source_code: str) -> bool:
        return self.session.run(source_code)

    def stop(self) -> bool:
        return self.session.stop()

    def send_input(self, text: str) -> bool:
        return self.session.send_input(text)

    def status(self) -> dict[str, Any]:
        """Session status for display."""
        snap = self.session.snapshot()
        return {
            "endpoint": snap.endpoint,
            "generation": snap.generation,
            "connection": snap.connection_state.value,
            "execution": snap.execution_state.value,
            "severity": snap.severity.value,
            "label": snap.label,
            "input_enabled": snap.input_enabled,
            "reconnect_pending": snap.reconnect_pending,
            "last_end_reason": self.console.last_end_reason,
        }

    def compile(self, source_code: str) -> tuple[str, CompileResult]:
        """Compile code through the file API, outside any session."""
        file_name, result = self.files.compile_code(source_code)
        logger.info(f"Compiled {file_name}: {result.status}")
        return file_name, result

    def cleanup(self) -> None:
        """Disconnect and release clients."""
        self.session.disconnect()
        if self._files is not None:
            self._files.close()
            self._files = None


def load_source(code: Optional[str] = None, file: Optional[str] = None) -> str:
    """Resolve program source from inline code or a file path.

    Raises:
        ValueError: If neither or both are given, or the file is unreadable.
    """
    if (code is None) == (file is None):
        raise ValueError("Provide exactly one of code or file")
    if code is not None:
        return code

    path = Path(file).expanduser()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read {path}: {e}") from e
