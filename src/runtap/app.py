"""runtap ReplKit2 application.

Main application entry point providing dual REPL/MCP functionality for a
remote code-execution session: connect to a backend, run code, stream its
build log and output, and feed it input.
"""

from dataclasses import dataclass, field

from replkit2 import App

from runtap.services import RunTapService


@dataclass
class RunTapState:
    """Application state for runtap.

    Attributes:
        service: Service owning the session and its console buffer.
    """

    service: RunTapService = field(default_factory=RunTapService)

    def cleanup(self) -> None:
        """Disconnect the session and release clients."""
        self.service.cleanup()


# Must be created before command imports for decorator registration
app = App(
    "runtap",
    RunTapState,
    mcp_config={
        "uri_scheme": "runtap",
        "description": "Remote code-execution session client",
        "tags": {"execution", "compiler", "terminal", "websocket"},
    },
)


# Command imports trigger @app.command decorator registration
from runtap.commands import connection  # noqa: E402, F401
from runtap.commands import execution  # noqa: E402, F401
from runtap.commands import console  # noqa: E402, F401
from runtap.commands import files  # noqa: E402, F401
