"""runtap - remote code-execution session client with MCP support.

Keeps one WebSocket session to an execution backend: submit a program, stream
its build log and output, feed it interactive input, stop it. Built on
ReplKit2 for dual REPL/MCP functionality.

PUBLIC API:
  - Session: Execution session state machine
  - PresentationSink: Base class for event consumers
  - WebSocketTransport: websocket-client based transport
  - load_config: Load runtap.toml
  - main: Entry point function for CLI
  - __version__: Package version string
"""

import sys
from importlib.metadata import PackageNotFoundError, version

from runtap.config import load_config
from runtap.events import PresentationSink
from runtap.session import Session
from runtap.transport import WebSocketTransport

try:
    __version__ = version("runtap")
except PackageNotFoundError:
    __version__ = "0.0.0"


def main():
    """Entry point for runtap.

    Modes:
    - With --mcp: Runs as MCP server
    - Otherwise: Starts the interactive REPL
    """
    import atexit

    from runtap.app import app

    atexit.register(lambda: app.state.cleanup() if hasattr(app, "state") and app.state else None)

    if "--mcp" in sys.argv:
        app.mcp.run()
    else:
        app.run(title="runtap - Remote Code Execution")


__all__ = ["Session", "PresentationSink", "WebSocketTransport", "load_config", "main", "__version__"]
