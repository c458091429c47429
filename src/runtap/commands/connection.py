"""Backend connection commands.

PUBLIC API:
  - connect: Open a fresh session to the execution backend
  - disconnect: Close the session
  - status: Show session status
"""

from typing import Any

from runtap.app import app
from runtap.commands._errors import error_response, info_response
from runtap.config import derive_endpoint
from runtap.errors import ConfigError


def _status_fields(status: dict[str, Any]) -> dict[str, Any]:
    return {
        "Status": f"{status['label']} ({status['severity']})",
        "Endpoint": status["endpoint"],
        "Generation": status["generation"],
        "Input": "enabled" if status["input_enabled"] else "disabled",
        "Reconnect pending": "yes" if status["reconnect_pending"] else None,
        "Last run ended": status["last_end_reason"] or None,
    }


@app.command(
    display="markdown",
    fastmcp={"type": "tool", "description": "Connect to the code-execution backend"},
)
def connect(state, endpoint: str = None, origin: str = None, wait: float = 5.0) -> dict:  # pyright: ignore[reportArgumentType]
    """Open a fresh session, replacing any existing one.

    Args:
        endpoint: WebSocket endpoint, e.g. "ws://localhost:8080/terminal".
        origin: Page origin to derive the endpoint from, e.g. "https://host".
        wait: Seconds to wait for the connection. Defaults to 5.0.

    Returns:
        Connection status in markdown
    """
    if endpoint and origin:
        return error_response("invalid", "Pass either endpoint or origin, not both")

    if origin:
        try:
            endpoint = derive_endpoint(origin)
        except ConfigError as e:
            return error_response("invalid", str(e))

    status = state.service.connect(endpoint, wait=wait)

    if status["connection"] != "connected":
        return error_response(
            "connect_failed",
            f"Could not connect to {status['endpoint']} ({status['label']})",
            endpoint=status["endpoint"],
        )

    return info_response("Connection Established", _status_fields(status))


@app.command(
    display="markdown",
    fastmcp={"type": "tool", "description": "Disconnect from the code-execution backend"},
)
def disconnect(state) -> dict:
    """Close the session and cancel any pending automatic reconnect."""
    was_connected = state.service.disconnect()
    return info_response("Disconnect Status", {"Status": "Disconnected" if was_connected else "Not connected"})


@app.command(
    display="markdown",
    fastmcp={"type": "resource", "mime_type": "text/markdown", "description": "Session status"},
)
def status(state) -> dict:
    """Show connection and execution status."""
    current = state.service.status()
    return info_response("Session Status", _status_fields(current), status=current["severity"])
