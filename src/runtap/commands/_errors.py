"""Shared error and info response builders for runtap commands.

PUBLIC API:
  - error_response: Markdown error response
  - info_response: Markdown response with a heading and key/value fields
  - check_connected: Error response unless the session is connected
"""

from typing import Any, Optional

from replkit2.textkit import markdown

from runtap.session import ConnectionState

# Standard error message templates
_ERRORS = {
    "not_connected": {
        "message": "Not connected to the execution backend",
        "help": ["Use `connect()` to open a session", "Use `status()` to see the configured endpoint"],
    },
    "busy": {
        "message": "A program is already running",
        "help": ["Wait for it to finish", "Or `stop()` it - the session reconnects automatically"],
    },
    "no_run": {
        "message": "No program is running",
        "help": ["Start one with `run(code=...)` or `run(file=...)`"],
    },
}


def error_response(error_key: str, custom_message: Optional[str] = None, **context) -> dict[str, Any]:
    """Build an error response for markdown display commands.

    Args:
        error_key: Key from the error templates, or any identifier.
        custom_message: Override the template message.
        **context: Extra context, shown below the message and kept in frontmatter.

    Returns:
        Markdown dict with an error alert.
    """
    info = _ERRORS.get(error_key, {})
    message = custom_message or info.get("message", "Error occurred")

    builder = markdown().element("alert", message=message, level="error")

    if help_items := info.get("help"):
        builder.text("**How to fix:**")
        builder.list_(help_items)

    for key, value in context.items():
        if value:
            builder.text(f"_{key}: {value}_")

    return builder.frontmatter(status="error", error=message, **context).build()


def info_response(title: str, fields: dict[str, Any], status: str = "ok") -> dict[str, Any]:
    """Build a heading plus one bold-key line per field.

    Fields with value None are skipped.
    """
    builder = markdown().heading(title, level=2)

    for key, value in fields.items():
        if value is not None:
            builder.text(f"**{key}:** {value}")

    return builder.frontmatter(status=status).build()


def check_connected(state) -> Optional[dict[str, Any]]:
    """Return an error response unless the session is connected."""
    if state.service.session.connection_state != ConnectionState.CONNECTED:
        return error_response("not_connected")
    return None
