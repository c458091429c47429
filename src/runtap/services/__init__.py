"""runtap service layer.

Sits between the REPL/MCP commands and the session, so commands stay thin
and share one session and one console buffer.

PUBLIC API:
  - RunTapService: Main service wiring config, session and console buffer
  - ConsoleBuffer: Presentation sink buffering build log, output and notices
  - load_source: Resolve program source from inline code or a file
"""

from runtap.services.console import ConsoleBuffer
from runtap.services.main import RunTapService, load_source

__all__ = ["RunTapService", "ConsoleBuffer", "load_source"]
