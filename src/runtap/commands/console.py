"""Console buffer commands - build log, program output, notices."""

from datetime import datetime

from replkit2.textkit import markdown

from runtap.app import app


@app.command(
    display="markdown",
    fastmcp={"type": "resource", "mime_type": "text/markdown", "description": "Program output of the current run"},
)
def output(state, clear: bool = False) -> dict:
    """Show program output of the current run.

    Args:
        clear: Empty the output buffer after reading. Defaults to False.
    """
    text = state.service.console.read_output(clear=clear)
    status = state.service.status()
    return (
        markdown()
        .code_block(text or "(no output)", language="text")
        .frontmatter(status=status["label"], chars=len(text))
        .build()
    )


@app.command(
    display="markdown",
    fastmcp={"type": "resource", "mime_type": "text/markdown", "description": "Build log of the current run"},
)
def log(state, clear: bool = False) -> dict:
    """Show build log of the current run.

    Args:
        clear: Empty the build log after reading. Defaults to False.
    """
    text = state.service.console.read_build_log(clear=clear)
    status = state.service.status()
    return (
        markdown()
        .code_block(text or "(empty)", language="text")
        .frontmatter(status=status["label"], chars=len(text))
        .build()
    )


@app.command(
    display="table",
    headers=["Time", "Message"],
    fastmcp={"type": "tool", "description": "List local session notices"},
)
def notices(state) -> list[dict]:
    """List client-side notices (refused input, connection failures)."""
    return [
        {"Time": datetime.fromtimestamp(n["time"]).strftime("%H:%M:%S"), "Message": n["message"]}
        for n in state.service.console.notices()
    ]
