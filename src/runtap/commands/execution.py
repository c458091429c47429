"""Program execution commands.

PUBLIC API:
  - run: Submit code for compilation and execution
  - stop: Stop the running program
  - send: Send one line of input to the running program
"""

from runtap.app import app
from runtap.commands._errors import check_connected, error_response, info_response
from runtap.services import load_source


@app.command(
    display="markdown",
    fastmcp={"type": "tool", "description": "Compile and run code on the backend"},
)
def run(state, code: str = None, file: str = None) -> dict:  # pyright: ignore[reportArgumentType]
    """Submit code for compilation and execution.

    Build log and program output stream into the console buffers; read them
    with `log()` and `output()`.

    Args:
        code: Program source.
        file: Path to a source file, instead of code.

    Examples:
        run(file="hello.c")
        run(code='int main(){puts("hi");}')

    Returns:
        Run status in markdown
    """
    try:
        source = load_source(code, file)
    except ValueError as e:
        return error_response("invalid_source", str(e))

    if error := check_connected(state):
        return error

    if not state.service.run(source):
        if state.service.session.input_enabled:
            return error_response("busy")
        return error_response("run_failed", "Run was not submitted", notices=len(state.service.console.notices()))

    return info_response("Run Started", {"Source": f"{len(source)} chars", "Status": "Running"})


@app.command(
    display="markdown",
    fastmcp={"type": "tool", "description": "Stop the running program"},
)
def stop(state) -> dict:
    """Stop the running program.

    Closes the connection, which ends the remote process, then reconnects
    automatically.
    """
    if not state.service.stop():
        return error_response("no_run")

    delay = state.service.session.reconnect_delay
    return info_response("Stopping", {"Status": "Stopping", "Reconnect": f"in {delay}s"})


@app.command(
    display="markdown",
    fastmcp={"type": "tool", "description": "Send a line of input to the running program"},
)
def send(state, text: str) -> dict:
    """Send one line of input to the running program's stdin.

    Args:
        text: Input line, without trailing newline.
    """
    if not state.service.send_input(text):
        return error_response("no_run")

    return info_response("Input Sent", {"Input": text})
