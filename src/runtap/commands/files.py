"""Compile through the backend file API, without a session."""

from replkit2.textkit import markdown

from runtap.app import app
from runtap.commands._errors import error_response
from runtap.errors import FilesAPIError
from runtap.services import load_source


@app.command(
    display="markdown",
    fastmcp={"type": "tool", "description": "Compile code without running it"},
)
def compile(state, code: str = None, file: str = None) -> dict:  # pyright: ignore[reportArgumentType]
    """Compile code on the backend without running it.

    Args:
        code: Program source.
        file: Path to a source file, instead of code.

    Returns:
        Compiler output in markdown
    """
    try:
        source = load_source(code, file)
    except ValueError as e:
        return error_response("invalid_source", str(e))

    try:
        file_name, result = state.service.compile(source)
    except FilesAPIError as e:
        return error_response("files_api", str(e))

    builder = markdown().heading("Compiled" if result.ok else "Compile Error", level=2)
    if result.output:
        builder.code_block(result.output, language="text")
    else:
        builder.text("No compiler output.")

    return builder.frontmatter(status=result.status, file=file_name, executable=result.executable).build()
