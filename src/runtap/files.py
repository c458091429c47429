"""HTTP client for the backend file API.

The backend keeps scratch source files it can compile outside a session:
create an empty file, save code into it, compile it.

PUBLIC API:
  - FilesClient: httpx wrapper for the /api/files endpoints
  - CompileResult: Outcome of a compile request
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from runtap.errors import FilesAPIError

__all__ = ["FilesClient", "CompileResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileResult:
    """Outcome of a compile request.

    Attributes:
        status: "ok" or "compile_error".
        output: Compiler output, warnings included.
        executable: Name of the built executable when status is "ok".
    """

    status: str
    output: str = ""
    executable: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class FilesClient:
    """HTTP client for the backend file API.

    Attributes:
        base_url: API base, e.g. "http://localhost:8080/api/files".
    """

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        """Initialize file API client.

        Args:
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, e.g. for mocking
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def post(self, path: str, **kwargs) -> Dict[str, Any]:
        """Make POST request to the file API.

        Args:
            path: API path (e.g., "/create", "/compile")
            **kwargs: Additional arguments passed to httpx.post

        Returns:
            Response JSON as dictionary

        Raises:
            FilesAPIError: On connection, HTTP or decoding error, or when the
                backend answers with status "error"
        """
        try:
            response = self._client.post(f"{self.base_url}{path}", **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.ConnectError as e:
            logger.error(f"Failed to connect to file API at {self.base_url}: {e}")
            raise FilesAPIError(f"Cannot connect to file API at {self.base_url}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error from file API: {e}")
            raise FilesAPIError(f"File API request {path} failed: {e}") from e
        except ValueError as e:
            raise FilesAPIError(f"File API returned invalid JSON for {path}") from e

        if not isinstance(data, dict):
            raise FilesAPIError(f"Unexpected response for {path}: {data!r}")
        if data.get("status") == "error":
            raise FilesAPIError(data.get("msg") or f"File API request {path} failed")
        return data

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "FilesClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # Convenience methods for the file lifecycle

    def create(self) -> str:
        """Create an empty source file.

        Returns:
            Generated file name, e.g. "3f2a....c"
        """
        data = self.post("/create")
        file_name = data.get("fileName")
        if not file_name:
            raise FilesAPIError("Create response has no fileName")
        return file_name

    def save(self, file_name: str, code: str) -> None:
        """Overwrite a source file with code."""
        self.post("/save", json={"fileName": file_name, "code": code})

    def compile(self, file_name: str) -> CompileResult:
        """Compile a saved source file.

        Returns:
            CompileResult. A compile error is a result, not an exception.
        """
        data = self.post("/compile", json={"fileName": file_name})
        return CompileResult(status=data.get("status", ""), output=data.get("output", ""), executable=data.get("exe"))

    def compile_code(self, code: str) -> tuple[str, CompileResult]:
        """Create, save and compile code in one go.

        Returns:
            Tuple of (file_name, result).
        """
        file_name = self.create()
        self.save(file_name, code)
        return file_name, self.compile(file_name)
