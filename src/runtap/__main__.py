"""Remote code-execution session client.

Entry point for runtap that runs either as a REPL or as an MCP server
depending on command line arguments.
"""

import logging

from runtap import main

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
)


if __name__ == "__main__":
    main()
