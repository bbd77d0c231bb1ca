from __future__ import annotations

import logging
import time
from datetime import datetime

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from mcp_sandbox import __version__
from mcp_sandbox.config import setup_logging

logger = logging.getLogger(__name__)

SERVER_NAME = "hello-world-mcp-server"

mcp = FastMCP(SERVER_NAME)

_STARTED_AT = time.monotonic()


@mcp.tool()
def say_hello(name: str) -> str:
    """
    A simple greeting tool that says hello to someone.
    """
    if not name.strip():
        raise ToolError("Name is required for greeting")
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    return f"Hello, {name}! Welcome to your first MCP server!\n\nGreeting sent at: {timestamp}"


@mcp.tool()
def get_server_info() -> dict:
    """
    Get information about this MCP server.
    """
    return {
        "server_name": SERVER_NAME,
        "version": __version__,
        "capabilities": ["tools"],
        "description": "A simple Hello World MCP server for learning",
        "tools_available": ["say_hello", "get_server_info"],
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


def main() -> None:
    setup_logging()
    logger.info("Available tools: say_hello, get_server_info")
    mcp.run()


if __name__ == "__main__":
    main()
