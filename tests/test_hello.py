"""Tests for the hello-world server."""

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from mcp_sandbox import hello


class TestHelloTools:
    """Test cases for the greeting tools."""

    def test_say_hello(self):
        greeting = hello.say_hello("World")

        assert greeting.startswith("Hello, World!")
        assert "Greeting sent at:" in greeting

    def test_say_hello_requires_name(self):
        with pytest.raises(ToolError, match="Name is required"):
            hello.say_hello("   ")

    def test_server_info(self):
        info = hello.get_server_info()

        assert info["server_name"] == "hello-world-mcp-server"
        assert info["tools_available"] == ["say_hello", "get_server_info"]
        assert info["uptime"] >= 0
