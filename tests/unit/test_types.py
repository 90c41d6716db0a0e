"""
Unit tests for mcplink/mcp/types.py - server configs and connection status.
"""

import pytest

from mcplink.errors import ServerConfigError
from mcplink.mcp.types import (
    AuthType,
    ConnectionStatus,
    HttpServerConfig,
    SseServerConfig,
    StdioServerConfig,
    coerce_server_config,
    config_field,
)


class TestCoerceServerConfig:
    """Tests for coerce_server_config."""

    def test_http_mapping(self):
        """Test an HTTP row becomes an HttpServerConfig with defaults."""
        config = coerce_server_config({
            "id": "a",
            "name": "Alpha",
            "transport_type": "http",
            "url": "  https://mcp.example.com/mcp  ",
        })

        assert isinstance(config, HttpServerConfig)
        assert config.url == "https://mcp.example.com/mcp"
        assert config.auth_type == AuthType.NONE
        assert config.enabled is True
        assert config.priority == 0
        assert config.timeout_ms is None

    def test_sse_mapping(self):
        config = coerce_server_config({
            "id": "b",
            "name": "Beta",
            "transport_type": "sse",
            "url": "https://mcp.example.com/sse",
        })
        assert isinstance(config, SseServerConfig)

    def test_stdio_mapping(self):
        """Test stdio configs carry a command and default args."""
        config = coerce_server_config({
            "id": "c",
            "name": "Local",
            "transport_type": "stdio",
            "command": "npx",
            "args": None,
        })
        assert isinstance(config, StdioServerConfig)
        assert config.command == "npx"
        assert config.args == []

    def test_typed_config_passes_through(self):
        config = HttpServerConfig(id="a", name="A", url="https://x")
        assert coerce_server_config(config) is config

    def test_null_columns_use_defaults(self):
        """Test NULL database columns fall back to defaults."""
        config = coerce_server_config({
            "id": "a",
            "name": "A",
            "transport_type": "http",
            "url": "https://x",
            "auth_type": None,
            "enabled": None,
            "priority": None,
        })
        assert config.auth_type == AuthType.NONE
        assert config.enabled is True
        assert config.priority == 0

    def test_encrypted_token_column_alias(self):
        """Test auth_token_encrypted is accepted as auth_token."""
        config = coerce_server_config({
            "id": "a",
            "name": "A",
            "transport_type": "http",
            "url": "https://x",
            "auth_token_encrypted": "tok",
        })
        assert config.auth_token == "tok"

    def test_extra_columns_ignored(self):
        config = coerce_server_config({
            "id": "a",
            "name": "A",
            "transport_type": "http",
            "url": "https://x",
            "some_future_column": 1,
        })
        assert not hasattr(config, "some_future_column")

    def test_missing_transport(self):
        with pytest.raises(ServerConfigError, match="Transport type is required"):
            coerce_server_config({"id": "a", "name": "A", "url": "https://x"})

    def test_unknown_transport(self):
        with pytest.raises(ServerConfigError, match="Unknown transport type: websocket"):
            coerce_server_config({"id": "a", "name": "A", "transport_type": "websocket"})

    def test_http_missing_url(self):
        """Test an HTTP config without a URL fails with a clear message."""
        with pytest.raises(ServerConfigError) as exc_info:
            coerce_server_config({"id": "a", "name": "A", "transport_type": "http"})
        assert exc_info.value.message == "URL is required for HTTP transport"

    def test_sse_blank_url(self):
        with pytest.raises(ServerConfigError, match="URL is required for SSE transport"):
            coerce_server_config({"id": "a", "name": "A", "transport_type": "sse", "url": "   "})

    def test_missing_name(self):
        """Test pydantic errors are wrapped in ServerConfigError."""
        with pytest.raises(ServerConfigError) as exc_info:
            coerce_server_config({"id": "a", "transport_type": "http", "url": "https://x"})
        assert "name" in exc_info.value.message

    def test_non_positive_timeout(self):
        with pytest.raises(ServerConfigError):
            coerce_server_config({
                "id": "a",
                "name": "A",
                "transport_type": "http",
                "url": "https://x",
                "timeout_ms": 0,
            })

    def test_unsupported_object(self):
        with pytest.raises(ServerConfigError):
            coerce_server_config(["not", "a", "config"])


class TestConfigField:
    """Tests for config_field."""

    def test_reads_mapping(self):
        assert config_field({"priority": 3}, "priority", 0) == 3

    def test_reads_object(self):
        config = HttpServerConfig(id="a", name="A", url="https://x", priority=7)
        assert config_field(config, "priority", 0) == 7

    def test_none_uses_default(self):
        assert config_field({"priority": None}, "priority", 0) == 0


class TestConnectionStatus:
    """Tests for ConnectionStatus.to_dict."""

    def test_connected(self):
        status = ConnectionStatus("a", "Alpha", connected=True, tool_count=3)
        assert status.to_dict() == {
            "serverId": "a",
            "serverName": "Alpha",
            "connected": True,
            "toolCount": 3,
        }

    def test_failed(self):
        status = ConnectionStatus("a", "Alpha", connected=False, error="Server is disabled")
        assert status.to_dict() == {
            "serverId": "a",
            "serverName": "Alpha",
            "connected": False,
            "error": "Server is disabled",
        }
