"""
MCP Client Integration Module.

Provides functionality to:
- Describe external MCP servers (transport, auth, priority, tool filters)
- Connect to them over HTTP or SSE
- Merge their tools into one set for a model call
- Persist per-brand server configurations
"""

from mcplink.mcp.auth_headers import build_auth_headers
from mcplink.mcp.client import (
    HttpConnectionClient,
    MCPConnectionClient,
    SseConnectionClient,
    create_connection_client,
)
from mcplink.mcp.manager import MCPClientManager, create_mcp_manager
from mcplink.mcp.merge import filter_tools, merge_tool_sets, sort_by_priority
from mcplink.mcp.types import (
    ActiveConnection,
    AuthType,
    ConnectionStatus,
    HttpServerConfig,
    ServerConfig,
    SseServerConfig,
    StdioServerConfig,
    ToolSet,
    TransportType,
    coerce_server_config,
)

__all__ = [
    "ActiveConnection",
    "AuthType",
    "ConnectionStatus",
    "HttpConnectionClient",
    "HttpServerConfig",
    "MCPClientManager",
    "MCPConnectionClient",
    "ServerConfig",
    "SseConnectionClient",
    "SseServerConfig",
    "StdioServerConfig",
    "ToolSet",
    "TransportType",
    "build_auth_headers",
    "coerce_server_config",
    "create_connection_client",
    "create_mcp_manager",
    "filter_tools",
    "merge_tool_sets",
    "sort_by_priority",
]
