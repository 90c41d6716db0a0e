"""
MCP Client Manager.

Owns the live connections of one request or session scope and merges
their tools into a single set for a model call.

Precedence:
- connect_all() connects in priority order (highest first), concurrently
- get_all_tools() merges in that same order; the first server offering a
  tool name keeps it
- Each server's allow/deny lists are applied before merging

None of the public operations raise for expected failures (disabled or
unreachable servers, a tool listing that fails). They resolve to a
ConnectionStatus or simply leave the failing server out.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from mcplink.config import get_settings
from mcplink.errors import MCPToolNotFoundError, ServerConfigError, UnsupportedTransportError
from mcplink.mcp.auth_headers import build_auth_headers
from mcplink.mcp.client import DEFAULT_TIMEOUT_MS, STDIO_UNSUPPORTED, MCPConnectionClient, create_connection_client
from mcplink.mcp.merge import filter_tools, merge_tool_sets, sort_by_priority
from mcplink.mcp.types import (
    ActiveConnection,
    ConnectionStatus,
    ServerConfig,
    ToolSet,
    TransportType,
    coerce_server_config,
    config_field,
    is_enabled,
    transport_of,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., MCPConnectionClient]
ConfigInput = Union[ServerConfig, Mapping[str, Any]]

DISABLED_ERROR = "Server is disabled"


class MCPClientManager:
    """
    Manages connections to multiple MCP servers and aggregates their tools.

    Use it as an async context manager to tie connections to a scope:

        async with MCPClientManager() as manager:
            await manager.connect_all(configs)
            tools = await manager.get_all_tools()
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        client_factory: ClientFactory = create_connection_client,
    ):
        """
        Initialize the manager.

        Args:
            timeout_ms: Connection timeout for configs without their own timeout_ms
            client_factory: Builds a client from (config, headers=, timeout_ms=)
        """
        self.timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._connections: Dict[str, ActiveConnection] = {}
        self._sequence = itertools.count()

    async def __aenter__(self) -> "MCPClientManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect_all()

    # =========================
    # Connect
    # =========================

    async def connect(self, config: ConfigInput) -> ConnectionStatus:
        """
        Connect to one MCP server.

        Never raises: disabled servers, invalid configs and connection
        failures all come back as a status with connected=False.
        """
        server_id = str(config_field(config, "id", ""))
        server_name = str(config_field(config, "name", server_id))

        config_error: Optional[ServerConfigError] = None
        try:
            resolved = coerce_server_config(config)
        except ServerConfigError as exc:
            config_error = exc
            enabled = is_enabled(config)
        else:
            enabled = resolved.enabled

        if not enabled:
            logger.debug(f"Server {server_name} is disabled, skipping")
            return ConnectionStatus(server_id, server_name, connected=False, error=DISABLED_ERROR)

        sequence = next(self._sequence)
        client: Optional[MCPConnectionClient] = None

        try:
            transport = transport_of(config)
            if transport == TransportType.STDIO.value:
                raise UnsupportedTransportError(transport, STDIO_UNSUPPORTED)
            if config_error is not None:
                raise config_error
            client = self._client_factory(
                resolved,
                headers=build_auth_headers(resolved),
                timeout_ms=resolved.timeout_ms or self.timeout_ms,
            )
            await client.connect()
            tool_count = len(await client.tools())
        except Exception as exc:
            logger.error(f"Failed to connect to MCP server {server_name}: {exc}")
            if client is not None:
                await self._close_client(client, server_name)
            return ConnectionStatus(
                server_id,
                server_name,
                connected=False,
                error=str(exc) or type(exc).__name__,
            )

        previous = self._connections.get(resolved.id)
        self._connections[resolved.id] = ActiveConnection(client=client, config=resolved, sequence=sequence)
        if previous is not None:
            logger.warning(f"Replacing existing connection for MCP server {server_name}")
            await self._close_client(previous.client, server_name)

        logger.info(f"Connected to MCP server {server_name} with {tool_count} tools")
        return ConnectionStatus(resolved.id, resolved.name, connected=True, tool_count=tool_count)

    async def connect_all(self, configs: Sequence[ConfigInput]) -> List[ConnectionStatus]:
        """
        Connect to every server concurrently.

        Returns one status per config, ordered by priority (highest first,
        ties in input order), whatever each individual outcome.
        """
        ordered = sort_by_priority(configs)
        statuses = await asyncio.gather(*(self.connect(config) for config in ordered))

        connected = sum(1 for status in statuses if status.connected)
        logger.info(f"Connected {connected} of {len(statuses)} MCP servers")
        return list(statuses)

    # =========================
    # Tools
    # =========================

    def _ordered_connections(self) -> List[ActiveConnection]:
        return sorted(
            self._connections.values(),
            key=lambda conn: (-conn.config.priority, conn.sequence),
        )

    async def _fetch_tools(self, connection: ActiveConnection) -> Optional[ToolSet]:
        try:
            tools = await connection.client.tools()
        except Exception as exc:
            logger.error(f"Failed to get tools from server {connection.config.name}: {exc}")
            return None
        return filter_tools(tools, connection.config.allowed_tools, connection.config.blocked_tools)

    async def get_all_tools(self) -> ToolSet:
        """
        Merge the filtered tools of every active connection.

        Higher-priority servers win name collisions. A server whose listing
        fails is left out.
        """
        connections = self._ordered_connections()
        results = await asyncio.gather(*(self._fetch_tools(conn) for conn in connections))
        return merge_tool_sets(tools for tools in results if tools is not None)

    async def get_server_tools(self, server_id: str) -> Optional[ToolSet]:
        """
        Get the filtered tools of one server.

        Returns:
            Tool set, or None if the server is not connected or its listing failed
        """
        connection = self._connections.get(server_id)
        if connection is None:
            return None
        return await self._fetch_tools(connection)

    async def call_tool(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Invoke a tool on the highest-priority server that offers it.

        Raises:
            MCPToolNotFoundError: If no active server offers the tool
        """
        for connection in self._ordered_connections():
            tools = await self._fetch_tools(connection)
            if tools and tool_name in tools:
                logger.debug(f"Routing {tool_name} to {connection.config.name}")
                return await connection.client.call_tool(tool_name, arguments or {})
        raise MCPToolNotFoundError(tool_name)

    # =========================
    # Disconnect
    # =========================

    async def _close_client(self, client: MCPConnectionClient, server_name: str) -> None:
        try:
            await client.close()
        except Exception as exc:
            logger.error(f"Error closing MCP client {server_name}: {exc}")

    async def disconnect(self, server_id: str) -> None:
        """Close and forget one connection; close errors are logged only."""
        connection = self._connections.pop(server_id, None)
        if connection is None:
            return
        await self._close_client(connection.client, connection.config.name)
        logger.info(f"Disconnected from MCP server {connection.config.name}")

    async def disconnect_all(self) -> None:
        """Close every connection concurrently, then clear the active set."""
        connections = list(self._connections.values())
        if connections:
            logger.info(f"Shutting down {len(connections)} MCP connections")
        try:
            await asyncio.gather(
                *(self._close_client(conn.client, conn.config.name) for conn in connections)
            )
        finally:
            self._connections.clear()

    # =========================
    # Status
    # =========================

    def get_connection_statuses(self) -> List[ConnectionStatus]:
        """Statuses of the currently active connections."""
        return [
            ConnectionStatus(conn.config.id, conn.config.name, connected=True)
            for conn in self._ordered_connections()
        ]

    def is_connected(self, server_id: str) -> bool:
        return server_id in self._connections

    @property
    def connected_count(self) -> int:
        return len(self._connections)


def create_mcp_manager(timeout_ms: Optional[int] = None) -> MCPClientManager:
    """Create a manager for one request or session scope."""
    return MCPClientManager(timeout_ms=timeout_ms or get_settings().mcp_connect_timeout_ms)
