"""
Per-server MCP connection clients.

Each client owns one transport connection and exposes the server's tool
listing. HTTP servers are spoken to with plain JSON-RPC over ``httpx``;
SSE servers go through the official MCP SDK. Stdio is refused outright,
this service never spawns local server processes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Dict, Optional

import httpx
from mcp import ClientSession
from mcp.client.sse import sse_client

from mcplink import __version__
from mcplink.errors import MCPConnectionError, MCPProtocolError, ServerConfigError, UnsupportedTransportError
from mcplink.mcp.types import ToolSet, TransportType, config_field, transport_of

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
DEFAULT_TIMEOUT_MS = 30000
SESSION_HEADER = "Mcp-Session-Id"
STDIO_UNSUPPORTED = "Stdio transport is not supported in server environments"


def _describe_tool(name: str, description: Optional[str], input_schema: Any) -> Dict[str, Any]:
    return {
        "name": name,
        "description": description or "",
        "inputSchema": input_schema or {},
    }


class MCPConnectionClient(ABC):
    """A live connection to one MCP server."""

    transport_type: str = ""

    def __init__(
        self,
        server_id: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.server_id = server_id
        self.url = url
        self.headers = dict(headers or {})
        self.timeout_ms = timeout_ms
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @abstractmethod
    async def connect(self) -> None:
        """Open the transport and run the MCP handshake."""

    @abstractmethod
    async def tools(self) -> ToolSet:
        """Query the server for its current tool listing."""

    @abstractmethod
    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Invoke a tool; failures come back as an ``isError`` result."""

    @abstractmethod
    async def close(self) -> None:
        """Release the transport. Safe to call more than once."""

    def _require_connected(self) -> None:
        if not self._connected:
            raise MCPConnectionError(self.server_id, f"Server {self.server_id} not connected")

    @staticmethod
    def _error_result(exc: Exception) -> Dict[str, Any]:
        return {
            "content": [{"type": "text", "text": f"Error: {exc}"}],
            "isError": True,
        }


class HttpConnectionClient(MCPConnectionClient):
    """
    MCP over HTTP using JSON-RPC POST requests.

    Works with servers answering in plain JSON as well as Streamable HTTP
    servers that answer with a single-message event stream.
    """

    transport_type = TransportType.HTTP.value

    def __init__(
        self,
        server_id: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(server_id, url, headers, timeout_ms)
        self._transport = transport
        self._message_id = 0
        self._session_id: Optional[str] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._client_loop_id: Optional[int] = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get an AsyncClient bound to the current event loop."""
        loop_id = id(asyncio.get_running_loop())

        client_closed = bool(self._client and self._client.is_closed)
        if self._client is None or client_closed or self._client_loop_id != loop_id:
            if self._client is not None and not client_closed:
                try:
                    await self._client.aclose()
                except Exception as exc:
                    logger.debug(f"Discarding stale HTTP client for {self.server_id}: {exc}")
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            )
            self._client_loop_id = loop_id

        return self._client

    async def connect(self) -> None:
        if self._connected:
            return

        logger.info(f"Connecting to MCP server {self.server_id} at {self.url}")

        try:
            await self._ensure_client()
            result = await self._send_request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "mcplink", "version": __version__},
            })
            logger.debug(f"Initialize result from {self.server_id}: {result}")
            await self._send_notification("notifications/initialized", {})
            self._connected = True
        except Exception as exc:
            logger.error(f"Failed to connect to {self.server_id}: {exc}")
            await self.close()
            raise

    async def tools(self) -> ToolSet:
        self._require_connected()
        result = await self._send_request("tools/list", {})
        return {
            tool["name"]: _describe_tool(tool["name"], tool.get("description"), tool.get("inputSchema"))
            for tool in (result or {}).get("tools", [])
        }

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self._require_connected()
        try:
            result = await self._send_request("tools/call", {"name": name, "arguments": arguments})
        except Exception as exc:
            logger.error(f"Tool call failed for {self.server_id}:{name}: {exc}")
            return self._error_result(exc)

        result = result or {}
        return {
            "content": result.get("content", []),
            "isError": bool(result.get("isError", False)),
        }

    async def close(self) -> None:
        self._connected = False
        self._session_id = None

        if self._client:
            try:
                await self._client.aclose()
            except Exception as exc:
                logger.warning(f"Error during disconnect of {self.server_id}: {exc}")
            finally:
                self._client = None
                self._client_loop_id = None

    def _request_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json, text/event-stream"}
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    async def _send_request(self, method: str, params: Dict[str, Any]) -> Any:
        """Send a JSON-RPC request and wait for the matching response."""
        client = await self._ensure_client()

        self._message_id += 1
        request_id = self._message_id
        response = await client.post(
            self.url,
            json={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
            headers=self._request_headers(),
        )

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id

        data = self._parse_response(response, request_id)
        if "error" in data:
            error = data["error"] or {}
            raise MCPProtocolError(
                error.get("message", "Unknown error"),
                details={"code": error.get("code"), "method": method},
            )
        if response.is_error:
            response.raise_for_status()
        return data.get("result")

    async def _send_notification(self, method: str, params: Dict[str, Any]) -> None:
        """Send a JSON-RPC notification (no response expected)."""
        client = await self._ensure_client()

        # Servers answer 202 with no body, or an empty 200
        response = await client.post(
            self.url,
            json={"jsonrpc": "2.0", "method": method, "params": params},
            headers=self._request_headers(),
        )
        if response.status_code >= 400:
            logger.debug(f"{self.server_id} rejected notification {method}: HTTP {response.status_code}")

    def _parse_response(self, response: httpx.Response, request_id: int) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "")

        if content_type.startswith("text/event-stream"):
            return self._parse_event_stream(response.text, request_id)

        if not response.content:
            response.raise_for_status()
            raise MCPProtocolError("Empty response from server", details={"server_id": self.server_id})

        try:
            data = response.json()
        except ValueError as exc:
            response.raise_for_status()
            raise MCPProtocolError(f"Invalid JSON from server: {exc}") from exc

        if not isinstance(data, dict):
            raise MCPProtocolError("Unexpected JSON-RPC payload", details={"server_id": self.server_id})
        return data

    @staticmethod
    def _parse_event_stream(body: str, request_id: int) -> Dict[str, Any]:
        messages = []
        for line in body.splitlines():
            if line.startswith("data:"):
                payload = line[len("data:"):].strip()
                if payload:
                    messages.append(json.loads(payload))

        for message in messages:
            if isinstance(message, dict) and message.get("id") == request_id:
                return message
        raise MCPProtocolError("No response message in event stream", details={"id": request_id})


class SseConnectionClient(MCPConnectionClient):
    """
    MCP over Server-Sent Events via the MCP SDK.

    The SDK transport and session are anyio contexts that must be entered
    and exited by the same task. A dedicated runner task owns them for the
    lifetime of the connection; close() signals it and waits for it.
    """

    transport_type = TransportType.SSE.value

    def __init__(
        self,
        server_id: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        super().__init__(server_id, url, headers, timeout_ms)
        self.session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Event] = None
        self._stop: Optional[asyncio.Event] = None
        self._startup_error: Optional[BaseException] = None

    @property
    def is_connected(self) -> bool:
        return self._connected and self.session is not None

    async def connect(self) -> None:
        if self._connected:
            return

        logger.info(f"Connecting to MCP server {self.server_id} at {self.url} (sse)")

        self._ready = asyncio.Event()
        self._stop = asyncio.Event()
        self._startup_error = None
        self._runner = asyncio.create_task(self._run(), name=f"mcp-sse-{self.server_id}")

        try:
            await asyncio.wait_for(self._ready.wait(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Timed out connecting to {self.server_id}")
            await self.close()
            raise MCPConnectionError(self.server_id, f"Timed out connecting to {self.server_id}")

        if not self._connected:
            error = self._startup_error
            await self.close()
            if error is not None:
                raise error
            raise MCPConnectionError(self.server_id, f"Failed to connect to {self.server_id}")

    async def _run(self) -> None:
        """Own the SDK contexts from entry to exit."""
        try:
            async with AsyncExitStack() as stack:
                read_stream, write_stream = await stack.enter_async_context(
                    sse_client(self.url, headers=self.headers, timeout=self.timeout_seconds)
                )
                session = await stack.enter_async_context(
                    ClientSession(
                        read_stream,
                        write_stream,
                        read_timeout_seconds=timedelta(milliseconds=self.timeout_ms),
                    )
                )
                await session.initialize()
                self.session = session
                self._connected = True
                self._ready.set()
                await self._stop.wait()
        except Exception as exc:
            if self._connected:
                logger.warning(f"SSE connection to {self.server_id} ended with an error: {exc}")
            else:
                logger.error(f"Failed to connect to {self.server_id}: {exc}")
                self._startup_error = exc
        finally:
            self._connected = False
            self.session = None
            self._ready.set()

    async def tools(self) -> ToolSet:
        self._require_connected()
        assert self.session is not None
        response = await self.session.list_tools()
        return {
            tool.name: _describe_tool(tool.name, tool.description, getattr(tool, "inputSchema", None))
            for tool in response.tools
        }

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self._require_connected()
        assert self.session is not None
        try:
            result = await self.session.call_tool(name, arguments)
        except Exception as exc:
            logger.error(f"Tool call failed for {self.server_id}:{name}: {exc}")
            return self._error_result(exc)

        content = []
        for item in result.content:
            if hasattr(item, "text"):
                content.append({"type": "text", "text": item.text})
            elif hasattr(item, "data"):
                content.append({"type": "data", "data": item.data})
            else:
                content.append({"type": "unknown", "value": str(item)})

        return {"content": content, "isError": bool(getattr(result, "isError", False))}

    async def close(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return

        if self._ready is not None and not self._ready.is_set():
            # Still handshaking
            runner.cancel()
        elif self._stop is not None:
            self._stop.set()
        try:
            await runner
        except asyncio.CancelledError:
            if not runner.cancelled():
                raise
        except Exception as exc:
            logger.warning(f"Error during disconnect of {self.server_id}: {exc}")
        finally:
            self._connected = False
            self.session = None


def create_connection_client(
    config: Any,
    headers: Optional[Dict[str, str]] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> MCPConnectionClient:
    """
    Build the transport-specific client for a server config.

    Raises:
        UnsupportedTransportError: For stdio or unknown transports
        ServerConfigError: If an HTTP/SSE config has no URL
    """
    server_id = str(config_field(config, "id", ""))
    transport = transport_of(config)

    if transport == TransportType.STDIO.value:
        raise UnsupportedTransportError(transport, STDIO_UNSUPPORTED)

    if transport not in (TransportType.HTTP.value, TransportType.SSE.value):
        raise UnsupportedTransportError(transport, f"Unknown transport type: {transport}")

    url = str(config_field(config, "url", "")).strip()
    if not url:
        raise ServerConfigError(f"URL is required for {transport.upper()} transport", details={"server_id": server_id})

    if transport == TransportType.HTTP.value:
        return HttpConnectionClient(server_id, url, headers=headers, timeout_ms=timeout_ms)
    return SseConnectionClient(server_id, url, headers=headers, timeout_ms=timeout_ms)
