"""
Integration tests for the demo MCP server, driven by the real HTTP client.
"""

import json

import httpx
import pytest

from mcplink.mcp.client import HttpConnectionClient
from mcplink.mcp.manager import MCPClientManager
from mcplink.web.server import create_web_app
from tests.utils.sync_client import SyncASGIClient

DEMO_URL = "http://test/api/mcp/demo-server"


@pytest.fixture
def app(no_auth_env):
    return create_web_app(init_database=False)


@pytest.fixture
def demo_client(app):
    return HttpConnectionClient("demo", DEMO_URL, transport=httpx.ASGITransport(app=app))


def _output(result):
    return json.loads(result["content"][0]["text"])


class TestDemoServerInfo:
    def test_info(self, app):
        response = SyncASGIClient(app).get("/api/mcp/demo-server")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["tools"] == ["get_current_time", "calculate", "get_weather", "generate_id"]

    def test_unknown_method(self, app):
        response = SyncASGIClient(app).post(
            "/api/mcp/demo-server",
            json={"jsonrpc": "2.0", "id": 1, "method": "resources/list"},
        )

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32601


class TestDemoServerTools:
    """Tests for the demo tools over JSON-RPC."""

    @pytest.mark.asyncio
    async def test_list_tools(self, demo_client):
        await demo_client.connect()
        tools = await demo_client.tools()
        await demo_client.close()

        assert list(tools) == ["get_current_time", "calculate", "get_weather", "generate_id"]
        assert tools["calculate"]["inputSchema"]["required"] == ["operation", "a", "b"]

    @pytest.mark.asyncio
    async def test_calculate(self, demo_client):
        await demo_client.connect()
        result = await demo_client.call_tool("calculate", {"operation": "add", "a": 2, "b": 3})
        await demo_client.close()

        assert result["isError"] is False
        assert _output(result)["result"] == 5

    @pytest.mark.asyncio
    async def test_divide_by_zero(self, demo_client):
        await demo_client.connect()
        result = await demo_client.call_tool("calculate", {"operation": "divide", "a": 1, "b": 0})
        await demo_client.close()

        assert result["isError"] is True
        assert _output(result)["error"] == "Cannot divide by zero"

    @pytest.mark.asyncio
    async def test_current_time_invalid_timezone(self, demo_client):
        await demo_client.connect()
        result = await demo_client.call_tool("get_current_time", {"timezone": "Mars/Olympus"})
        await demo_client.close()

        assert result["isError"] is True

    @pytest.mark.asyncio
    async def test_generate_id_prefix(self, demo_client):
        await demo_client.connect()
        result = await demo_client.call_tool("generate_id", {"prefix": "order"})
        await demo_client.close()

        assert _output(result)["id"].startswith("order_")

    @pytest.mark.asyncio
    async def test_unknown_tool(self, demo_client):
        await demo_client.connect()
        result = await demo_client.call_tool("nope", {})
        await demo_client.close()

        assert result["isError"] is True
        assert "Unknown tool: nope" in result["content"][0]["text"]


class TestManagerAgainstDemoServer:
    """End to end: manager, auth headers and HTTP client against the demo server."""

    @pytest.mark.asyncio
    async def test_manager_merges_demo_tools(self, app):
        transport = httpx.ASGITransport(app=app)
        seen_headers = []

        def client_factory(config, headers=None, timeout_ms=None):
            seen_headers.append(headers)
            return HttpConnectionClient(config.id, config.url, headers=headers, timeout_ms=timeout_ms, transport=transport)

        async with MCPClientManager(client_factory=client_factory) as manager:
            statuses = await manager.connect_all([
                {
                    "id": "demo",
                    "name": "Demo",
                    "transport_type": "http",
                    "url": DEMO_URL,
                    "auth_type": "bearer",
                    "auth_token": "demo-token",
                },
            ])
            tools = await manager.get_all_tools()
            result = await manager.call_tool("calculate", {"operation": "multiply", "a": 4, "b": 5})

        assert statuses[0].connected is True
        assert statuses[0].tool_count == 4
        assert len(tools) == 4
        assert _output(result)["result"] == 20
        assert seen_headers == [{"Authorization": "Bearer demo-token"}]
        assert manager.connected_count == 0
