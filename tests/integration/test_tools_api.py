"""
Integration tests for GET /api/mcp/tools.
"""

import pytest

from mcplink.mcp.manager import MCPClientManager
from mcplink.mcp.store import ServerInput
from mcplink.web.server import create_web_app
from tests.utils.fake_clients import FakeClientFactory, FakeConnectionClient, tool
from tests.utils.sync_client import SyncASGIClient


@pytest.fixture
def fake_factory():
    return FakeClientFactory()


@pytest.fixture
def managers():
    return []


@pytest.fixture
def client(store, fake_factory, managers, no_auth_env):
    def manager_factory(timeout_ms=None):
        manager = MCPClientManager(timeout_ms=timeout_ms, client_factory=fake_factory)
        managers.append(manager)
        return manager

    return SyncASGIClient(create_web_app(store=store, manager_factory=manager_factory))


def _server(store, fake_factory, name, tools=None, **overrides):
    data = {"name": name, "transport_type": "http", "url": f"https://{name.lower()}.example.com/mcp"}
    data.update(overrides)
    record = store.create_server("brand-1", ServerInput.model_validate(data))
    fake_factory.clients[record.id] = FakeConnectionClient(record.id, tools=tools)
    return record


class TestListTools:
    """Tests for the tool discovery endpoint."""

    def test_lists_tools_per_server(self, client, store, fake_factory, managers):
        alpha = _server(store, fake_factory, "Alpha", {"search": tool("search", "Search")}, priority=5)
        beta = _server(store, fake_factory, "Beta", {"search": tool("search"), "fetch": tool("fetch", "Fetch")})

        response = client.get("/api/mcp/tools", params={"brandId": "brand-1", "serverIds": f"{alpha.id},{beta.id}"})

        assert response.status_code == 200
        body = response.json()
        assert body["tools"] == [
            {"serverId": alpha.id, "serverName": "Alpha", "toolName": "search", "description": "Search"},
            {"serverId": beta.id, "serverName": "Beta", "toolName": "search", "description": ""},
            {"serverId": beta.id, "serverName": "Beta", "toolName": "fetch", "description": "Fetch"},
        ]
        assert body["statuses"] == [
            {"serverId": alpha.id, "serverName": "Alpha", "connected": True, "toolCount": 1},
            {"serverId": beta.id, "serverName": "Beta", "connected": True, "toolCount": 2},
        ]
        assert body["summary"] == "2 of 2 servers connected, 2 tools available"
        assert managers[0].connected_count == 0
        assert managers[0].timeout_ms == 10000
        assert [call["timeout_ms"] for call in fake_factory.calls] == [10000, 10000]

    def test_server_timeout_overrides_route_default(self, client, store, fake_factory):
        record = _server(store, fake_factory, "Slow", {"a": tool("a")}, timeout_ms=2500)

        client.get("/api/mcp/tools", params={"brandId": "brand-1", "serverIds": record.id})

        assert fake_factory.calls[0]["timeout_ms"] == 2500

    def test_failed_server_reported(self, client, store, fake_factory):
        good = _server(store, fake_factory, "Good", {"a": tool("a")}, priority=1)
        bad = _server(store, fake_factory, "Bad")
        fake_factory.clients[bad.id].connect_error = ConnectionRefusedError("refused")

        body = client.get("/api/mcp/tools", params={"brandId": "brand-1", "serverIds": f"{good.id},{bad.id}"}).json()

        assert [tool["toolName"] for tool in body["tools"]] == ["a"]
        assert body["statuses"][1] == {"serverId": bad.id, "serverName": "Bad", "connected": False, "error": "refused"}
        assert body["summary"] == "1 of 2 servers connected, 1 tools available"

    def test_filters_applied(self, client, store, fake_factory):
        record = _server(store, fake_factory, "Alpha", {"read": tool("read"), "write": tool("write")}, blocked_tools=["write"])

        body = client.get("/api/mcp/tools", params={"brandId": "brand-1", "serverIds": record.id}).json()

        assert [tool["toolName"] for tool in body["tools"]] == ["read"]

    def test_disabled_servers_not_loaded(self, client, store, fake_factory):
        record = _server(store, fake_factory, "Off", {"a": tool("a")}, enabled=False)

        body = client.get("/api/mcp/tools", params={"brandId": "brand-1", "serverIds": record.id}).json()

        assert body == {"tools": [], "statuses": [], "summary": "0 of 0 servers connected, 0 tools available"}
        assert fake_factory.calls == []

    def test_brand_required(self, client):
        response = client.get("/api/mcp/tools", params={"serverIds": "a"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Brand ID is required"

    def test_server_ids_required(self, client):
        response = client.get("/api/mcp/tools", params={"brandId": "brand-1"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Server IDs are required"
