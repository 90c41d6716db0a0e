"""
Unit tests for mcplink/mcp/store.py - ServerConfigStore.
"""

import pytest

from mcplink.errors import ServerConfigError
from mcplink.mcp.store import ServerConfigStore, ServerInput, ServerUpdate, validate_transport
from mcplink.mcp.types import coerce_server_config
from mcplink.secrets import TokenCipher


def _input(**overrides):
    data = {
        "name": "Search",
        "transport_type": "http",
        "url": "https://mcp.example.com/mcp",
    }
    data.update(overrides)
    return ServerInput.model_validate(data)


class TestValidateTransport:
    """Tests for validate_transport."""

    def test_transport_required(self):
        with pytest.raises(ServerConfigError, match="Transport type is required"):
            validate_transport(None, "https://x", None)

    def test_url_required_for_http(self):
        with pytest.raises(ServerConfigError, match="URL is required for HTTP/SSE transport"):
            validate_transport("http", "  ", None)

    def test_url_required_for_sse(self):
        with pytest.raises(ServerConfigError, match="URL is required"):
            validate_transport("sse", None, None)

    def test_command_required_for_stdio(self):
        with pytest.raises(ServerConfigError, match="Command is required for stdio transport"):
            validate_transport("stdio", None, None)

    def test_valid(self):
        validate_transport("stdio", None, "npx")
        validate_transport("http", "https://x", None)


class TestCreateServer:
    """Tests for ServerConfigStore.create_server."""

    def test_defaults(self, store):
        record = store.create_server("brand-1", _input(), created_by="user-1")

        assert len(record.id) == 36
        assert record.brand_id == "brand-1"
        assert record.auth_type == "none"
        assert record.enabled is True
        assert record.priority == 0
        assert record.timeout_ms is None
        assert record.created_by == "user-1"
        assert record.created_at is not None

    def test_token_encrypted_at_rest(self, store):
        record = store.create_server("brand-1", _input(auth_type="bearer", auth_token="tok-1"))
        assert record.auth_token_encrypted == "plain:tok-1"

    def test_name_required(self, store):
        with pytest.raises(ServerConfigError, match="Server name is required"):
            store.create_server("brand-1", _input(name="  "))

    def test_brand_required(self, store):
        with pytest.raises(ServerConfigError, match="Brand ID is required"):
            store.create_server("", _input())

    def test_url_required(self, store):
        with pytest.raises(ServerConfigError):
            store.create_server("brand-1", _input(url=None))

    def test_stdio_stored(self, store):
        record = store.create_server("brand-1", _input(transport_type="stdio", url=None, command="npx", args=["-y", "pkg"]))
        assert record.transport_type == "stdio"
        assert record.args == ["-y", "pkg"]


class TestListAndGet:
    """Tests for list_servers and get_server."""

    def test_list_by_brand_priority_desc(self, store):
        store.create_server("brand-1", _input(name="Low", priority=1))
        store.create_server("brand-1", _input(name="High", priority=9))
        store.create_server("brand-2", _input(name="Other"))

        names = [record.name for record in store.list_servers("brand-1")]

        assert names == ["High", "Low"]

    def test_get_server(self, store):
        record = store.create_server("brand-1", _input())

        assert store.get_server(record.id).name == "Search"
        assert store.get_server("missing") is None


class TestUpdateServer:
    """Tests for ServerConfigStore.update_server."""

    def test_partial_update(self, store):
        record = store.create_server("brand-1", _input(priority=1, description="keep me"))

        updated = store.update_server(record.id, ServerUpdate(priority=7, enabled=False))

        assert updated.priority == 7
        assert updated.enabled is False
        assert updated.description == "keep me"

    def test_token_update_encrypted(self, store):
        record = store.create_server("brand-1", _input())

        updated = store.update_server(record.id, ServerUpdate(auth_type="bearer", auth_token="new"))

        assert updated.auth_type == "bearer"
        assert updated.auth_token_encrypted == "plain:new"

    def test_missing_server(self, store):
        assert store.update_server("missing", ServerUpdate(priority=1)) is None

    @pytest.mark.parametrize("field_name", ["priority", "enabled", "name"])
    def test_null_for_required_column_rejected(self, store, field_name):
        """Test an explicit null never reaches a NOT NULL column."""
        record = store.create_server("brand-1", _input(priority=4))

        with pytest.raises(ServerConfigError, match=f"{field_name} cannot be null"):
            store.update_server(record.id, ServerUpdate.model_validate({field_name: None}))

        stored = store.get_server(record.id)
        assert stored.priority == 4
        assert stored.enabled is True

    def test_timeout_can_be_cleared(self, store):
        record = store.create_server("brand-1", _input(timeout_ms=5000))

        updated = store.update_server(record.id, ServerUpdate.model_validate({"timeout_ms": None}))

        assert updated.timeout_ms is None

    def test_clearing_url_rejected(self, store):
        record = store.create_server("brand-1", _input())

        with pytest.raises(ServerConfigError):
            store.update_server(record.id, ServerUpdate(url=""))

        assert store.get_server(record.id).url == "https://mcp.example.com/mcp"


class TestDeleteServer:
    def test_delete(self, store):
        record = store.create_server("brand-1", _input())

        assert store.delete_server(record.id) is True
        assert store.get_server(record.id) is None
        assert store.delete_server(record.id) is False


class TestListActiveConfigs:
    """Tests for list_active_configs."""

    def test_enabled_only_with_decrypted_tokens(self, store):
        store.create_server("brand-1", _input(name="On", auth_type="bearer", auth_token="tok-1"))
        store.create_server("brand-1", _input(name="Off", enabled=False))

        configs = store.list_active_configs("brand-1")

        assert [config["name"] for config in configs] == ["On"]
        assert configs[0]["auth_token"] == "tok-1"
        assert "auth_token_encrypted" not in configs[0]

    def test_selection(self, store):
        first = store.create_server("brand-1", _input(name="First"))
        store.create_server("brand-1", _input(name="Second"))

        configs = store.list_active_configs("brand-1", [first.id])

        assert [config["id"] for config in configs] == [first.id]

    def test_empty_selection_means_all(self, store):
        store.create_server("brand-1", _input(name="First"))
        store.create_server("brand-1", _input(name="Second"))

        assert len(store.list_active_configs("brand-1", [])) == 2

    def test_configs_coerce(self, store):
        """Test stored rows feed straight into the client manager."""
        store.create_server("brand-1", _input(auth_type="api_key", auth_header="X-API-Key", auth_token="k1"))

        config = coerce_server_config(store.list_active_configs("brand-1")[0])

        assert config.auth_token == "k1"
        assert config.timeout_ms is None

    def test_real_encryption(self, database):
        store = ServerConfigStore(TokenCipher("test-secrets-key"))
        record = store.create_server("brand-1", _input(auth_type="bearer", auth_token="tok-1"))

        assert record.auth_token_encrypted.startswith("v1:")
        assert store.list_active_configs("brand-1")[0]["auth_token"] == "tok-1"
