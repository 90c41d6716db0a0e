"""
MCP server configuration and connection state types.

A server configuration is a tagged variant over ``transport_type``:
HTTP and SSE servers require a URL, stdio servers carry a command line.
Rows coming from the ``mcp_servers`` table are coerced into these models
via :func:`coerce_server_config`, which turns missing fields into a
``ServerConfigError`` instead of a failure deep inside the transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from mcplink.errors import ServerConfigError

if TYPE_CHECKING:
    from mcplink.mcp.client import MCPConnectionClient

# Tool name -> descriptor ({name, description, inputSchema})
ToolSet = Dict[str, Dict[str, Any]]


class TransportType(str, Enum):
    HTTP = "http"
    SSE = "sse"
    STDIO = "stdio"


class AuthType(str, Enum):
    NONE = "none"
    BEARER = "bearer"
    API_KEY = "api_key"
    OAUTH = "oauth"
    SMITHERY = "smithery"


class _ServerConfigBase(BaseModel):
    """Fields shared by every transport."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    brand_id: Optional[str] = None

    auth_type: AuthType = AuthType.NONE
    auth_header: Optional[str] = None
    auth_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("auth_token", "auth_token_encrypted"),
    )

    oauth_client_id: Optional[str] = None
    oauth_access_token: Optional[str] = None
    oauth_refresh_token: Optional[str] = None
    oauth_expires_at: Optional[datetime] = None

    enabled: bool = True
    priority: int = 0
    timeout_ms: Optional[int] = Field(default=None, gt=0)

    allowed_tools: Optional[List[str]] = None
    blocked_tools: Optional[List[str]] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        # UUID primary keys arrive as uuid.UUID from some drivers
        if value is not None and not isinstance(value, str):
            return str(value)
        return value

    @field_validator("auth_type", mode="before")
    @classmethod
    def _default_auth_type(cls, value: Any) -> Any:
        return AuthType.NONE if value in (None, "") else value

    @field_validator("enabled", mode="before")
    @classmethod
    def _default_enabled(cls, value: Any) -> Any:
        return True if value is None else value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Any:
        return 0 if value is None else value


class HttpServerConfig(_ServerConfigBase):
    transport_type: Literal["http"] = "http"
    url: str

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("URL is required for HTTP transport")
        return value


class SseServerConfig(_ServerConfigBase):
    transport_type: Literal["sse"] = "sse"
    url: str

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("URL is required for SSE transport")
        return value


class StdioServerConfig(_ServerConfigBase):
    transport_type: Literal["stdio"] = "stdio"
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)

    @field_validator("args", mode="before")
    @classmethod
    def _default_args(cls, value: Any) -> Any:
        return [] if value is None else value


ServerConfig = Annotated[
    Union[HttpServerConfig, SseServerConfig, StdioServerConfig],
    Field(discriminator="transport_type"),
]

_SERVER_CONFIG_ADAPTER: TypeAdapter = TypeAdapter(ServerConfig)

_CONFIG_CLASSES = (HttpServerConfig, SseServerConfig, StdioServerConfig)

_TAG_LOCATIONS = {"http", "sse", "stdio"}


def _format_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in _TAG_LOCATIONS)
        message = str(error.get("msg", "invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid server configuration"


def coerce_server_config(config: Union["ServerConfig", Mapping[str, Any]]) -> "ServerConfig":
    """
    Build a typed server configuration.

    Args:
        config: An already-typed config or a mapping such as a database row

    Returns:
        HttpServerConfig, SseServerConfig or StdioServerConfig

    Raises:
        ServerConfigError: If required fields are missing or invalid
    """
    if isinstance(config, _CONFIG_CLASSES):
        return config

    if not isinstance(config, Mapping):
        raise ServerConfigError(f"Unsupported config object: {type(config).__name__}")

    data = dict(config)
    transport = data.get("transport_type")
    if isinstance(transport, TransportType):
        data["transport_type"] = transport.value
    elif transport is None:
        raise ServerConfigError("Transport type is required")
    elif transport not in _TAG_LOCATIONS:
        raise ServerConfigError(f"Unknown transport type: {transport}")

    if data["transport_type"] in ("http", "sse") and not str(data.get("url") or "").strip():
        raise ServerConfigError(
            f"URL is required for {data['transport_type'].upper()} transport",
            details={"server_id": data.get("id"), "transport_type": data["transport_type"]},
        )

    try:
        return _SERVER_CONFIG_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise ServerConfigError(
            _format_validation_error(exc),
            details={"server_id": data.get("id"), "transport_type": data.get("transport_type")},
        ) from exc


def config_field(config: Any, name: str, default: Any = None) -> Any:
    """Read a field from a typed config or a raw mapping."""
    if isinstance(config, Mapping):
        value = config.get(name, default)
    else:
        value = getattr(config, name, default)
    return default if value is None else value


_ENABLED_ADAPTER: TypeAdapter = TypeAdapter(bool)


def transport_of(config: Any) -> str:
    """The transport tag of a typed config or raw mapping, as a plain string."""
    transport = config_field(config, "transport_type", "")
    return transport.value if isinstance(transport, TransportType) else str(transport)


def is_enabled(config: Any) -> bool:
    """
    Read `enabled` the way validation would ("false", 0 and "no" are off).

    Used for configs that fail validation; missing or unreadable values
    count as enabled.
    """
    value = config_field(config, "enabled", True)
    try:
        return _ENABLED_ADAPTER.validate_python(value)
    except ValidationError:
        return True


@dataclass
class ConnectionStatus:
    server_id: str
    server_name: str
    connected: bool
    error: Optional[str] = None
    tool_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "serverId": self.server_id,
            "serverName": self.server_name,
            "connected": self.connected,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.tool_count is not None:
            data["toolCount"] = self.tool_count
        return data


@dataclass
class ActiveConnection:
    client: "MCPConnectionClient"
    config: "ServerConfig"
    sequence: int
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
