"""
MCP server configuration store.

CRUD over the ``mcp_servers`` table. Credentials are encrypted before they
are written and decrypted only when configs are handed to the client
manager via :meth:`ServerConfigStore.list_active_configs`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from mcplink.db.database import get_db
from mcplink.db.models import MCPServerRecord
from mcplink.errors import ServerConfigError
from mcplink.mcp.types import AuthType, TransportType
from mcplink.secrets import TokenCipher

logger = logging.getLogger(__name__)

# Input fields stored encrypted, mapped to their column
_SECRET_COLUMNS = {
    "auth_token": "auth_token_encrypted",
    "oauth_access_token": "oauth_access_token",
    "oauth_refresh_token": "oauth_refresh_token",
}

# Columns that can be changed but never cleared
_NOT_NULL_COLUMNS = ("name", "enabled", "priority")


class ServerInput(BaseModel):
    """A new MCP server as submitted by an administrator."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    transport_type: Optional[TransportType] = None
    url: Optional[str] = None
    command: Optional[str] = None
    args: Optional[List[str]] = None
    auth_type: AuthType = AuthType.NONE
    auth_header: Optional[str] = None
    auth_token: Optional[str] = Field(default=None, description="Plain text, encrypted before storage")
    enabled: bool = True
    priority: int = 0
    timeout_ms: Optional[int] = Field(default=None, gt=0, description="Unset uses the caller's default timeout")
    allowed_tools: Optional[List[str]] = None
    blocked_tools: Optional[List[str]] = None


class ServerUpdate(BaseModel):
    """Partial update; only fields that were sent are applied."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    command: Optional[str] = None
    args: Optional[List[str]] = None
    enabled: Optional[bool] = None
    priority: Optional[int] = None
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    allowed_tools: Optional[List[str]] = None
    blocked_tools: Optional[List[str]] = None
    auth_type: Optional[AuthType] = None
    auth_header: Optional[str] = None
    auth_token: Optional[str] = None
    oauth_client_id: Optional[str] = None
    oauth_access_token: Optional[str] = None
    oauth_refresh_token: Optional[str] = None
    oauth_expires_at: Optional[datetime] = None


def validate_transport(transport_type: Optional[str], url: Optional[str], command: Optional[str]) -> None:
    """Check transport-specific required fields."""
    if not transport_type:
        raise ServerConfigError("Transport type is required")
    if transport_type in (TransportType.HTTP.value, TransportType.SSE.value) and not (url or "").strip():
        raise ServerConfigError("URL is required for HTTP/SSE transport")
    if transport_type == TransportType.STDIO.value and not (command or "").strip():
        raise ServerConfigError("Command is required for stdio transport")


class ServerConfigStore:
    """Persistence for per-brand MCP server configurations."""

    def __init__(self, cipher: TokenCipher):
        self.cipher = cipher

    def list_servers(self, brand_id: str) -> List[MCPServerRecord]:
        """All servers of a brand, highest priority first."""
        with get_db() as db:
            return list(
                db.execute(
                    select(MCPServerRecord)
                    .where(MCPServerRecord.brand_id == brand_id)
                    .order_by(MCPServerRecord.priority.desc(), MCPServerRecord.created_at)
                ).scalars()
            )

    def get_server(self, server_id: str) -> Optional[MCPServerRecord]:
        with get_db() as db:
            return db.get(MCPServerRecord, server_id)

    def create_server(
        self,
        brand_id: str,
        data: ServerInput,
        created_by: Optional[str] = None,
    ) -> MCPServerRecord:
        """
        Create a server record.

        Raises:
            ServerConfigError: If required fields are missing
        """
        if not brand_id:
            raise ServerConfigError("Brand ID is required")
        if not (data.name or "").strip():
            raise ServerConfigError("Server name is required")
        transport = data.transport_type.value if data.transport_type else None
        validate_transport(transport, data.url, data.command)

        record = MCPServerRecord(
            brand_id=brand_id,
            name=data.name.strip(),
            description=data.description,
            transport_type=transport,
            url=data.url,
            command=data.command,
            args=data.args,
            auth_type=data.auth_type.value,
            auth_header=data.auth_header,
            auth_token_encrypted=self.cipher.encrypt(data.auth_token),
            enabled=data.enabled,
            priority=data.priority,
            timeout_ms=data.timeout_ms,
            allowed_tools=data.allowed_tools,
            blocked_tools=data.blocked_tools,
            created_by=created_by,
        )

        with get_db() as db:
            db.add(record)
            db.commit()
            db.refresh(record)

        logger.info(f"Created MCP server {record.name} ({record.transport_type}) for brand {brand_id}")
        return record

    def update_server(self, server_id: str, data: ServerUpdate) -> Optional[MCPServerRecord]:
        """
        Apply a partial update.

        Returns:
            The updated record, or None if it doesn't exist

        Raises:
            ServerConfigError: If a required field is cleared or the transport is incomplete
        """
        updates: Dict[str, Any] = data.model_dump(exclude_unset=True)
        for field_name in _NOT_NULL_COLUMNS:
            if field_name in updates and updates[field_name] is None:
                raise ServerConfigError(f"{field_name} cannot be null", details={"field": field_name})

        with get_db() as db:
            record = db.get(MCPServerRecord, server_id)
            if record is None:
                return None

            for field_name, value in updates.items():
                if field_name in _SECRET_COLUMNS:
                    setattr(record, _SECRET_COLUMNS[field_name], self.cipher.encrypt(value))
                elif field_name == "auth_type":
                    record.auth_type = value.value if value is not None else AuthType.NONE.value
                else:
                    setattr(record, field_name, value)

            if "name" in updates and not (record.name or "").strip():
                raise ServerConfigError("Server name is required")
            validate_transport(record.transport_type, record.url, record.command)

            db.commit()
            db.refresh(record)

        logger.info(f"Updated MCP server {server_id}: {sorted(updates)}")
        return record

    def delete_server(self, server_id: str) -> bool:
        with get_db() as db:
            record = db.get(MCPServerRecord, server_id)
            if record is None:
                return False
            db.delete(record)
            db.commit()

        logger.info(f"Deleted MCP server {server_id}")
        return True

    def list_active_configs(
        self,
        brand_id: str,
        server_ids: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Enabled server configs of a brand, ready for the client manager.

        Args:
            brand_id: Brand to load servers for
            server_ids: Selection (e.g. a conversation's enabled servers);
                empty or None means every enabled server of the brand

        Returns:
            Config mappings with decrypted credentials, highest priority first
        """
        with get_db() as db:
            query = (
                select(MCPServerRecord)
                .where(MCPServerRecord.brand_id == brand_id)
                .where(MCPServerRecord.enabled.is_(True))
                .order_by(MCPServerRecord.priority.desc(), MCPServerRecord.created_at)
            )
            if server_ids:
                query = query.where(MCPServerRecord.id.in_(list(server_ids)))
            records = list(db.execute(query).scalars())

        return [self.to_config(record) for record in records]

    def to_config(self, record: MCPServerRecord) -> Dict[str, Any]:
        """Row -> config mapping with plain-text credentials."""
        config = record.to_dict()
        config["auth_token"] = self.cipher.decrypt(config.pop("auth_token_encrypted"))
        config["oauth_access_token"] = self.cipher.decrypt(config["oauth_access_token"])
        config["oauth_refresh_token"] = self.cipher.decrypt(config["oauth_refresh_token"])
        return config
