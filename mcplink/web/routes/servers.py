"""
MCP Server Management API Routes.

CRUD for a brand's MCP server configurations.

Security:
- Credentials (auth/OAuth tokens) are masked in responses
- Bearer token authentication required when BEARER_TOKEN is set
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError

from mcplink.auth import verify_token
from mcplink.db.models import MCPServerRecord
from mcplink.errors import SecretsError, ServerConfigError
from mcplink.mcp.store import ServerConfigStore, ServerInput, ServerUpdate
from mcplink.utils import mask_config
from mcplink.web.deps import get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp/servers", tags=["servers"])


def public_server(record: MCPServerRecord) -> Dict[str, Any]:
    """Render a server record with credentials masked."""
    return mask_config(record.to_dict())


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


@router.get("")
async def list_servers(
    brand_id: Optional[str] = Query(None, alias="brandId"),
    store: ServerConfigStore = Depends(get_store),
    _: str = Depends(verify_token),
) -> Dict[str, Any]:
    """List a brand's MCP servers, highest priority first."""
    if not brand_id:
        raise HTTPException(status_code=400, detail="Brand ID is required")

    servers = store.list_servers(brand_id)
    return {"servers": [public_server(record) for record in servers]}


@router.post("", status_code=201)
async def create_server(
    body: Dict[str, Any] = Body(...),
    store: ServerConfigStore = Depends(get_store),
    _: str = Depends(verify_token),
) -> Dict[str, Any]:
    """Create an MCP server for a brand."""
    payload = dict(body)
    brand_id = payload.pop("brandId", None)
    user_id = payload.pop("userId", None)

    if not brand_id:
        raise HTTPException(status_code=400, detail="Brand ID is required")

    try:
        data = ServerInput.model_validate(payload)
        record = store.create_server(brand_id, data, created_by=user_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_message(exc))
    except ServerConfigError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except SecretsError as exc:
        logger.error(f"Failed to store credentials: {exc}")
        raise HTTPException(status_code=500, detail="Failed to create MCP server")

    return {"server": public_server(record)}


@router.patch("")
async def update_server(
    body: Dict[str, Any] = Body(...),
    store: ServerConfigStore = Depends(get_store),
    _: str = Depends(verify_token),
) -> Dict[str, Any]:
    """Update an MCP server; only sent fields change."""
    payload = dict(body)
    server_id = payload.pop("serverId", None)

    if not server_id:
        raise HTTPException(status_code=400, detail="Server ID is required")

    try:
        updates = ServerUpdate.model_validate(payload)
        record = store.update_server(server_id, updates)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_message(exc))
    except ServerConfigError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except SecretsError as exc:
        logger.error(f"Failed to store credentials: {exc}")
        raise HTTPException(status_code=500, detail="Failed to update MCP server")

    if record is None:
        raise HTTPException(status_code=404, detail=f"Server not found: {server_id}")

    return {"server": public_server(record)}


@router.delete("")
async def delete_server(
    server_id: Optional[str] = Query(None, alias="serverId"),
    store: ServerConfigStore = Depends(get_store),
    _: str = Depends(verify_token),
) -> Dict[str, Any]:
    """Delete an MCP server."""
    if not server_id:
        raise HTTPException(status_code=400, detail="Server ID is required")

    if not store.delete_server(server_id):
        raise HTTPException(status_code=404, detail=f"Server not found: {server_id}")

    return {"success": True}
