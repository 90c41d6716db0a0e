"""
MCP Tool Discovery API Routes.

Connects to the selected MCP servers of a brand for the duration of one
request, lists their (filtered) tools and disconnects again.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from mcplink.auth import verify_token
from mcplink.config import get_settings
from mcplink.errors import SecretsError
from mcplink.mcp.manager import MCPClientManager
from mcplink.mcp.store import ServerConfigStore
from mcplink.web.deps import get_manager_factory, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp/tools", tags=["tools"])


def _summary(connected: int, total: int, tool_count: int) -> str:
    return f"{connected} of {total} servers connected, {tool_count} tools available"


@router.get("")
async def list_tools(
    brand_id: Optional[str] = Query(None, alias="brandId"),
    server_ids: Optional[str] = Query(None, alias="serverIds"),
    store: ServerConfigStore = Depends(get_store),
    manager_factory: Callable[..., MCPClientManager] = Depends(get_manager_factory),
    _: str = Depends(verify_token),
) -> Dict[str, Any]:
    """List tools of the selected servers (comma-separated serverIds)."""
    if not brand_id:
        raise HTTPException(status_code=400, detail="Brand ID is required")

    selected = [server_id for server_id in (server_ids or "").split(",") if server_id]
    if not selected:
        raise HTTPException(status_code=400, detail="Server IDs are required")

    try:
        configs = store.list_active_configs(brand_id, selected)
    except SecretsError as exc:
        logger.error(f"Failed to load MCP server credentials: {exc}")
        raise HTTPException(status_code=500, detail="Failed to load MCP servers")

    if not configs:
        return {"tools": [], "statuses": [], "summary": _summary(0, 0, 0)}

    tools: List[Dict[str, Any]] = []
    async with manager_factory(timeout_ms=get_settings().mcp_tools_timeout_ms) as manager:
        statuses = await manager.connect_all(configs)

        for status in statuses:
            if not status.connected:
                continue
            server_tools = await manager.get_server_tools(status.server_id)
            for tool_name, tool in (server_tools or {}).items():
                tools.append({
                    "serverId": status.server_id,
                    "serverName": status.server_name,
                    "toolName": tool_name,
                    "description": tool.get("description") if isinstance(tool, dict) else None,
                })

    connected = sum(1 for status in statuses if status.connected)
    unique_tools = {tool["toolName"] for tool in tools}
    return {
        "tools": tools,
        "statuses": [status.to_dict() for status in statuses],
        "summary": _summary(connected, len(statuses), len(unique_tools)),
    }
