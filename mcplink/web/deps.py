"""Request-scoped dependencies for the API routes."""

from __future__ import annotations

from typing import Callable, Optional

import httpx
from fastapi import Request

from mcplink.mcp.manager import MCPClientManager
from mcplink.mcp.store import ServerConfigStore


def get_store(request: Request) -> ServerConfigStore:
    return request.app.state.store


def get_manager_factory(request: Request) -> Callable[..., MCPClientManager]:
    return request.app.state.manager_factory


def get_brave_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outgoing Brave Search API calls (None: network)."""
    return None
