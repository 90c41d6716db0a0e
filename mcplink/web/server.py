"""
Backend API Server for mcplink.

Provides REST API for:
- MCP server configuration per brand (CRUD)
- Tool discovery across a brand's MCP servers
- A demo MCP server for trying the integration end to end
- A Brave Search MCP proxy

Security:
- Optional bearer token authentication (BEARER_TOKEN) for API calls
- Configurable CORS origins
- Credentials are masked in every response
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mcplink import __version__
from mcplink.config import get_settings
from mcplink.db.database import init_db
from mcplink.mcp.manager import MCPClientManager
from mcplink.mcp.store import ServerConfigStore
from mcplink.middleware import RequestLoggingMiddleware
from mcplink.secrets import TokenCipher
from mcplink.utils import get_cors_origins
from mcplink.web.routes import brave_router, demo_router, servers_router, tools_router

logger = logging.getLogger(__name__)


def create_web_app(
    store: Optional[ServerConfigStore] = None,
    manager_factory: Optional[Callable[..., MCPClientManager]] = None,
    init_database: bool = True,
) -> FastAPI:
    """
    Create the API application.

    Args:
        store: Server config store (default: one using SECRETS_KEY from settings)
        manager_factory: Builds a client manager per request, called with timeout_ms=
        init_database: Create missing tables on startup

    Returns:
        FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="mcplink - API",
        description="MCP server configuration and tool aggregation",
        version=__version__,
        redirect_slashes=False,
    )

    cors_origins = get_cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=cors_origins != ["*"],
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    if init_database:
        init_db()

    app.state.store = store or ServerConfigStore(TokenCipher.from_settings(settings))
    app.state.manager_factory = manager_factory or MCPClientManager

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    app.include_router(servers_router)
    app.include_router(tools_router)
    app.include_router(demo_router)
    app.include_router(brave_router)

    logger.info("API application created")
    return app
