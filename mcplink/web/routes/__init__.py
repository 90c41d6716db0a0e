"""API Routes."""

from mcplink.web.routes.servers import router as servers_router
from mcplink.web.routes.tools import router as tools_router
from mcplink.web.routes.demo import router as demo_router
from mcplink.web.routes.brave import router as brave_router

__all__ = [
    "servers_router",
    "tools_router",
    "demo_router",
    "brave_router",
]
