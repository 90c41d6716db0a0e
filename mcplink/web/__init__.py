"""HTTP API for mcplink."""

from mcplink.web.server import create_web_app

__all__ = ["create_web_app"]
