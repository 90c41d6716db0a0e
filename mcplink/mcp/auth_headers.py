"""
Authentication headers for HTTP/SSE MCP transports.

MCP servers disagree on auth conventions: some want a bearer token, some a
raw API key under a custom header, some an OAuth access token. A single
server record covers all of them through ``auth_type``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from mcplink.mcp.types import AuthType, config_field

logger = logging.getLogger(__name__)

DEFAULT_AUTH_HEADER = "Authorization"


def _clean(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _auth_type(config: Any) -> AuthType:
    raw = config_field(config, "auth_type", AuthType.NONE)
    try:
        return AuthType(raw)
    except ValueError:
        logger.warning(f"Unknown auth type {raw!r}, sending no auth headers")
        return AuthType.NONE


def build_auth_headers(config: Any) -> Dict[str, str]:
    """
    Build the header mapping attached to every transport request.

    Args:
        config: Typed server config or a raw server mapping

    Returns:
        Header name -> value; empty when no usable credential exists
    """
    auth_type = _auth_type(config)
    token = _clean(config_field(config, "auth_token")) or _clean(
        config_field(config, "auth_token_encrypted")
    )
    header_name = _clean(config_field(config, "auth_header")) or DEFAULT_AUTH_HEADER

    if auth_type == AuthType.NONE:
        return {}

    if auth_type == AuthType.BEARER:
        if not token:
            logger.debug("Bearer auth configured without a token")
            return {}
        logger.debug(f"Using bearer auth via header {header_name}")
        return {header_name: f"Bearer {token}"}

    if auth_type == AuthType.API_KEY:
        if not token:
            logger.debug("API key auth configured without a token")
            return {}
        logger.debug(f"Using API key auth via header {header_name}")
        return {header_name: token}

    # oauth / smithery
    access_token = _clean(config_field(config, "oauth_access_token"))
    if access_token:
        logger.debug("Using OAuth access token")
        return {DEFAULT_AUTH_HEADER: f"Bearer {access_token}"}
    if token:
        # Plain token stands in as a bearer credential until OAuth completes
        logger.debug(f"No OAuth access token, falling back to bearer token via {header_name}")
        return {header_name: f"Bearer {token}"}

    logger.info("OAuth configured but no access token available")
    return {}
