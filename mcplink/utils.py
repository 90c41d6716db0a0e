"""
Shared utilities for mcplink.

This module provides common functionality used across multiple components:
- CORS configuration
- Request context (correlation IDs)
- Masking of secrets in API responses
"""

from __future__ import annotations

import logging
import os
import re
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# =============================================================================
# CORS Configuration
# =============================================================================


def get_cors_origins() -> List[str]:
    """
    Get CORS origins from environment variable.

    Returns:
        List of allowed origins, or ["*"] if not configured.
    """
    origins_str = os.getenv("CORS_ORIGINS", "").strip()
    if not origins_str or origins_str == "*":
        logger.warning(
            "CORS_ORIGINS not configured or set to '*'. "
            "This is insecure for production. Set specific origins."
        )
        return ["*"]
    return [origin.strip() for origin in origins_str.split(",") if origin.strip()]


# =============================================================================
# Request Context (Correlation IDs)
# =============================================================================

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    """Generate a short unique request ID."""
    return uuid.uuid4().hex[:8]


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the current request ID, generating one if not provided."""
    request_id = request_id or generate_request_id()
    _request_id.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return _request_id.get()


def clear_request_context() -> None:
    _request_id.set(None)


class ContextFilter(logging.Filter):
    """Logging filter that adds the request ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        record.context = f"[{request_id}] " if request_id else ""
        return True


def setup_context_logging() -> None:
    """
    Setup logging with context filter.

    Call this once at application startup to enable correlation IDs in logs.
    """
    context_filter = ContextFilter()
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(context)s%(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.root.handlers:
        handler.addFilter(context_filter)
        handler.setFormatter(formatter)


# =============================================================================
# Secret Masking
# =============================================================================

MASK = "***MASKED***"

# Patterns for sensitive keys that should be masked
SENSITIVE_PATTERNS = [
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
    re.compile(r".*password.*", re.IGNORECASE),
    re.compile(r".*key.*", re.IGNORECASE),
    re.compile(r".*credential.*", re.IGNORECASE),
]


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    return any(pattern.match(key) for pattern in SENSITIVE_PATTERNS)


def mask_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a safe version of a config for API responses.

    Sensitive values are replaced by a marker; empty ones stay None so
    clients can still tell whether a credential is set.
    """
    safe_config: Dict[str, Any] = {}

    for key, value in config.items():
        if is_sensitive_key(key):
            safe_config[key] = MASK if value else None
        elif isinstance(value, dict):
            safe_config[key] = mask_config(value)
        else:
            safe_config[key] = value

    return safe_config
