from __future__ import annotations

import hmac
import os
from typing import Optional

from fastapi import Header, HTTPException


def get_bearer_token() -> Optional[str]:
    token = os.getenv("BEARER_TOKEN", "").strip()
    return token or None


def is_auth_enabled() -> bool:
    return get_bearer_token() is not None


def _constant_time_compare(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


async def verify_token(authorization: Optional[str] = Header(None)) -> str:
    """
    FastAPI dependency to verify bearer token.

    Returns the token if valid, raises HTTPException if invalid.
    """
    if not is_auth_enabled():
        return ""

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    provided = authorization.split(" ", 1)[1].strip()
    expected = get_bearer_token()

    if not expected or not _constant_time_compare(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid token")

    return provided
