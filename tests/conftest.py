"""
Shared pytest fixtures for mcplink tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

# Ensure the project root is in the Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mcplink.config import get_settings
from mcplink.db.database import init_db, reset_engine
from mcplink.mcp.store import ServerConfigStore
from mcplink.secrets import TokenCipher


# ==================== Settings Fixtures ====================


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Settings are cached; start every test from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ==================== Auth Fixtures ====================


@pytest.fixture
def auth_token() -> str:
    """Test authentication token."""
    return "test_secret_token_12345"


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Authorization headers with test bearer token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def auth_env(auth_token: str, monkeypatch: pytest.MonkeyPatch) -> str:
    """Set BEARER_TOKEN for tests."""
    monkeypatch.setenv("BEARER_TOKEN", auth_token)
    return auth_token


@pytest.fixture
def no_auth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Disable authentication by removing BEARER_TOKEN."""
    monkeypatch.delenv("BEARER_TOKEN", raising=False)


# ==================== Database Fixtures ====================


@pytest.fixture
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Fresh SQLite database per test."""
    db_path = tmp_path / "db" / "mcplink.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    reset_engine()
    init_db()
    yield db_path
    reset_engine()


@pytest.fixture
def insecure_cipher() -> TokenCipher:
    """Cipher that stores tokens as marked plain text (no key derivation cost)."""
    return TokenCipher(secrets_key=None, allow_insecure=True)


@pytest.fixture
def store(database: Path, insecure_cipher: TokenCipher) -> ServerConfigStore:
    return ServerConfigStore(insecure_cipher)


# ==================== Config Fixtures ====================


@pytest.fixture
def http_config() -> Dict[str, Any]:
    """A raw HTTP server row as it comes from the database."""
    return {
        "id": "srv-http",
        "brand_id": "brand-1",
        "name": "Search",
        "transport_type": "http",
        "url": "https://mcp.example.com/mcp",
        "auth_type": "bearer",
        "auth_header": None,
        "auth_token_encrypted": "tok-123",
        "enabled": True,
        "priority": 0,
        "timeout_ms": 30000,
        "allowed_tools": None,
        "blocked_tools": None,
    }
