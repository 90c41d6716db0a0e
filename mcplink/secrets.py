"""Encryption of server credentials at rest (auth tokens, OAuth tokens)."""

from __future__ import annotations

import base64
import secrets as pysecrets
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mcplink.config import Settings
from mcplink.errors import SecretsError

ENCRYPTED_PREFIX = "v1"
PLAIN_PREFIX = "plain:"


class TokenCipher:
    """
    Encrypts single secret values for storage in the mcp_servers table.

    Encrypted values look like ``v1:<salt>:<fernet token>``; the Fernet key
    is derived from SECRETS_KEY with PBKDF2 and a per-value salt. Without a
    key, values are only stored (as ``plain:<value>``) when
    ALLOW_INSECURE_SECRETS is set.
    """

    def __init__(self, secrets_key: Optional[str] = None, allow_insecure: bool = False):
        self._secrets_key = secrets_key or None
        self._allow_insecure = allow_insecure

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCipher":
        return cls(settings.secrets_key, settings.allow_insecure_secrets)

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return value

        if self._secrets_key:
            salt = pysecrets.token_bytes(16)
            fernet = Fernet(_derive_fernet_key(self._secrets_key, salt))
            ciphertext = fernet.encrypt(value.encode("utf-8")).decode("ascii")
            salt_b64 = base64.urlsafe_b64encode(salt).decode("ascii")
            return f"{ENCRYPTED_PREFIX}:{salt_b64}:{ciphertext}"

        if not self._allow_insecure:
            raise SecretsError("SECRETS_KEY is required unless ALLOW_INSECURE_SECRETS=1")
        return f"{PLAIN_PREFIX}{value}"

    def decrypt(self, stored: Optional[str]) -> Optional[str]:
        if stored is None or stored == "":
            return stored

        if stored.startswith(PLAIN_PREFIX):
            return stored[len(PLAIN_PREFIX):]

        parts = stored.split(":", 2)
        if len(parts) != 3 or parts[0] != ENCRYPTED_PREFIX:
            # Legacy rows hold the raw token
            return stored

        if not self._secrets_key:
            raise SecretsError("SECRETS_KEY is required to decrypt stored credentials")

        _, salt_b64, ciphertext = parts
        salt = base64.urlsafe_b64decode(salt_b64.encode("ascii"))
        fernet = Fernet(_derive_fernet_key(self._secrets_key, salt))
        try:
            return fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise SecretsError("Unable to decrypt stored credential with provided SECRETS_KEY") from exc


@lru_cache(maxsize=256)
def _derive_fernet_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=390000,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))
