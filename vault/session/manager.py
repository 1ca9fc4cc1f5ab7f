"""Opaque session tokens with a fixed lifetime.

A session is a liveness marker under ``sess:<token>``; the backend owns
expiry. Sessions are never refreshed on use.
"""

import secrets
from typing import Optional

from vault.config import settings
from vault.storage.backend import KeyValueBackend

SESSION_PREFIX = "sess:"
TOKEN_BYTES = 24  # 192 bits


class SessionManager:
    def __init__(self, backend: KeyValueBackend, ttl_seconds: int = None):
        self.backend = backend
        self.ttl_seconds = ttl_seconds or settings.SESSION_TTL_SECONDS

    def _get_key(self, token: str) -> str:
        return f"{SESSION_PREFIX}{token}"

    def issue(self) -> str:
        """Create a new session and return its token."""
        token = secrets.token_hex(TOKEN_BYTES)
        self.backend.put(self._get_key(token), "1", ttl_seconds=self.ttl_seconds)
        return token

    def validate(self, token: Optional[str]) -> bool:
        """True iff a live marker exists. Unknown, revoked and expired all read as False."""
        if not token:
            return False
        return bool(self.backend.get(self._get_key(token)))

    def revoke(self, token: Optional[str]) -> None:
        if not token:
            return
        self.backend.delete(self._get_key(token))
