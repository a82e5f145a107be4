"""Per-client credential store keyed by registry key or bare domain."""

from __future__ import annotations

import logging
from typing import Optional

from forge_manifest.locks import ReadWriteLock
from forge_manifest.models import Credential

logger = logging.getLogger(__name__)


class CredentialStore:
    """Thread-safe mapping of registry identifier to Credential.

    Keys are directory keys ("dockerhub", "ghcr", custom keys) or, for hosts
    that are not registered, the bare domain ("registry.example.com").
    Writes replace any previous credential; nothing expires.
    """

    def __init__(self, initial: Optional[dict[str, Credential]] = None):
        self._credentials: dict[str, Credential] = dict(initial or {})
        self._lock = ReadWriteLock()

    def set(self, key: str, username: str, token: str) -> None:
        with self._lock.write_locked():
            self._credentials[key] = Credential(username=username, token=token)
        logger.debug(f"Stored credential for {key}")

    def get(self, key: str) -> Optional[Credential]:
        with self._lock.read_locked():
            return self._credentials.get(key)

    def remove(self, key: str) -> None:
        with self._lock.write_locked():
            self._credentials.pop(key, None)

    def basic_auth(self, key: str) -> Optional[tuple[str, str]]:
        """Return (username, token) for HTTP Basic auth, or None if unusable."""
        credential = self.get(key)
        if credential is None or not credential.is_usable:
            return None
        return credential.as_basic_auth()

    def keys(self) -> list[str]:
        with self._lock.read_locked():
            return sorted(self._credentials)

    def __contains__(self, key: object) -> bool:
        with self._lock.read_locked():
            return key in self._credentials
