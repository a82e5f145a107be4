"""
Registry directory: the table of named registry endpoints.

Built-in entries (Docker Hub and GHCR) are always present and protected;
custom entries are added and removed explicitly. A directory instance is
normally shared by every client in the process via get_default_directory(),
but clients accept their own instance for isolation.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from forge_manifest.constants import BUILTIN_KEYS, DOCKERHUB_KEY, GHCR_KEY
from forge_manifest.exceptions import (
    ConfigurationError,
    DuplicateRegistryError,
    RegistryNotFoundError,
    ReservedKeyError,
)
from forge_manifest.locks import ReadWriteLock
from forge_manifest.models import RegistryEndpoint

logger = logging.getLogger(__name__)

BUILTIN_REGISTRIES: dict[str, RegistryEndpoint] = {
    DOCKERHUB_KEY: RegistryEndpoint(
        key=DOCKERHUB_KEY,
        name="Docker Hub",
        registry_url="https://registry-1.docker.io",
        auth_url="https://auth.docker.io",
        service="registry.docker.io",
    ),
    GHCR_KEY: RegistryEndpoint(
        key=GHCR_KEY,
        name="GitHub Container Registry",
        registry_url="https://ghcr.io",
        auth_url="https://ghcr.io",
    ),
}

# Module-level shared instance
_default_directory: Optional["RegistryDirectory"] = None


def get_default_directory() -> "RegistryDirectory":
    """Get or create the process-wide registry directory."""
    global _default_directory
    if _default_directory is None:
        _default_directory = RegistryDirectory()
    return _default_directory


class RegistryDirectory:
    """
    Concurrency-safe table of registry endpoints keyed by name.

    Reads (lookup, list, iteration for detection) share a lock; register and
    unregister take it exclusively.
    """

    def __init__(self):
        self._entries: dict[str, RegistryEndpoint] = dict(BUILTIN_REGISTRIES)
        self._lock = ReadWriteLock()

    def register(self, key: str, endpoint: RegistryEndpoint) -> RegistryEndpoint:
        """
        Add a custom registry.

        The stored entry always carries ``key``; an empty display name
        defaults to the key.

        Args:
            key: Unique registry key
            endpoint: Endpoint configuration

        Returns:
            The stored endpoint

        Raises:
            ConfigurationError: If key is empty
            ReservedKeyError: If key belongs to a built-in registry
            DuplicateRegistryError: If key is already registered
        """
        if not key:
            raise ConfigurationError("Registry key must not be empty")
        if key in BUILTIN_KEYS:
            raise ReservedKeyError(key, action="register over")

        stored = dataclasses.replace(endpoint, key=key, name=endpoint.name or key)

        with self._lock.write_locked():
            if key in self._entries:
                raise DuplicateRegistryError(key)
            self._entries[key] = stored

        logger.debug(f"Registered registry {key}: {stored.registry_url}")
        return stored

    def unregister(self, key: str) -> None:
        """
        Remove a custom registry.

        Raises:
            ReservedKeyError: If key belongs to a built-in registry
            RegistryNotFoundError: If key is not registered
        """
        if key in BUILTIN_KEYS:
            raise ReservedKeyError(key, action="remove")

        with self._lock.write_locked():
            if key not in self._entries:
                raise RegistryNotFoundError(key)
            del self._entries[key]

        logger.debug(f"Unregistered registry {key}")

    def get(self, key: str) -> Optional[RegistryEndpoint]:
        """Return the endpoint for key, or None if it is not registered."""
        with self._lock.read_locked():
            return self._entries.get(key)

    def lookup(self, key: str) -> RegistryEndpoint:
        """
        Return the endpoint for key.

        Raises:
            RegistryNotFoundError: If key is not registered
        """
        endpoint = self.get(key)
        if endpoint is None:
            raise RegistryNotFoundError(key)
        return endpoint

    def list(self) -> dict[str, RegistryEndpoint]:
        """Snapshot of all entries; mutating it does not affect the directory."""
        with self._lock.read_locked():
            return {key: dataclasses.replace(ep) for key, ep in self._entries.items()}

    def endpoints(self) -> list[RegistryEndpoint]:
        """Entries in registration order (built-ins first)."""
        with self._lock.read_locked():
            return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        with self._lock.read_locked():
            return key in self._entries

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)
