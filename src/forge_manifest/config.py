"""
Settings and file/environment loaders.

Settings come from environment variables with the FORGE_MANIFEST_ prefix.
Custom registries can be declared in a YAML file:

    registries:
      - key: harbor
        name: Company Harbor
        registry_url: https://harbor.example.com
        auth_url: https://harbor.example.com/service
        service: harbor-registry
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic_settings import BaseSettings

from forge_manifest.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_BATCH_SIZE,
    DOCKERHUB_KEY,
    GHCR_KEY,
    REQUEST_TIMEOUT,
)
from forge_manifest.directory import RegistryDirectory
from forge_manifest.models import Credential, RegistryEndpoint

logger = logging.getLogger(__name__)

# Registry key -> (username env var, token env var)
CREDENTIAL_ENV_VARS = {
    DOCKERHUB_KEY: ("DOCKERHUB_USERNAME", "DOCKERHUB_TOKEN"),
    GHCR_KEY: ("GHCR_USERNAME", "GHCR_TOKEN"),
}

_REQUIRED_FIELDS = ("key", "registry_url", "auth_url")


class Settings(BaseSettings):
    """forge-manifest settings.

    All values can be overridden via environment variables with the
    FORGE_MANIFEST_ prefix. Example: FORGE_MANIFEST_PROXY_URL=http://proxy:8080
    """

    request_timeout: float = REQUEST_TIMEOUT
    proxy_url: Optional[str] = None
    default_concurrency: int = DEFAULT_CONCURRENCY
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    registries_file: Optional[Path] = None

    model_config = {"env_prefix": "FORGE_MANIFEST_"}


def load_registries_file(config_file: Path, directory: RegistryDirectory) -> list[str]:
    """
    Register custom registries from a YAML file.

    Entries missing key, registry_url or auth_url are skipped with a warning.

    Args:
        config_file: YAML file with a top-level 'registries' list
        directory: Directory to register into

    Returns:
        Keys that were registered

    Raises:
        ConfigurationError: On reserved or duplicate keys
        OSError: If the file cannot be read
    """
    with open(config_file, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or not isinstance(data, dict):
        logger.warning(f"No registries found in {config_file}")
        return []

    entries = data.get("registries", [])
    if not isinstance(entries, list):
        logger.warning(f"'registries' in {config_file} is not a list, ignoring")
        return []

    registered = []
    for entry in entries:
        if not isinstance(entry, dict) or not all(entry.get(f) for f in _REQUIRED_FIELDS):
            logger.warning(f"Skipping malformed registry entry in {config_file}: {entry!r}")
            continue

        key = str(entry["key"]).strip()
        directory.register(
            key,
            RegistryEndpoint(
                key=key,
                name=str(entry.get("name") or ""),
                registry_url=str(entry["registry_url"]).rstrip("/"),
                auth_url=str(entry["auth_url"]).rstrip("/"),
                service=str(entry.get("service") or ""),
            ),
        )
        registered.append(key)

    if registered:
        logger.info(f"Loaded {len(registered)} registries from {config_file}")
    return registered


def credentials_from_env(environ: Optional[Mapping[str, str]] = None) -> dict[str, Credential]:
    """Read Docker Hub and GHCR credentials from the environment."""
    environ = os.environ if environ is None else environ
    credentials = {}
    for key, (user_var, token_var) in CREDENTIAL_ENV_VARS.items():
        username = environ.get(user_var, "")
        token = environ.get(token_var, "")
        if username and token:
            credentials[key] = Credential(username=username, token=token)
    return credentials
