"""forge-manifest: registry-aware Docker/OCI manifest fetching."""

from forge_manifest.client import RegistryClient
from forge_manifest.constants import DOCKERHUB_KEY, GHCR_KEY, __version__
from forge_manifest.directory import RegistryDirectory, get_default_directory
from forge_manifest.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidManifestError,
    RegistryError,
    RequestConstructionError,
    RequestTooLarge,
    TransportError,
    UpstreamError,
)
from forge_manifest.models import Credential, ImageSpec, ManifestResult, RegistryEndpoint

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "Credential",
    "DOCKERHUB_KEY",
    "GHCR_KEY",
    "ImageSpec",
    "InvalidManifestError",
    "ManifestResult",
    "RegistryClient",
    "RegistryDirectory",
    "RegistryEndpoint",
    "RegistryError",
    "RequestConstructionError",
    "RequestTooLarge",
    "TransportError",
    "UpstreamError",
    "__version__",
    "get_default_directory",
]
