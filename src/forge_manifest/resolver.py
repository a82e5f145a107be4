"""
Image name resolution: which registry hosts an image, and what path to use
in that registry's URLs.

Detection is a textual heuristic rather than a URL parser. A domain-looking
first path segment (one containing a dot) is matched against each directory
entry's registry URL by substring containment, so a registry whose URL
happens to contain another host's name can be picked up by mistake.
Subclass ImageNameResolver and override matches_endpoint() for a stricter
comparison.
"""

import logging
from typing import Optional

from forge_manifest.constants import (
    CUSTOM_ROUTE_PREFIX,
    DOCKERHUB_KEY,
    GHCR_KEY,
    GHCR_PREFIX,
    OFFICIAL_IMAGE_NAMESPACE,
)
from forge_manifest.directory import RegistryDirectory
from forge_manifest.models import RegistryEndpoint

logger = logging.getLogger(__name__)


def leading_domain(image: str) -> Optional[str]:
    """
    Extract a domain-looking first segment from an image reference.

    Examples:
        >>> leading_domain("myhost.example.com/a/b")
        'myhost.example.com'
        >>> leading_domain("library/nginx") is None
        True
        >>> leading_domain("nginx") is None
        True
    """
    if "/" not in image:
        return None
    first = image.split("/", 1)[0]
    return first if "." in first else None


def normalize_image_name(image: str, registry_key: str) -> str:
    """
    Normalize an image reference into the repository path for a registry.

    - Docker Hub: single-segment names get the ``library/`` namespace.
    - GHCR: the ``ghcr.io/`` prefix is stripped.
    - Anything else: a leading ``domain/`` segment is stripped.

    Args:
        image: Image reference without tag
        registry_key: Key the image resolved to

    Returns:
        Repository path (e.g. "library/nginx")
    """
    if registry_key == DOCKERHUB_KEY:
        if "/" not in image:
            return f"{OFFICIAL_IMAGE_NAMESPACE}/{image}"
        return image

    if registry_key == GHCR_KEY:
        return image[len(GHCR_PREFIX):] if image.startswith(GHCR_PREFIX) else image

    if leading_domain(image):
        return image.split("/", 1)[1]
    return image


def is_custom_route(route_key: str) -> bool:
    """Check if a route key points at a host outside the directory."""
    return route_key.startswith(CUSTOM_ROUTE_PREFIX)


def custom_route_domain(route_key: str) -> str:
    """Return the host encoded in a ``custom:<domain>`` route key."""
    return route_key[len(CUSTOM_ROUTE_PREFIX):]


class ImageNameResolver:
    """Maps image references onto registry directory entries."""

    def __init__(self, directory: RegistryDirectory):
        self.directory = directory

    def matches_endpoint(self, domain: str, endpoint: RegistryEndpoint) -> bool:
        """Heuristic domain match: the registry URL contains the domain text."""
        return domain in endpoint.registry_url

    def match_directory(self, image: str) -> Optional[str]:
        """Return the key of the first directory entry matching the image's domain."""
        domain = leading_domain(image)
        if domain is None:
            return None
        for endpoint in self.directory.endpoints():
            if self.matches_endpoint(domain, endpoint):
                return endpoint.key
        return None

    def detect_registry(self, image: str) -> str:
        """
        Detect which registry an image belongs to.

        Args:
            image: Image reference without tag (e.g. "ghcr.io/o/r", "nginx")

        Returns:
            Registry key; Docker Hub when nothing else matches
        """
        if image.startswith(GHCR_PREFIX):
            return GHCR_KEY
        return self.match_directory(image) or DOCKERHUB_KEY

    def resolve_route(self, image: str) -> str:
        """
        Like detect_registry(), but hosts that are not in the directory get a
        ``custom:<domain>`` route so they can be served by challenge discovery
        instead of being sent to Docker Hub.
        """
        if image.startswith(GHCR_PREFIX):
            return GHCR_KEY
        key = self.match_directory(image)
        if key:
            return key
        domain = leading_domain(image)
        if domain:
            logger.debug(f"Image {image} is on unregistered host {domain}")
            return f"{CUSTOM_ROUTE_PREFIX}{domain}"
        return DOCKERHUB_KEY

    def normalize(self, image: str, registry_key: str) -> str:
        return normalize_image_name(image, registry_key)
