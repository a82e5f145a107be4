"""
Single-image manifest retrieval.

Resolves the image's route, obtains a token (registered flow or challenge
discovery for unregistered hosts) and performs the manifest GET. The
response body is passed through unmodified; multi-arch indexes are not
resolved further.
"""

import logging
from typing import Optional

import requests

from forge_manifest.auth import ANONYMOUS, TokenAcquirer
from forge_manifest.constants import DIGEST_HEADER, MANIFEST_MEDIA_TYPES, REQUEST_TIMEOUT
from forge_manifest.exceptions import InvalidManifestError, TransportError, UpstreamError
from forge_manifest.resolver import (
    ImageNameResolver,
    custom_route_domain,
    is_custom_route,
    normalize_image_name,
)

logger = logging.getLogger(__name__)

ACCEPT_HEADER = ", ".join(MANIFEST_MEDIA_TYPES)


class ManifestFetcher:
    """Fetches one manifest and its digest from a registry."""

    def __init__(
        self,
        session: requests.Session,
        resolver: ImageNameResolver,
        acquirer: TokenAcquirer,
        timeout: float = REQUEST_TIMEOUT,
        log: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.resolver = resolver
        self.acquirer = acquirer
        self.timeout = timeout
        self.logger = log or logger

    def get_manifest_with_digest(self, image: str, tag: str) -> tuple[str, str]:
        """
        Fetch a manifest, authenticating individually for this image.

        Registered registries use the single-scope token flow; hosts outside
        the directory go through WWW-Authenticate discovery against
        ``https://<domain>``.

        Args:
            image: Image reference without tag
            tag: Tag to fetch

        Returns:
            Tuple of (manifest body, digest); digest is "" when not sent

        Raises:
            RegistryError: Any auth, transport or upstream failure
        """
        route = self.resolver.resolve_route(image)

        if is_custom_route(route):
            domain = custom_route_domain(route)
            self.logger.debug(f"Using challenge discovery for unregistered host {domain}")
            registry_url = f"https://{domain}"
            path = normalize_image_name(image, route)
            token = self.acquirer.get_token_via_challenge(registry_url, path)
            return self.fetch(registry_url, path, tag, token)

        endpoint = self.resolver.directory.lookup(route)
        path = normalize_image_name(image, route)
        token = self.acquirer.get_token(image, route)
        return self.fetch(endpoint.registry_url, path, tag, token)

    def get_manifest_with_token(self, image: str, tag: str, registry_key: str, token: str) -> tuple[str, str]:
        """Fetch a manifest from a registered registry with an existing token."""
        endpoint = self.resolver.directory.lookup(registry_key)
        path = normalize_image_name(image, registry_key)
        return self.fetch(endpoint.registry_url, path, tag, token)

    def fetch(self, registry_url: str, path: str, tag: str, token: str) -> tuple[str, str]:
        """
        GET ``{registry_url}/v2/{path}/manifests/{tag}`` with a bearer token.

        Raises:
            TransportError: On network failure
            UpstreamError: On a non-200 response
            InvalidManifestError: If a 200 body is not UTF-8 text
        """
        url = f"{registry_url}/v2/{path}/manifests/{tag}"
        self.logger.debug(f"Fetching manifest {url}")

        try:
            response = self.session.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": ACCEPT_HEADER,
                },
                auth=ANONYMOUS,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Manifest request to {url} failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamError(response.status_code, response.text, url=url)

        digest = response.headers.get(DIGEST_HEADER) or ""
        try:
            body = response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidManifestError(f"Manifest body from {url} is not UTF-8: {e}", url=url) from e
        return body, digest
