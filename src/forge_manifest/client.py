"""
Registry client: the public API for credentials, registry registration,
token acquisition and manifest fetching.

Example:

    client = RegistryClient()
    client.add_credential("ghcr", "octocat", "ghp_...")
    manifest, digest = client.get_manifest_with_digest("nginx", "latest")

    results = client.get_manifests_with_digest(
        [ImageSpec("nginx", "latest"), ImageSpec("ghcr.io/o/r", "v1")],
        concurrency=5,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlparse

import requests

from forge_manifest.auth import TokenAcquirer
from forge_manifest.constants import REQUEST_TIMEOUT
from forge_manifest.credentials import CredentialStore
from forge_manifest.directory import RegistryDirectory, get_default_directory
from forge_manifest.dispatcher import FetchDispatcher
from forge_manifest.exceptions import RequestConstructionError
from forge_manifest.manifest import ManifestFetcher
from forge_manifest.models import Credential, ImageSpec, ManifestResult, RegistryEndpoint
from forge_manifest.planner import BatchPlanner
from forge_manifest.resolver import ImageNameResolver

if TYPE_CHECKING:
    from forge_manifest.config import Settings


def _validate_proxy_url(proxy_url: str) -> str:
    parsed = urlparse(proxy_url)
    if not parsed.scheme or not parsed.netloc:
        raise RequestConstructionError(f"Invalid proxy URL: {proxy_url!r}")
    return proxy_url


class RegistryClient:
    """
    Docker/OCI distribution client with per-registry credentials.

    Without an explicit proxy, requests honours HTTP_PROXY, HTTPS_PROXY and
    NO_PROXY from the environment. Without an explicit logger the module
    logger is used, which stays silent unless logging is configured.
    """

    def __init__(
        self,
        credentials: Optional[dict[str, Credential]] = None,
        proxy_url: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        directory: Optional[RegistryDirectory] = None,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            credentials: Initial registry key -> Credential mapping
            proxy_url: Explicit proxy, e.g. "http://proxy.example.com:8080"
            logger: Logger for diagnostics
            directory: Registry directory; defaults to the process-wide one
            session: requests Session to use (mainly for tests)
            timeout: Per-request timeout in seconds

        Raises:
            RequestConstructionError: If proxy_url is not a valid URL
        """
        self.session = session or requests.Session()
        if proxy_url:
            proxy_url = _validate_proxy_url(proxy_url)
            self.session.proxies = {"http": proxy_url, "https": proxy_url}

        self.directory = directory if directory is not None else get_default_directory()
        self.credentials = CredentialStore(credentials)
        self.timeout = timeout

        self.resolver = ImageNameResolver(self.directory)
        self.acquirer = TokenAcquirer(self.session, self.directory, self.credentials, timeout)
        self.fetcher = ManifestFetcher(self.session, self.resolver, self.acquirer, timeout)
        self.planner = BatchPlanner(self.resolver, self.acquirer)
        self.dispatcher = FetchDispatcher(self.fetcher)

        self.logger = logging.getLogger(__name__)
        if logger is not None:
            self.with_logger(logger)

    @classmethod
    def from_settings(cls, settings: "Settings", **kwargs) -> "RegistryClient":
        """Build a client from Settings (timeout and proxy)."""
        return cls(proxy_url=settings.proxy_url, timeout=settings.request_timeout, **kwargs)

    def with_logger(self, logger: Optional[logging.Logger]) -> "RegistryClient":
        """Route all diagnostics to logger. Returns self for chaining."""
        if logger is not None:
            self.logger = logger
            for component in (self.acquirer, self.fetcher, self.planner, self.dispatcher):
                component.logger = logger
        return self

    # Credentials

    def add_credential(self, registry_key: str, username: str, token: str) -> None:
        """Add or replace the credential for a registry key or bare domain."""
        self.credentials.set(registry_key, username, token)

    def remove_credential(self, registry_key: str) -> None:
        self.credentials.remove(registry_key)

    def get_credential(self, registry_key: str) -> Optional[Credential]:
        return self.credentials.get(registry_key)

    # Registry directory

    def register_registry(self, key: str, endpoint: RegistryEndpoint) -> RegistryEndpoint:
        return self.directory.register(key, endpoint)

    def unregister_registry(self, key: str) -> None:
        self.directory.unregister(key)

    def get_registry(self, key: str) -> Optional[RegistryEndpoint]:
        return self.directory.get(key)

    def list_registries(self) -> dict[str, RegistryEndpoint]:
        return self.directory.list()

    def detect_registry(self, image: str) -> str:
        return self.resolver.detect_registry(image)

    def normalize_image_name(self, image: str, registry_key: str) -> str:
        return self.resolver.normalize(image, registry_key)

    # Tokens

    def get_auth_token(self, image: str, registry_key: str) -> str:
        return self.acquirer.get_token(image, registry_key)

    def get_auth_token_for_images(self, images: list[str], registry_key: str) -> str:
        return self.acquirer.get_token_for_images(images, registry_key)

    def get_auth_token_with_scopes(self, scopes: list[str], registry_key: str) -> str:
        return self.acquirer.get_token_with_scopes(scopes, registry_key)

    def estimate_max_images_for_batch(self, sample_images: list[str], registry_key: str) -> int:
        return self.acquirer.estimate_max_images_for_batch(sample_images, registry_key)

    # Manifests

    def get_manifest_with_digest(self, image: str, tag: str) -> tuple[str, str]:
        """
        Fetch one image's manifest and its Docker-Content-Digest.

        Raises:
            RegistryError: On any configuration, auth, transport or upstream failure
        """
        return self.fetcher.get_manifest_with_digest(image, tag)

    def get_manifests_with_digest(
        self,
        specs: list[ImageSpec],
        concurrency: int = 0,
        batch_auth: bool = True,
        max_batch_size: Optional[int] = None,
    ) -> list[ManifestResult]:
        """
        Fetch manifests for many images.

        Images are grouped by registry (at most max_batch_size per group,
        default 30). With batch_auth, each group of two or more images
        shares one multi-scope token; if that token cannot be obtained the
        group's images authenticate individually.

        Args:
            specs: Images to fetch
            concurrency: 0 for sequential, otherwise the worker count
            batch_auth: Pre-acquire one token per group
            max_batch_size: Optional group size override (1-30)

        Returns:
            One ManifestResult per spec, in input order
        """
        if not specs:
            return []

        groups = self.planner.plan(specs, max_batch_size)
        if batch_auth:
            self.planner.acquire_batch_tokens(groups)

        return self.dispatcher.dispatch(groups, len(specs), concurrency)
