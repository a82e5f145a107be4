"""
Bearer token acquisition for the Docker/OCI distribution token-auth flow.

Two flows are supported:

- Registered registries: scopes of the form ``repository:<path>:pull`` are
  sent to ``{auth_url}/token`` together with the registry's service name.
  One request can carry many scopes (a batch token).
- Unregistered hosts: an unauthenticated manifest probe harvests the
  ``WWW-Authenticate`` challenge, whose realm/service/scope describe the
  token request to make.

Tokens are fetched fresh for every call; ``expires_in`` is parsed but not
used for caching.
"""

import logging
import re
from typing import Optional
from urllib.parse import quote_plus, urlencode

import requests
from requests.auth import AuthBase

from forge_manifest.constants import (
    DISCOVERY_PROBE_TAG,
    BATCH_ESTIMATE_SAFETY_FACTOR,
    MAX_AUTH_URL_LENGTH,
    MAX_RECOMMENDED_SCOPES,
    MEDIA_TYPE_DOCKER_MANIFEST,
    REQUEST_TIMEOUT,
)
from forge_manifest.credentials import CredentialStore
from forge_manifest.directory import RegistryDirectory
from forge_manifest.exceptions import (
    AuthenticationError,
    NoTokenInResponseError,
    RequestConstructionError,
    RequestTooLarge,
    TransportError,
)
from forge_manifest.models import Challenge, RegistryEndpoint, TokenResponse, extract_domain
from forge_manifest.resolver import normalize_image_name

logger = logging.getLogger(__name__)

_CHALLENGE_PARAM = re.compile(r'(\w+)\s*=\s*(?:"([^"]*)"|([^,\s]*))')


class NoAuth(AuthBase):
    """Leaves the request unauthenticated.

    With auth=None and trust_env on, requests fills in credentials from
    ~/.netrc (or $NETRC). Any auth object switches that lookup off while
    proxy environment variables keep working.
    """

    def __call__(self, request):
        return request


ANONYMOUS = NoAuth()


def build_scope(image: str, registry_key: str) -> str:
    """Pull scope for one image, e.g. ``repository:library/nginx:pull``."""
    return f"repository:{normalize_image_name(image, registry_key)}:pull"


def build_auth_url(
    endpoint: RegistryEndpoint,
    scopes: list[str],
    max_length: int = MAX_AUTH_URL_LENGTH,
) -> str:
    """
    Compose the token request URL for a registered registry.

    Args:
        endpoint: Registry whose auth service issues the token
        scopes: Scope strings, one ``scope`` parameter each
        max_length: URL length budget

    Returns:
        ``{auth_url}/token?service=...&scope=...&scope=...``; the service
        parameter is omitted when the endpoint has none (GHCR)

    Raises:
        RequestTooLarge: If the URL exceeds max_length
    """
    params: list[tuple[str, str]] = []
    if endpoint.service:
        params.append(("service", endpoint.service))
    params.extend(("scope", scope) for scope in scopes)

    url = f"{endpoint.auth_url}/token"
    if params:
        url = f"{url}?{urlencode(params)}"

    if len(url) > max_length:
        raise RequestTooLarge(len(url), max_length)
    return url


def parse_www_authenticate(header: str) -> Challenge:
    """
    Parse a Bearer ``WWW-Authenticate`` challenge.

    Example:
        >>> parse_www_authenticate(
        ...     'Bearer realm="https://auth.example.com/token",service="svc"'
        ... ).service
        'svc'

    Raises:
        AuthenticationError: If the scheme is not Bearer or realm is missing
    """
    if not header or not header.startswith("Bearer "):
        raise AuthenticationError(f"Unsupported authentication challenge: {header!r}")

    params: dict[str, str] = {}
    for match in _CHALLENGE_PARAM.finditer(header[len("Bearer "):]):
        key, quoted, bare = match.groups()
        params[key] = quoted if quoted is not None else bare

    realm = params.get("realm", "")
    if not realm:
        raise AuthenticationError("Challenge has no realm parameter")

    return Challenge(
        realm=realm,
        service=params.get("service", ""),
        scope=params.get("scope", ""),
    )


class TokenAcquirer:
    """
    Fetches bearer tokens from registry auth services.

    Uses a shared requests Session; Basic credentials come from the
    CredentialStore, keyed by registry key (registered flow) or bare domain
    (challenge flow).
    """

    def __init__(
        self,
        session: requests.Session,
        directory: RegistryDirectory,
        credentials: CredentialStore,
        timeout: float = REQUEST_TIMEOUT,
        log: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.directory = directory
        self.credentials = credentials
        self.timeout = timeout
        self.logger = log or logger

    def get_token(self, image: str, registry_key: str) -> str:
        """Single-scope token for one image."""
        return self.get_token_with_scopes([build_scope(image, registry_key)], registry_key)

    def get_token_for_images(self, images: list[str], registry_key: str) -> str:
        """
        One token whose scopes cover every image in the list.

        Longer names leave room for fewer scopes before the URL budget is hit;
        see estimate_max_images_for_batch().

        Raises:
            RequestConstructionError: If images is empty
        """
        if not images:
            raise RequestConstructionError("Image list must not be empty")

        if len(images) > MAX_RECOMMENDED_SCOPES:
            self.logger.warning(
                f"Requesting {len(images)} scopes in one token "
                f"(recommended max {MAX_RECOMMENDED_SCOPES}); "
                f"the auth service may reject the request"
            )

        scopes = [build_scope(image, registry_key) for image in images]
        return self.get_token_with_scopes(scopes, registry_key)

    def get_token_with_scopes(self, scopes: list[str], registry_key: str) -> str:
        """
        Token for an explicit scope list against a registered registry.

        Raises:
            RegistryNotFoundError: If registry_key is not registered
            RequestTooLarge: If the auth URL exceeds the length budget
            AuthenticationError: On non-200 or a response without a token
            TransportError: On network failure
        """
        endpoint = self.directory.lookup(registry_key)
        url = build_auth_url(endpoint, scopes)
        return self._request_token(url, self.credentials.basic_auth(registry_key))

    def get_token_via_challenge(self, registry_url: str, image: str) -> str:
        """
        Discover the auth service of an unregistered registry and get a token.

        Probes ``{registry_url}/v2/{image}/manifests/latest`` without
        credentials. Only a 401 carries the challenge, so any other status,
        including 200, fails.

        Args:
            registry_url: Registry base URL (e.g. "https://registry.example.com")
            image: Normalized repository path

        Raises:
            AuthenticationError: Unexpected probe status or unusable challenge
            TransportError: On network failure
        """
        probe_url = f"{registry_url}/v2/{image}/manifests/{DISCOVERY_PROBE_TAG}"
        self.logger.debug(f"Probing {probe_url} for auth challenge")

        try:
            response = self.session.get(
                probe_url,
                headers={"Accept": MEDIA_TYPE_DOCKER_MANIFEST},
                auth=ANONYMOUS,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Challenge probe to {probe_url} failed: {e}") from e

        if response.status_code != 401:
            raise AuthenticationError(
                f"Unexpected status {response.status_code} from challenge probe {probe_url}"
            )

        header = response.headers.get("WWW-Authenticate", "")
        if not header:
            raise AuthenticationError(f"No WWW-Authenticate header from {probe_url}")

        challenge = parse_www_authenticate(header)
        self.logger.debug(
            f"Challenge from {registry_url}: realm={challenge.realm} "
            f"service={challenge.service} scope={challenge.scope}"
        )

        params: list[tuple[str, str]] = []
        if challenge.service:
            params.append(("service", challenge.service))
        if challenge.scope:
            params.append(("scope", challenge.scope))

        auth_url = challenge.realm
        if params:
            auth_url = f"{auth_url}?{urlencode(params)}"

        domain = extract_domain(registry_url)
        return self._request_token(auth_url, self.credentials.basic_auth(domain))

    def estimate_max_images_for_batch(self, sample_images: list[str], registry_key: str) -> int:
        """
        Estimate how many images fit in one batch token request.

        Uses the average encoded scope length of the sample against the URL
        budget left after the base URL, minus a 10% margin. Advisory only.

        Returns:
            Estimated image count (at least 1); 0 if the sample is empty or
            the registry is unknown
        """
        if not sample_images:
            return 0

        endpoint = self.directory.get(registry_key)
        if endpoint is None:
            return 0

        total = 0
        for image in sample_images:
            total += len(quote_plus(build_scope(image, registry_key))) + len("&scope=")
        average = total // len(sample_images)

        base_length = len(f"{endpoint.auth_url}/token?service={endpoint.service}")
        estimate = (MAX_AUTH_URL_LENGTH - base_length) // average
        estimate = int(estimate * BATCH_ESTIMATE_SAFETY_FACTOR)

        return max(estimate, 1)

    def _request_token(self, url: str, auth: Optional[tuple[str, str]]) -> str:
        """GET a token endpoint and extract the bearer token.

        Without a stored credential the request goes out with no
        Authorization header at all.
        """
        try:
            response = self.session.get(url, auth=auth or ANONYMOUS, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Auth request failed: {e}") from e

        if response.status_code != 200:
            raise AuthenticationError(
                "Authentication failed",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(f"Could not parse auth response: {e}") from e

        token = TokenResponse.from_json(data).bearer
        if not token:
            raise NoTokenInResponseError()
        return token
