"""Data model shared by the directory, auth, planner and dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


def extract_domain(url: str) -> str:
    """Return the host portion of a URL such as ``https://ghcr.io/v2``."""
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            url = url[len(scheme):]
            break
    return url.split("/", 1)[0]


@dataclass(frozen=True)
class RegistryEndpoint:
    """A named registry and the auth service that issues its tokens.

    Attributes:
        key: Unique directory key (e.g. "dockerhub").
        name: Display name.
        registry_url: Base URL of the registry API.
        auth_url: Base URL of the token service; "/token" is appended.
        service: Value of the token request's service parameter. Empty
                 means the parameter is omitted.
    """

    key: str
    name: str
    registry_url: str
    auth_url: str
    service: str = ""

    @property
    def domain(self) -> str:
        """Host of the registry API."""
        return extract_domain(self.registry_url)


@dataclass(frozen=True)
class Credential:
    """Username/token pair used for HTTP Basic auth against a token service."""

    username: str
    token: str

    @property
    def is_usable(self) -> bool:
        """Empty usernames or tokens count as no credential at all."""
        return bool(self.username) and bool(self.token)

    def as_basic_auth(self) -> tuple[str, str]:
        return (self.username, self.token)


@dataclass(frozen=True)
class ImageSpec:
    """An image name plus the tag to fetch."""

    image: str
    tag: str = "latest"

    @classmethod
    def parse(cls, reference: str, default_tag: str = "latest") -> "ImageSpec":
        """Split ``image[:tag]`` on the first colon.

        Registry hosts with a port (``host:5000/app``) are not supported by
        this split.
        """
        reference = reference.strip()
        if ":" in reference:
            image, tag = reference.split(":", 1)
            return cls(image=image, tag=tag)
        return cls(image=reference, tag=default_tag)

    def __str__(self) -> str:
        return f"{self.image}:{self.tag}"


@dataclass(frozen=True)
class TokenResponse:
    """Body of a token endpoint response."""

    token: str = ""
    access_token: str = ""
    expires_in: int = 0

    @classmethod
    def from_json(cls, data: Any) -> "TokenResponse":
        if not isinstance(data, dict):
            return cls()
        expires_in = data.get("expires_in") or 0
        return cls(
            token=data.get("token") or "",
            access_token=data.get("access_token") or "",
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else 0,
        )

    @property
    def bearer(self) -> str:
        """The token to present, preferring ``token`` over ``access_token``."""
        return self.token or self.access_token


@dataclass(frozen=True)
class Challenge:
    """Parsed ``WWW-Authenticate: Bearer ...`` challenge."""

    realm: str
    service: str = ""
    scope: str = ""


@dataclass
class ManifestResult:
    """Outcome of fetching one image's manifest.

    Exactly one of ``manifest`` (with ``digest``) or ``error`` is meaningful.
    ``digest`` may be empty when the registry omits Docker-Content-Digest.
    """

    image: str
    tag: str
    manifest: str = ""
    digest: str = ""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "image": self.image,
            "tag": self.tag,
            "digest": self.digest,
            "manifest": self.manifest,
            "error": str(self.error) if self.error else None,
        }
