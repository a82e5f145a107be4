"""Exception hierarchy for registry resolution, token auth and manifest fetching."""

from __future__ import annotations

from typing import Optional


class RegistryError(Exception):
    """Base class for every failure raised by forge-manifest."""


class ConfigurationError(RegistryError):
    """Unknown registry key, reserved-key conflict or duplicate registration."""


class ReservedKeyError(ConfigurationError):
    """Attempt to register over or remove a built-in registry."""

    def __init__(self, key: str, action: str = "modify"):
        self.key = key
        super().__init__(f"Cannot {action} built-in registry '{key}'")


class DuplicateRegistryError(ConfigurationError):
    """Registry key is already registered."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Registry key '{key}' is already registered")


class RegistryNotFoundError(ConfigurationError):
    """Registry key is not present in the directory."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Registry '{key}' is not registered")


class HTTPStatusMixin:
    """Carries the status code and body of a failed registry response."""

    status_code: Optional[int] = None
    body: str = ""


class AuthenticationError(HTTPStatusMixin, RegistryError):
    """Token endpoint or challenge discovery failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message} (status {status_code}): {body}"
        super().__init__(message)


class NoTokenInResponseError(AuthenticationError):
    """Token endpoint answered 200 without a token or access_token field."""

    def __init__(self):
        super().__init__("Auth response contains neither 'token' nor 'access_token'")


class RequestConstructionError(RegistryError):
    """Inputs could not be turned into a valid request."""


class RequestTooLarge(RequestConstructionError):
    """Composed auth URL exceeds the length budget."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"Auth URL too long ({length} > {limit} characters); "
            f"request fewer images per batch"
        )


class TransportError(RegistryError):
    """Network-level failure reaching a registry or auth service."""


class UpstreamError(HTTPStatusMixin, RegistryError):
    """Manifest endpoint answered with a non-200 status."""

    def __init__(self, status_code: int, body: str = "", url: str = ""):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"Failed to fetch manifest (status {status_code}): {body}")


class InvalidManifestError(RegistryError):
    """Manifest endpoint answered 200 but the body is not UTF-8 text."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)
