"""Pytest configuration and fixtures."""

import hashlib
import threading
from unittest.mock import MagicMock, Mock

import pytest

from forge_manifest.client import RegistryClient
from forge_manifest.directory import RegistryDirectory


def make_response(status_code=200, json_data=None, content=b"", headers=None, text=None):
    """Build a Mock that quacks like requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.content = content
    response.text = text if text is not None else content.decode("utf-8", errors="replace")
    if json_data is None:
        response.json = Mock(side_effect=ValueError("No JSON"))
    else:
        response.json = Mock(return_value=json_data)
    return response


class FakeRegistry:
    """Routes session.get calls to canned token and manifest responses.

    Manifests are keyed by "<path>:<tag>" (path as it appears in the URL).
    Unknown manifests return 404; paths in fail_paths return 500.
    """

    def __init__(self):
        self.manifests: dict[str, bytes] = {}
        self.fail_paths: set[str] = set()
        self.token_status = 200
        self.token_body = {"token": "batch-token", "expires_in": 300}
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def add(self, path: str, tag: str, body: bytes) -> None:
        self.manifests[f"{path}:{tag}"] = body

    def token_calls(self) -> list[tuple[str, dict]]:
        return [c for c in self.calls if "/token" in c[0]]

    def manifest_calls(self) -> list[tuple[str, dict]]:
        return [c for c in self.calls if "/manifests/" in c[0]]

    def __call__(self, url, **kwargs):
        with self._lock:
            self.calls.append((url, kwargs))

        if "/token" in url:
            return make_response(self.token_status, json_data=self.token_body, text="denied")

        _, _, rest = url.partition("/v2/")
        path, _, tag = rest.rpartition("/manifests/")
        if path in self.fail_paths:
            return make_response(500, content=b"internal error")

        body = self.manifests.get(f"{path}:{tag}")
        if body is None:
            return make_response(404, content=b'{"errors":[{"code":"MANIFEST_UNKNOWN"}]}')

        digest = "sha256:" + hashlib.sha256(body).hexdigest()
        return make_response(200, content=body, headers={"Docker-Content-Digest": digest})


@pytest.fixture
def directory():
    """Fresh registry directory with only the built-ins."""
    return RegistryDirectory()


@pytest.fixture
def session():
    """Mock requests Session."""
    return MagicMock()


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def client(directory, session, fake_registry):
    """RegistryClient wired to the fake registry."""
    session.get.side_effect = fake_registry
    return RegistryClient(directory=directory, session=session)
