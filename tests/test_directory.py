"""Tests for the registry directory."""

import threading

import pytest

from forge_manifest.constants import DOCKERHUB_KEY, GHCR_KEY
from forge_manifest.directory import RegistryDirectory, get_default_directory
from forge_manifest.exceptions import (
    ConfigurationError,
    DuplicateRegistryError,
    RegistryNotFoundError,
    ReservedKeyError,
)
from forge_manifest.models import RegistryEndpoint


def harbor(name="Harbor"):
    return RegistryEndpoint(
        key="",
        name=name,
        registry_url="https://harbor.example.com",
        auth_url="https://harbor.example.com/service",
        service="harbor-registry",
    )


class TestBuiltins:
    """Tests for the pre-populated registries."""

    def test_dockerhub_builtin(self, directory):
        endpoint = directory.lookup(DOCKERHUB_KEY)
        assert endpoint.registry_url == "https://registry-1.docker.io"
        assert endpoint.auth_url == "https://auth.docker.io"
        assert endpoint.service == "registry.docker.io"

    def test_ghcr_builtin_has_no_service(self, directory):
        endpoint = directory.lookup(GHCR_KEY)
        assert endpoint.registry_url == "https://ghcr.io"
        assert endpoint.auth_url == "https://ghcr.io"
        assert endpoint.service == ""

    @pytest.mark.parametrize("key", [DOCKERHUB_KEY, GHCR_KEY])
    def test_cannot_register_over_builtin(self, directory, key):
        with pytest.raises(ReservedKeyError):
            directory.register(key, harbor())

    @pytest.mark.parametrize("key", [DOCKERHUB_KEY, GHCR_KEY])
    def test_cannot_unregister_builtin(self, directory, key):
        with pytest.raises(ReservedKeyError):
            directory.unregister(key)
        assert key in directory

    def test_default_directory_is_shared(self):
        assert get_default_directory() is get_default_directory()
        assert DOCKERHUB_KEY in get_default_directory()


class TestCustomRegistries:
    """Tests for registering and removing custom entries."""

    def test_register_then_lookup(self, directory):
        directory.register("harbor", harbor())
        endpoint = directory.lookup("harbor")
        assert endpoint.key == "harbor"
        assert endpoint.service == "harbor-registry"

    def test_register_forces_key(self, directory):
        endpoint = RegistryEndpoint(
            key="something-else",
            name="X",
            registry_url="https://x.example.com",
            auth_url="https://x.example.com",
        )
        stored = directory.register("x", endpoint)
        assert stored.key == "x"

    def test_empty_name_defaults_to_key(self, directory):
        stored = directory.register("harbor", harbor(name=""))
        assert stored.name == "harbor"

    def test_empty_key_rejected(self, directory):
        with pytest.raises(ConfigurationError):
            directory.register("", harbor())

    def test_duplicate_rejected(self, directory):
        directory.register("harbor", harbor())
        with pytest.raises(DuplicateRegistryError):
            directory.register("harbor", harbor(name="Other"))
        assert directory.lookup("harbor").name == "Harbor"

    def test_unregister_removes_entry(self, directory):
        directory.register("harbor", harbor())
        directory.unregister("harbor")
        assert directory.get("harbor") is None
        with pytest.raises(RegistryNotFoundError):
            directory.lookup("harbor")

    def test_unregister_unknown(self, directory):
        with pytest.raises(RegistryNotFoundError):
            directory.unregister("nope")

    def test_not_found_is_configuration_error(self, directory):
        with pytest.raises(ConfigurationError):
            directory.lookup("nope")


class TestListing:
    """Tests for snapshots."""

    def test_list_contains_all_entries(self, directory):
        directory.register("harbor", harbor())
        assert set(directory.list()) == {DOCKERHUB_KEY, GHCR_KEY, "harbor"}

    def test_list_is_a_copy(self, directory):
        snapshot = directory.list()
        snapshot.pop(DOCKERHUB_KEY)
        snapshot["bogus"] = harbor()
        assert DOCKERHUB_KEY in directory
        assert "bogus" not in directory

    def test_endpoints_keep_registration_order(self, directory):
        directory.register("harbor", harbor())
        keys = [e.key for e in directory.endpoints()]
        assert keys == [DOCKERHUB_KEY, GHCR_KEY, "harbor"]

    def test_directories_are_independent(self):
        first = RegistryDirectory()
        second = RegistryDirectory()
        first.register("harbor", harbor())
        assert "harbor" not in second


class TestConcurrency:
    """Concurrent registration keeps keys unique."""

    def test_parallel_registration_of_same_key(self, directory):
        outcomes = []
        lock = threading.Lock()

        def register():
            try:
                directory.register("harbor", harbor())
                result = "ok"
            except DuplicateRegistryError:
                result = "dup"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=register) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("dup") == 7
