# tests/installers/test_registry.py
# -*- coding: utf-8 -*-
import pytest

from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry


class _Noop(BaseInstaller):
    def install(self):
        return True

    def uninstall(self):
        return True

    def is_installed(self):
        return False


@pytest.fixture
def registry(mocker):
    """An empty registry, restored after the test."""
    mocker.patch.dict(InstallerRegistry._registry, clear=True)
    return InstallerRegistry


def _register(name, **metadata):
    return InstallerRegistry.register(name, metadata)(type(f"I_{name}", (_Noop,), {}))


def test_register_and_lookup(registry):
    cls = _register("docker", aliases=["docker-ce"], description="Docker Engine")

    assert registry.get_installer("docker") is cls
    assert registry.get_installer("docker-ce") is cls
    assert registry.canonical_name("docker-ce") == "docker"
    assert cls.metadata["description"] == "Docker Engine"
    assert cls.metadata["platform"] == "linux"


def test_register_duplicate_name(registry):
    _register("nginx")
    with pytest.raises(ValueError):
        _register("nginx")


def test_unknown_installer(registry):
    with pytest.raises(KeyError):
        registry.get_installer("mysql")


def test_get_all_installers_is_a_copy(registry):
    _register("terraform")
    installers = registry.get_all_installers()
    installers.clear()
    assert "terraform" in registry.get_all_installers()


def test_unregister(registry):
    _register("kubernetes")
    registry.unregister("kubernetes")
    registry.unregister("kubernetes")
    assert "kubernetes" not in registry.get_all_installers()


def test_resolve_dependencies_orders_dependencies_first(registry):
    _register("ansible", dependencies=["python"])
    _register("python", dependencies=["toolchain"])
    _register("toolchain")
    _register("docker", aliases=["docker-ce"])

    order = registry.resolve_dependencies(["docker-ce", "ansible"])

    assert order == ["docker", "toolchain", "python", "ansible"]


def test_resolve_dependencies_deduplicates(registry):
    _register("a", dependencies=["b"])
    _register("b")

    assert registry.resolve_dependencies(["b", "a", "a"]) == ["b", "a"]


def test_resolve_dependencies_cycle(registry):
    _register("a", dependencies=["b"])
    _register("b", dependencies=["a"])

    with pytest.raises(ValueError, match="Circular"):
        registry.resolve_dependencies(["a"])


def test_resolve_dependencies_missing_dependency(registry):
    _register("a", dependencies=["ghost"])

    with pytest.raises(KeyError):
        registry.resolve_dependencies(["a"])
