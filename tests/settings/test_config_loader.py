# tests/settings/test_config_loader.py
# -*- coding: utf-8 -*-
import argparse

import pytest
import yaml

from settings.config_loader import _deep_update, load_app_settings, read_yaml_config
from settings.config_models import AppSettings, OpenSSHSettings


def _cli(**overrides):
    values = {
        "yes": False,
        "log_file": None,
        "no_reboot": False,
        "channel": None,
        "minikube": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def _write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in (
        "CONFIRM",
        "NGINX_CHANNEL",
        "OPENSSL_VERSION",
        "OPENSSL_INSTALL_PREFIX",
        "OPENSSH_VERSION",
        "OPENSSH_INSTALL_PREFIX",
        "VENV_DIR",
        "ANSIBLE_VENV_DIR",
        "SOURCE_ROOT",
        "ANSIBLE_SOURCE_ROOT",
        "LOG_DIR",
        "REBOOT",
        "OPENSSH_REBOOT",
        "OPENSSH_SSH_PORT",
    ):
        monkeypatch.delenv(var, raising=False)


def test_defaults_without_config_file(tmp_path):
    settings = load_app_settings(None, tmp_path / "missing.yaml")

    assert settings.confirm is False
    assert settings.nginx.channel == "stable"
    assert settings.nginx.expected_version() == "1.28"
    assert settings.openssh.openssl_install_prefix == "/usr/local/openssl-3.5.0"
    assert settings.kubernetes.install_minikube is None


def test_environment_overrides_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENSSL_VERSION", "3.4.1")
    monkeypatch.setenv("NGINX_CHANNEL", "mainline")
    monkeypatch.setenv("VENV_DIR", "/srv/ansible")

    settings = load_app_settings(None, tmp_path / "missing.yaml")

    assert settings.openssh.openssl_version == "3.4.1"
    assert settings.openssh.openssl_install_prefix == "/usr/local/openssl-3.4.1"
    assert settings.nginx.channel == "mainline"
    assert settings.nginx.expected_version() == "1.29"
    assert settings.ansible.venv_dir == "/srv/ansible"


def test_ansible_environment_uses_prefix(tmp_path, monkeypatch):
    monkeypatch.setenv("SOURCE_ROOT", "/home/builder/src")
    monkeypatch.setenv("LOG_DIR", "/var/log/unrelated")
    monkeypatch.setenv("ANSIBLE_VENV_DIR", "/srv/ansible-env")

    settings = load_app_settings(None, tmp_path / "missing.yaml")

    assert settings.ansible.source_root == "/usr/src"
    assert settings.ansible.log_dir == "/tmp"
    assert settings.ansible.venv_dir == "/srv/ansible-env"

    monkeypatch.setenv("ANSIBLE_SOURCE_ROOT", "/opt/src")

    assert load_app_settings(None, tmp_path / "missing.yaml").ansible.source_root == "/opt/src"


def test_openssh_environment_uses_prefix(tmp_path, monkeypatch):
    monkeypatch.setenv("REBOOT", "false")
    monkeypatch.setenv("OPENSSH_SSH_PORT", "2222")
    monkeypatch.setenv("OPENSSL_VERSION", "3.4.1")

    settings = load_app_settings(None, tmp_path / "missing.yaml")

    assert settings.openssh.reboot is True
    assert settings.openssh.ssh_port == 2222
    assert settings.openssh.openssl_version == "3.4.1"

    monkeypatch.setenv("OPENSSH_REBOOT", "false")

    assert load_app_settings(None, tmp_path / "missing.yaml").openssh.reboot is False


def test_yaml_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("NGINX_CHANNEL", "mainline")
    config = _write_yaml(
        tmp_path / "config.yaml",
        {"nginx": {"channel": "stable"}, "docker": {"add_user_to_group": True}},
    )

    settings = load_app_settings(None, config)

    assert settings.nginx.channel == "stable"
    assert settings.docker.add_user_to_group is True
    assert settings.docker.use_fallback_script is True


def test_yaml_version_change_rederives_prefix(tmp_path):
    config = _write_yaml(
        tmp_path / "config.yaml",
        {"openssh": {"openssl_version": "3.3.2", "openssh_version": "9.9p2"}},
    )

    settings = load_app_settings(None, config)

    assert settings.openssh.openssl_install_prefix == "/usr/local/openssl-3.3.2"
    assert settings.openssh.openssh_install_prefix == "/usr/local/openssh-9.9p2"


def test_explicit_prefix_is_kept(tmp_path):
    config = _write_yaml(
        tmp_path / "config.yaml",
        {"openssh": {"openssl_version": "3.3.2", "openssl_install_prefix": "/opt/ssl"}},
    )

    settings = load_app_settings(None, config)

    assert settings.openssh.openssl_install_prefix == "/opt/ssl"


def test_cli_overrides_yaml(tmp_path):
    config = _write_yaml(
        tmp_path / "config.yaml",
        {"nginx": {"channel": "mainline"}, "kubernetes": {"install_minikube": True}},
    )
    cli_args = _cli(
        yes=True,
        log_file=str(tmp_path / "run.log"),
        no_reboot=True,
        channel="stable",
        minikube=False,
    )

    settings = load_app_settings(cli_args, config)

    assert settings.confirm is True
    assert settings.log_file == str(tmp_path / "run.log")
    assert settings.openssh.reboot is False
    assert settings.nginx.channel == "stable"
    assert settings.kubernetes.install_minikube is False


def test_unset_cli_options_do_not_override(tmp_path):
    config = _write_yaml(
        tmp_path / "config.yaml", {"confirm": True, "nginx": {"channel": "mainline"}}
    )

    settings = load_app_settings(_cli(), config)

    assert settings.confirm is True
    assert settings.nginx.channel == "mainline"
    assert settings.openssh.reboot is True


def test_invalid_yaml_falls_back_to_defaults(tmp_path, mock_logger):
    config = tmp_path / "config.yaml"
    config.write_text("nginx: [unclosed\n", encoding="utf-8")

    assert read_yaml_config(config, mock_logger) == {}
    mock_logger.warning.assert_called_once()


def test_non_mapping_yaml_is_ignored(tmp_path, mock_logger):
    config = tmp_path / "config.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")

    assert read_yaml_config(config, mock_logger) == {}


def test_validation_failure_exits(tmp_path):
    config = _write_yaml(tmp_path / "config.yaml", {"nginx": {"channel": "beta"}})

    with pytest.raises(SystemExit):
        load_app_settings(None, config)


def test_deep_update_merges_nested_and_skips_none():
    source = {"nginx": {"channel": "stable", "keyring_path": "/k"}, "confirm": True}

    result = _deep_update(source, {"nginx": {"channel": "mainline"}, "confirm": None})

    assert result == {"nginx": {"channel": "mainline", "keyring_path": "/k"}, "confirm": True}


def test_openssh_settings_derives_prefixes(monkeypatch):
    monkeypatch.delenv("OPENSSL_INSTALL_PREFIX", raising=False)
    monkeypatch.delenv("OPENSSH_INSTALL_PREFIX", raising=False)
    settings = OpenSSHSettings(openssl_version="3.4.0", openssh_version="9.8p1")
    assert settings.openssl_install_prefix == "/usr/local/openssl-3.4.0"
    assert settings.openssh_install_prefix == "/usr/local/openssh-9.8p1"


def test_kubernetes_repository_urls():
    k8s = AppSettings().kubernetes
    assert k8s.apt_base_url == f"https://pkgs.k8s.io/core:/stable:/{k8s.version}/deb/"
    assert k8s.rpm_base_url.endswith("/rpm/")
