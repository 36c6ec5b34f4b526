# tests/installers/components/test_ssh_config.py
# -*- coding: utf-8 -*-
from unittest.mock import MagicMock

from installers.components.openssh.ssh_config import (
    find_sftp_server,
    generate_host_keys,
    remove_weak_host_keys,
    render_sshd_config,
    write_hardened_config,
)
from settings.config_models import OpenSSHSettings
from settings.constants import DEFAULT_SFTP_SERVER_PATH

MODULE = "installers.components.openssh.ssh_config"


def test_find_sftp_server(tmp_path):
    libexec = tmp_path / "libexec" / "openssh"
    libexec.mkdir(parents=True)
    (libexec / "sftp-server").write_text("", encoding="utf-8")

    assert find_sftp_server(str(tmp_path)) == str(libexec / "sftp-server")


def test_find_sftp_server_default(tmp_path):
    assert find_sftp_server(str(tmp_path)) == DEFAULT_SFTP_SERVER_PATH


def test_render_sshd_config():
    settings = OpenSSHSettings(
        ssh_port=2222, permit_root_login="prohibit-password"
    )

    config = render_sshd_config(settings, "/usr/lib/sftp-server", "now")

    assert "# Generated: now" in config
    assert "Port 2222" in config
    assert "PermitRootLogin prohibit-password" in config
    assert "PasswordAuthentication yes" in config
    assert "Subsystem sftp /usr/lib/sftp-server" in config
    assert "HostKey /etc/ssh/ssh_host_ecdsa_key" not in config


def test_remove_weak_host_keys(tmp_path):
    for name in (
        "ssh_host_dsa_key",
        "ssh_host_dsa_key.pub",
        "ssh_host_ecdsa_key",
        "ssh_host_ecdsa_key.pub",
        "ssh_host_ed25519_key",
    ):
        (tmp_path / name).write_text("", encoding="utf-8")

    removed = remove_weak_host_keys(tmp_path)

    assert len(removed) == 4
    assert [p.name for p in tmp_path.iterdir()] == ["ssh_host_ed25519_key"]


def test_generate_host_keys_only_missing(mocker, tmp_path):
    (tmp_path / "ssh_host_ed25519_key").write_text("", encoding="utf-8")
    run = mocker.patch(f"{MODULE}.run_command")

    generate_host_keys(tmp_path, None, MagicMock())

    run.assert_called_once()
    assert run.call_args.args[0] == [
        "ssh-keygen",
        "-t",
        "rsa",
        "-b",
        "3072",
        "-f",
        str(tmp_path / "ssh_host_rsa_key"),
        "-N",
        "",
    ]


def test_write_hardened_config(mocker, tmp_path):
    ssh_dir = tmp_path / "ssh"
    ssh_dir.mkdir()
    (ssh_dir / "sshd_config").write_text("Port 22\n", encoding="utf-8")
    (ssh_dir / "ssh_host_dsa_key").write_text("", encoding="utf-8")
    (ssh_dir / "ssh_host_ed25519_key").write_text("", encoding="utf-8")
    (ssh_dir / "ssh_host_rsa_key").write_text("", encoding="utf-8")
    run = mocker.patch(f"{MODULE}.run_command")
    settings = OpenSSHSettings()

    written = write_hardened_config(
        settings,
        None,
        MagicMock(),
        ssh_dir=str(ssh_dir),
        sftp_search_root=str(tmp_path / "empty"),
    )

    assert written == ssh_dir / "sshd_config"
    assert "MaxAuthTries 3" in written.read_text(encoding="utf-8")
    assert list(ssh_dir.glob("sshd_config.bak-*"))
    assert not (ssh_dir / "ssh_host_dsa_key").exists()
    assert (ssh_dir / "ssh_config").read_text(encoding="utf-8") == settings.ssh_client_config
    assert (ssh_dir / "ssh_host_ed25519_key").stat().st_mode & 0o777 == 0o600
    run.assert_not_called()
