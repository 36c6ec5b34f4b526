# tests/installers/components/test_openssh_installer.py
# -*- coding: utf-8 -*-
from unittest.mock import MagicMock

import pytest

from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UserAbort
from common.package_manager import PACKAGE_MANAGERS
from common.redhat.dnf_manager import DnfManager
from installers.components.openssh.openssh_installer import (
    OpenSSHInstaller,
    parse_openssh_version,
    parse_openssl_version,
)
from settings.constants import EXCLUDED_SSL_SSH_PACKAGES, SYSTEM_SSL_SSH_PACKAGES

MODULE = "installers.components.openssh.openssh_installer"

STEPS = [
    "backup_configs",
    "remove_system_packages",
    "install_dependencies",
    "download_sources",
    "build_openssl",
    "build_openssh",
    "link_all_binaries",
    "create_ssh_config",
    "exclude_system_packages",
    "test_installation",
]


@pytest.mark.parametrize(
    "output, expected",
    [
        ("OpenSSL 3.5.0 8 Apr 2025 (Library: OpenSSL 3.5.0 8 Apr 2025)", "3.5.0"),
        ("OpenSSL", None),
        (None, None),
    ],
)
def test_parse_openssl_version(output, expected):
    assert parse_openssl_version(output) == expected


@pytest.mark.parametrize(
    "output, expected",
    [
        ("OpenSSH_10.0p2, OpenSSL 3.5.0 8 Apr 2025", "10.0p2"),
        ("OpenSSH_9.6p1 Ubuntu-3ubuntu13.5, OpenSSL 3.0.13", "9.6p1"),
        ("ssh: not found", None),
        ("", None),
    ],
)
def test_parse_openssh_version(output, expected):
    assert parse_openssh_version(output) == expected


@pytest.fixture
def installer(app_settings, tmp_path):
    app_settings.openssh.build_dir = str(tmp_path / "build")
    app_settings.openssh.backup_root = str(tmp_path / "backups")
    installer = OpenSSHInstaller(app_settings, MagicMock())
    installer.log_dir = tmp_path / "logs"
    return installer


def test_prefixes_follow_versions(installer):
    assert str(installer.openssl_prefix) == "/usr/local/openssl-3.5.0"
    assert str(installer.openssh_prefix) == "/usr/local/openssh-10.0p2"
    assert installer.backup_dir.name.startswith("ssh-ssl-backup-")


def test_check_ssh_session_outside_ssh(mocker, installer):
    mocker.patch(f"{MODULE}.in_ssh_session", return_value=False)
    prompt = mocker.patch(f"{MODULE}.prompt_text")

    installer.check_ssh_session()

    prompt.assert_not_called()


def test_check_ssh_session_refuses_without_force(mocker, installer):
    mocker.patch(f"{MODULE}.in_ssh_session", return_value=True)

    with pytest.raises(UserAbort):
        installer.check_ssh_session()


def test_check_ssh_session_with_force_and_phrase(mocker, installer):
    installer.settings.force_ssh_install = True
    mocker.patch(f"{MODULE}.in_ssh_session", return_value=True)
    mocker.patch(f"{MODULE}.prompt_text", return_value="I UNDERSTAND THE RISKS\n")

    installer.check_ssh_session()


def test_check_ssh_session_with_force_wrong_phrase(mocker, installer):
    installer.settings.force_ssh_install = True
    mocker.patch(f"{MODULE}.in_ssh_session", return_value=True)
    mocker.patch(f"{MODULE}.prompt_text", return_value="yes")

    with pytest.raises(UserAbort):
        installer.check_ssh_session()


def test_exclude_system_packages_dnf(mocker, installer):
    manager = MagicMock(spec=DnfManager)
    mocker.patch(f"{MODULE}.get_package_manager", return_value=manager)

    installer.exclude_system_packages()

    manager.exclude.assert_called_once_with(EXCLUDED_SSL_SSH_PACKAGES)


def test_exclude_system_packages_apt(mocker, installer):
    manager = MagicMock(spec=AptManager)
    mocker.patch(f"{MODULE}.get_package_manager", return_value=manager)

    installer.exclude_system_packages()

    manager.hold.assert_called_once_with(EXCLUDED_SSL_SSH_PACKAGES)


def test_exclude_system_packages_other_manager(mocker, installer):
    mocker.patch(f"{MODULE}.get_package_manager", return_value=object())

    with pytest.raises(InstallerError):
        installer.exclude_system_packages()


def test_unexclude_system_packages(mocker, installer):
    manager = MagicMock(spec=DnfManager)
    mocker.patch(f"{MODULE}.get_package_manager", return_value=manager)

    installer.unexclude_system_packages()

    manager.unexclude.assert_called_once_with(SYSTEM_SSL_SSH_PACKAGES)


def test_link_all_binaries_collects_failures(mocker, installer):
    def fake_link(source, destination, logger=None):
        if destination in ("/usr/bin/scp", "/usr/sbin/sshd"):
            raise InstallerError(f"Binary {source} not found or not executable.")

    link = mocker.patch(f"{MODULE}.link_binary", side_effect=fake_link)
    mocker.patch.object(OpenSSHInstaller, "fix_ldconfig")

    with pytest.raises(InstallerError, match="scp, sshd"):
        installer.link_all_binaries()

    destinations = [c.args[1] for c in link.call_args_list]
    assert destinations[0] == "/usr/bin/openssl"
    assert "/usr/bin/ssh-keyscan" in destinations


def test_fix_ldconfig_writes_snippet(mocker, installer, tmp_path):
    mocker.patch(f"{MODULE}.LD_SO_CONF_DIR", str(tmp_path))
    run = mocker.patch(f"{MODULE}.run_command")

    installer.fix_ldconfig()

    snippet = (tmp_path / "openssl-3.5.0.conf").read_text(encoding="utf-8")
    assert "/usr/local/openssl-3.5.0/lib" in snippet
    run.assert_called_once()
    assert run.call_args.args[0] == ["ldconfig"]


def test_test_installation_counts_failures(mocker, installer, completed):
    mocker.patch(
        f"{MODULE}.binary_version_output",
        side_effect=["OpenSSL 3.5.0 8 Apr 2025", None],
    )
    mocker.patch(
        f"{MODULE}.run_command",
        return_value=completed(returncode=255, stderr="Missing privilege separation directory"),
    )

    assert installer.test_installation() == 2


@pytest.fixture
def patched_steps(mocker):
    calls = []
    for step in STEPS:
        mocker.patch.object(
            OpenSSHInstaller,
            step,
            side_effect=lambda _step=step: calls.append(_step) or 0,
        )
    mocker.patch(f"{MODULE}.require_root")
    mocker.patch(f"{MODULE}.in_ssh_session", return_value=False)
    mocker.patch(f"{MODULE}.confirm", return_value=True)
    mocker.patch.object(OpenSSHInstaller, "show_summary")
    return calls


def test_install_without_reboot(mocker, installer, patched_steps, tmp_path):
    installer.settings.reboot = False
    reboot = mocker.patch(f"{MODULE}.prepare_reboot")

    assert installer.install() is True

    assert patched_steps == STEPS
    reboot.assert_not_called()
    assert not (tmp_path / "build").exists()


def test_install_schedules_reboot(mocker, installer, patched_steps):
    reboot = mocker.patch(f"{MODULE}.prepare_reboot")

    assert installer.install() is True

    assert reboot.call_args.args[0] == 30


def test_install_declined(mocker, installer, patched_steps):
    mocker.patch(f"{MODULE}.confirm", return_value=False)

    with pytest.raises(UserAbort):
        installer.install()
    assert patched_steps == []


def test_install_build_failure(mocker, installer, patched_steps):
    OpenSSHInstaller.build_openssl.side_effect = InstallerError("make failed")
    reboot = mocker.patch(f"{MODULE}.prepare_reboot")

    assert installer.install() is False

    assert "build_openssh" not in patched_steps
    reboot.assert_not_called()


def test_install_tolerates_exclude_failure(mocker, installer, patched_steps):
    installer.settings.reboot = False
    OpenSSHInstaller.exclude_system_packages.side_effect = InstallerError(
        "no package manager"
    )

    assert installer.install() is True
    assert patched_steps[-1] == "test_installation"


def test_rollback_is_manual(installer):
    assert installer.rollback() is False
    installer.logger.warning.assert_called_once()


def test_uninstall_declined(mocker, installer):
    mocker.patch(f"{MODULE}.require_root")
    mocker.patch(f"{MODULE}.confirm", return_value=False)
    remove = mocker.patch(f"{MODULE}.remove_path")

    with pytest.raises(UserAbort):
        installer.uninstall()
    remove.assert_not_called()


def test_status_without_custom_install(mocker, installer, tmp_path):
    installer.openssl_prefix = tmp_path / "missing-ssl"
    installer.openssh_prefix = tmp_path / "missing-ssh"
    mocker.patch(f"{MODULE}.Path.is_symlink", return_value=False)

    assert installer.status_summary() == "no custom installation found"


@pytest.mark.parametrize(
    "manager, expected",
    [
        ("pacman", ["pacman", "-S", "--noconfirm", "--needed", "gcc", "make"]),
        ("apk", ["apk", "add", "--no-cache", "gcc", "make"]),
        ("zypper", ["zypper", "--non-interactive", "install", "-y", "gcc", "make"]),
    ],
)
def test_install_dependencies_uses_manager_syntax(
    mocker, installer, manager, expected
):
    info = next(entry for entry in PACKAGE_MANAGERS if entry.name == manager)
    mocker.patch(f"{MODULE}.detect_package_manager", return_value=info)
    mock_action = mocker.patch(f"{MODULE}.generic_pkg_action", return_value=0)
    mocker.patch(f"{MODULE}.command_exists", return_value=True)
    mocker.patch.dict(f"{MODULE}.OPENSSH_BUILD_DEPS", {"default": ["gcc", "make"]})
    mock_spinner = mocker.patch(f"{MODULE}.run_with_spinner")

    installer.install_dependencies()

    assert mock_action.call_args.args[0] == "update"
    assert mock_spinner.call_args.args[0] == expected


def test_install_dependencies_debian_packages(mocker, installer):
    info = next(entry for entry in PACKAGE_MANAGERS if entry.name == "apt")
    mocker.patch(f"{MODULE}.detect_package_manager", return_value=info)
    mocker.patch(f"{MODULE}.generic_pkg_action", return_value=1)
    mocker.patch(f"{MODULE}.command_exists", return_value=True)
    mock_spinner = mocker.patch(f"{MODULE}.run_with_spinner")

    installer.install_dependencies()

    argv = mock_spinner.call_args.args[0]
    assert argv[:3] == ["apt-get", "install", "-y"]
    assert "build-essential" in argv
    assert mock_spinner.call_args.kwargs["env"] == {"DEBIAN_FRONTEND": "noninteractive"}
