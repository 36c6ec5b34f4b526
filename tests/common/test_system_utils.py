# tests/common/test_system_utils.py
# -*- coding: utf-8 -*-
import pytest

from common.errors import CommandError, PrivilegeError, UnsupportedPlatformError
from common.system_utils import (
    OsRelease,
    binary_version_output,
    deprecation_notice,
    get_debian_codename,
    get_sudo_user,
    in_ssh_session,
    read_os_release,
    require_root,
    service_is_active,
    stop_service,
)

OS_RELEASE_TEXT = """\
# comment line
NAME="Rocky Linux"
ID="rocky"
ID_LIKE="rhel centos fedora"
VERSION_ID="9.4"
"""


@pytest.fixture
def os_release_file(tmp_path):
    path = tmp_path / "os-release"
    path.write_text(OS_RELEASE_TEXT, encoding="utf-8")
    return str(path)


def test_read_os_release(os_release_file):
    release = read_os_release(os_release_file)

    assert release.id == "rocky"
    assert release.id_like == "rhel centos fedora"
    assert release.version_id == "9.4"
    assert release.name == "Rocky Linux"
    assert release.major_version == "9"


def test_read_os_release_missing_file(tmp_path):
    with pytest.raises(UnsupportedPlatformError):
        read_os_release(str(tmp_path / "missing"))


def test_major_version_empty():
    assert OsRelease().major_version == ""


def test_require_root_raises_when_unprivileged(mocker):
    mocker.patch("common.system_utils.is_root", return_value=False)
    with pytest.raises(PrivilegeError):
        require_root()


def test_require_root_passes_for_root(mocker):
    mocker.patch("common.system_utils.is_root", return_value=True)
    require_root()


def test_in_ssh_session():
    assert in_ssh_session({"SSH_CONNECTION": "10.0.0.1 5000 10.0.0.2 22"})
    assert in_ssh_session({"SSH_TTY": "/dev/pts/0"})
    assert not in_ssh_session({"TERM": "xterm"})


def test_get_debian_codename_from_lsb_release(mocker, completed):
    mocker.patch("common.system_utils.command_exists", return_value=True)
    mocker.patch(
        "common.system_utils.run_command", return_value=completed(stdout="noble\n")
    )
    assert get_debian_codename() == "noble"


def test_get_debian_codename_falls_back_to_os_release(mocker, tmp_path):
    mocker.patch("common.system_utils.command_exists", return_value=False)
    release = tmp_path / "os-release"
    release.write_text(
        "ID=debian\nVERSION_CODENAME=bookworm\n", encoding="utf-8"
    )
    assert get_debian_codename(os_release_path=str(release)) == "bookworm"


def test_get_debian_codename_lsb_failure_falls_back(mocker, tmp_path):
    mocker.patch("common.system_utils.command_exists", return_value=True)
    mocker.patch(
        "common.system_utils.run_command",
        side_effect=CommandError(["lsb_release", "-cs"], 1),
    )
    release = tmp_path / "os-release"
    release.write_text("ID=ubuntu\n", encoding="utf-8")
    assert get_debian_codename(os_release_path=str(release)) is None


def test_binary_version_output_combines_streams(mocker, completed):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=completed(stderr="nginx version: nginx/1.28.0\n"),
    )
    assert binary_version_output(["nginx", "-v"]) == "nginx version: nginx/1.28.0"


def test_binary_version_output_failure(mocker, completed):
    mocker.patch(
        "common.system_utils.run_command", return_value=completed(returncode=1)
    )
    assert binary_version_output(["nginx", "-v"]) is None


def test_binary_version_output_missing_binary(mocker):
    mocker.patch(
        "common.system_utils.run_command",
        side_effect=CommandError(["nginx", "-v"], 127),
    )
    assert binary_version_output(["nginx", "-v"]) is None


def test_service_is_active(mocker, completed):
    mocker.patch(
        "common.system_utils.run_command", return_value=completed(returncode=3)
    )
    assert service_is_active("docker") is False


def test_stop_service_ignores_failures(mocker, completed):
    mock_run = mocker.patch(
        "common.system_utils.run_elevated_command",
        return_value=completed(returncode=5),
    )

    stop_service("nginx", disable=True)

    commands = [c.args[0] for c in mock_run.call_args_list]
    assert commands == [
        ["systemctl", "stop", "nginx"],
        ["systemctl", "disable", "nginx"],
    ]
    assert all(c.kwargs["check"] is False for c in mock_run.call_args_list)


def test_deprecation_notice_for_eol_release(mocker, mock_logger):
    mock_sleep = mocker.patch("common.system_utils.time.sleep")

    assert deprecation_notice("ubuntu", "xenial", mock_logger) is True

    mock_sleep.assert_called_once_with(5)
    assert mock_logger.warning.call_count == 2


def test_deprecation_notice_current_release(mocker, mock_logger):
    mock_sleep = mocker.patch("common.system_utils.time.sleep")

    assert deprecation_notice("ubuntu", "noble", mock_logger) is False
    assert deprecation_notice("debian", None, mock_logger) is False
    mock_sleep.assert_not_called()


def test_get_sudo_user(monkeypatch):
    monkeypatch.setenv("SUDO_USER", "alice")
    assert get_sudo_user() == "alice"
    monkeypatch.setenv("SUDO_USER", "root")
    assert get_sudo_user() is None
    monkeypatch.delenv("SUDO_USER")
    assert get_sudo_user() is None
