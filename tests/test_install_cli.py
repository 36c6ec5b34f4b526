# tests/test_install_cli.py
# -*- coding: utf-8 -*-
from unittest.mock import MagicMock

import pytest

import install
import installers.components.docker.docker_installer  # noqa: F401
from common.errors import CommandError, UserAbort
from settings.config_models import AppSettings


def test_parse_args_install():
    args = install.parse_args(["install", "nginx", "docker"])

    assert args.command == "install"
    assert args.components == ["nginx", "docker"]
    assert args.yes is False
    assert args.minikube is None


@pytest.mark.parametrize(
    "command, expected",
    [
        ("reinstall", "install"),
        ("uninstall", "remove"),
        ("check", "verify"),
        ("status", "verify"),
    ],
)
def test_parse_args_command_aliases(command, expected):
    assert install.parse_args([command, "nginx"]).command == expected


def test_parse_args_global_flags_after_subcommand():
    args = install.parse_args(
        ["install", "nginx", "--channel", "mainline", "-y", "--log-file", "/tmp/i.log"]
    )

    assert args.components == ["nginx"]
    assert args.channel == "mainline"
    assert args.yes is True
    assert args.log_file == "/tmp/i.log"


def test_parse_args_global_flags_before_subcommand():
    args = install.parse_args(["--no-reboot", "--no-minikube", "install", "openssh"])

    assert args.no_reboot is True
    assert args.minikube is False
    assert args.components == ["openssh"]


def test_parse_args_verify_without_components():
    args = install.parse_args(["verify"])
    assert args.components == []


def test_parse_args_install_requires_components():
    with pytest.raises(SystemExit):
        install.parse_args(["install"])


def test_parse_args_rejects_unknown_channel():
    with pytest.raises(SystemExit):
        install.parse_args(["install", "nginx", "--channel", "beta"])


@pytest.fixture
def cli(mocker):
    mocker.patch("install.signal.signal")
    logger = MagicMock()
    mocker.patch("install.setup_logging", return_value=logger)
    mocker.patch("install.load_app_settings", return_value=AppSettings())
    orchestrator = mocker.patch("install.InstallerOrchestrator").return_value
    return {"logger": logger, "orchestrator": orchestrator}


def test_main_install_success(cli):
    cli["orchestrator"].install.return_value = True

    assert install.main(["install", "docker-ce"]) == 0
    cli["orchestrator"].install.assert_called_once_with(["docker"])


def test_main_install_failure(cli):
    cli["orchestrator"].install.return_value = False

    assert install.main(["install", "docker"]) == 1


def test_main_unknown_component(cli):
    assert install.main(["install", "mysql"]) == 1
    cli["orchestrator"].install.assert_not_called()


def test_main_remove(cli):
    cli["orchestrator"].uninstall.return_value = True

    assert install.main(["uninstall", "docker"]) == 0
    cli["orchestrator"].uninstall.assert_called_once_with(["docker"])


def test_main_verify_all_supported(cli):
    cli["orchestrator"].supported_installers.return_value = ["docker", "nginx"]
    cli["orchestrator"].verify.return_value = {"docker": True, "nginx": False}

    assert install.main(["verify"]) == 1
    cli["orchestrator"].verify.assert_called_once_with(["docker", "nginx"])


def test_main_verify_ok(cli):
    cli["orchestrator"].verify.return_value = {"docker": True}

    assert install.main(["check", "docker"]) == 0


def test_main_list(cli):
    assert install.main(["list"]) == 0
    logged = [c.args[0] for c in cli["logger"].info.call_args_list]
    assert any(line.strip().startswith("- docker") for line in logged)


def test_main_without_command_shows_status(cli, capsys):
    cli["orchestrator"].status.return_value = {"docker": "installed"}

    assert install.main([]) == 0
    assert "usage:" in capsys.readouterr().out
    cli["orchestrator"].status.assert_called_once()


@pytest.mark.parametrize(
    "error, code",
    [
        (UserAbort("Installation cancelled"), 0),
        (KeyboardInterrupt(), 130),
        (CommandError(["apt-get", "update"], 100), 1),
        (ValueError("Circular dependency detected involving 'a'"), 1),
        (PermissionError(13, "Permission denied"), 1),
    ],
)
def test_main_exit_codes(mocker, error, code):
    mocker.patch("install.signal.signal")
    mocker.patch("install.setup_logging", return_value=MagicMock())
    mocker.patch("install.run", side_effect=error)

    assert install.main(["install", "docker"]) == code


def test_sigterm_handler_exits_interrupted():
    with pytest.raises(SystemExit) as excinfo:
        install._handle_sigterm(15, None)
    assert excinfo.value.code == 130
