# tests/common/test_command_utils.py
# -*- coding: utf-8 -*-
import os
import subprocess
import sys

import pytest

from common.command_utils import (
    command_exists,
    confirm,
    log_message,
    prompt_text,
    run_command,
    run_elevated_command,
    run_logged,
    run_powershell,
    run_with_spinner,
)
from common.errors import CommandError


def test_log_message_success_logs_at_info(mock_logger):
    log_message("done", "success", mock_logger)
    mock_logger.info.assert_called_once_with("done", exc_info=False)


def test_log_message_warning(mock_logger):
    log_message("careful", "warning", mock_logger)
    mock_logger.warning.assert_called_once_with("careful", exc_info=False)


def test_log_message_unknown_level_falls_back_to_info(mock_logger):
    log_message("hello", "shout", mock_logger)
    mock_logger.info.assert_called_once_with("hello", exc_info=False)


def test_run_command_returns_completed_process(mocker, mock_logger, completed):
    mock_run = mocker.patch(
        "common.command_utils.subprocess.run",
        return_value=completed(stdout="ok\n"),
    )

    result = run_command(
        ["echo", "ok"], capture_output=True, current_logger=mock_logger
    )

    assert result.stdout == "ok\n"
    args, kwargs = mock_run.call_args
    assert args[0] == ["echo", "ok"]
    assert kwargs["capture_output"] is True
    assert kwargs["env"] is None


def test_run_command_merges_environment(mocker, completed):
    mock_run = mocker.patch(
        "common.command_utils.subprocess.run", return_value=completed()
    )

    run_command(["true"], env={"DEBIAN_FRONTEND": "noninteractive"})

    env = mock_run.call_args.kwargs["env"]
    assert env["DEBIAN_FRONTEND"] == "noninteractive"
    assert "PATH" in env


def test_run_command_failure_raises_command_error(mocker, mock_logger):
    mocker.patch(
        "common.command_utils.subprocess.run",
        side_effect=subprocess.CalledProcessError(
            2, ["false"], output="", stderr="boom"
        ),
    )

    with pytest.raises(CommandError) as exc_info:
        run_command(["false"], current_logger=mock_logger)

    assert exc_info.value.returncode == 2
    assert exc_info.value.output == "boom"
    assert mock_logger.error.called


def test_run_command_missing_executable(mocker, mock_logger):
    mocker.patch(
        "common.command_utils.subprocess.run",
        side_effect=FileNotFoundError(2, "No such file", "nosuchtool"),
    )

    with pytest.raises(CommandError) as exc_info:
        run_command(["nosuchtool"], current_logger=mock_logger)

    assert exc_info.value.returncode == 127


def test_run_elevated_command_prefixes_sudo_when_not_root(mocker):
    mocker.patch.object(os, "geteuid", return_value=1000, create=True)
    mock_run = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["apt-get", "update"])

    assert mock_run.call_args.args[0] == ["sudo", "apt-get", "update"]


def test_run_elevated_command_as_root_has_no_prefix(mocker):
    mocker.patch.object(os, "geteuid", return_value=0, create=True)
    mock_run = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["apt-get", "update"])

    assert mock_run.call_args.args[0] == ["apt-get", "update"]


def test_command_exists(mocker):
    mocker.patch(
        "common.command_utils.shutil.which",
        side_effect=lambda name: "/usr/bin/gcc" if name == "gcc" else None,
    )
    assert command_exists("gcc") is True
    assert command_exists("clang") is False


def test_run_logged_appends_output_to_log(tmp_path):
    log_file = tmp_path / "logs" / "build.log"

    returncode = run_logged(
        [sys.executable, "-c", "print('configured')"], str(log_file)
    )

    assert returncode == 0
    content = log_file.read_text(encoding="utf-8")
    assert content.startswith("$ ")
    assert "configured" in content


def test_run_logged_failure_raises(tmp_path, mock_logger):
    log_file = tmp_path / "build.log"

    with pytest.raises(CommandError) as exc_info:
        run_logged(
            [sys.executable, "-c", "import sys; sys.exit(3)"],
            str(log_file),
            mock_logger,
        )

    assert exc_info.value.returncode == 3
    assert str(log_file) in mock_logger.error.call_args.args[0]


def test_run_logged_without_check_returns_code():
    returncode = run_logged(
        [sys.executable, "-c", "import sys; sys.exit(4)"], None, check=False
    )
    assert returncode == 4


def test_run_with_spinner_reports_status(tmp_path, mock_logger):
    log_file = tmp_path / "make.log"

    returncode = run_with_spinner(
        [sys.executable, "-c", "print('compiling')"],
        "Building",
        log_file=str(log_file),
        current_logger=mock_logger,
    )

    assert returncode == 0
    assert "compiling" in log_file.read_text(encoding="utf-8")
    mock_logger.info.assert_called_with("Building... done")


def test_run_with_spinner_failure(mock_logger):
    with pytest.raises(CommandError):
        run_with_spinner(
            [sys.executable, "-c", "import sys; sys.exit(1)"],
            "Building",
            current_logger=mock_logger,
        )
    mock_logger.info.assert_called_with("Building... failed")


def test_run_with_spinner_terminates_child_on_interrupt(mocker, mock_logger):
    process = mocker.MagicMock()
    process.poll.return_value = None
    mocker.patch("common.command_utils.subprocess.Popen", return_value=process)
    mocker.patch("common.command_utils.time.sleep", side_effect=KeyboardInterrupt)

    with pytest.raises(KeyboardInterrupt):
        run_with_spinner(["make", "-j4"], "Building", current_logger=mock_logger)

    process.terminate.assert_called_once_with()
    process.wait.assert_called_once_with(timeout=5)
    process.kill.assert_not_called()


def test_run_with_spinner_kills_child_that_ignores_terminate(mocker, mock_logger):
    process = mocker.MagicMock()
    process.poll.return_value = None
    process.wait.side_effect = [subprocess.TimeoutExpired("make", 5), 0]
    mocker.patch("common.command_utils.subprocess.Popen", return_value=process)
    mocker.patch("common.command_utils.time.sleep", side_effect=KeyboardInterrupt)

    with pytest.raises(KeyboardInterrupt):
        run_with_spinner(["make"], "Building", current_logger=mock_logger)

    process.kill.assert_called_once_with()


def test_confirm_assume_yes_does_not_prompt(mocker, mock_logger):
    mock_input = mocker.patch("builtins.input")
    assert confirm("Proceed?", True, mock_logger) is True
    mock_input.assert_not_called()


@pytest.mark.parametrize(
    "answer, expected",
    [("y", True), ("YES", True), ("n", False), ("", False), ("maybe", False)],
)
def test_confirm_answers(mocker, answer, expected):
    mocker.patch("builtins.input", return_value=answer)
    assert confirm("Proceed?") is expected


def test_confirm_end_of_input_is_no(mocker):
    mocker.patch("builtins.input", side_effect=EOFError)
    assert confirm("Proceed?") is False


def test_prompt_text_end_of_input(mocker):
    mocker.patch("builtins.input", side_effect=EOFError)
    assert prompt_text("> ") == ""


def test_run_powershell_builds_command(mocker):
    mock_run = mocker.patch("common.command_utils.run_command")

    run_powershell("Get-Service WinRM")

    command = mock_run.call_args.args[0]
    assert command[0] == "powershell.exe"
    assert "-NonInteractive" in command
    assert command[-1] == "Get-Service WinRM"
