# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from common.errors import CommandError
from settings.config_models import SYMBOLS_DEFAULT, AppSettings
from settings.constants import SPINNER_FRAMES

module_logger = logging.getLogger(__name__)


def log_message(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message at the level named by `level`.

    Args:
        message (str): The log message to be recorded.
        level (str): "debug", "info", "success", "warning", "error" or
            "critical". "success" is logged at INFO. Unknown levels log at INFO.
        current_logger (Optional[logging.Logger]): Logger to use. Defaults to
            the module logger.
        app_settings (Optional[AppSettings]): Accepted for call-site symmetry
            with the other helpers; unused.
        exc_info (bool): Include exception details in the record.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    return (
        app_settings.symbols
        if app_settings and app_settings.symbols
        else SYMBOLS_DEFAULT
    )


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ``["sudo"]`` when the process is not root on a POSIX system,
    otherwise an empty list. Windows has no sudo; elevation is checked up
    front by ``require_root``.
    """
    if not hasattr(os, "geteuid"):
        return []
    return [] if os.geteuid() == 0 else ["sudo"]


def _command_to_str(command: Union[List[str], str]) -> str:
    return (
        subprocess.list2cmdline(command)
        if isinstance(command, list)
        else str(command)
    )


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings] = None,
    check: bool = True,
    shell: bool = False,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the command and its captured output.

    Args:
        command: The command, as a list or (with ``shell=True``) a string.
        app_settings: Optional settings providing the log symbols.
        check: Raise ``CommandError`` on a non-zero exit code.
        shell: Run through the shell.
        capture_output: Capture stdout and stderr.
        text: Decode output streams as text.
        cmd_input: Data written to the command's stdin.
        current_logger: Logger to use.
        cwd: Working directory for the command.
        env: Extra environment variables, merged over ``os.environ``.

    Returns:
        The ``subprocess.CompletedProcess`` of the command.

    Raises:
        CommandError: The command exited non-zero (with ``check=True``) or
            the executable was not found (return code 127).
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols(app_settings)
    command_to_run: Union[List[str], str]

    if shell:
        command_to_run = (
            " ".join(command) if isinstance(command, list) else command
        )
    elif isinstance(command, str):
        log_message(
            f"{symbols.get('warning', '!')} Running string command '{command}' without shell=True. Consider list format.",
            "warning",
            effective_logger,
        )
        command_to_run = command.split()
    else:
        command_to_run = list(command)
    command_to_log_str = _command_to_str(command_to_run)

    run_env = None
    if env:
        run_env = os.environ.copy()
        run_env.update(env)

    log_message(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        "debug",
        effective_logger,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            shell=shell,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=run_env,
        )
    except subprocess.CalledProcessError as e:
        stdout_info = e.stdout.strip() if isinstance(e.stdout, str) else ""
        stderr_info = e.stderr.strip() if isinstance(e.stderr, str) else ""
        log_message(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
        )
        if stdout_info:
            log_message(f"   stdout: {stdout_info}", "error", effective_logger)
        if stderr_info:
            log_message(f"   stderr: {stderr_info}", "error", effective_logger)
        raise CommandError(
            command_to_run, e.returncode, stderr_info or stdout_info or None
        ) from e
    except FileNotFoundError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
        )
        raise CommandError(command_to_run, 127, str(e)) from e

    if capture_output:
        if result.stdout and result.stdout.strip():
            log_message(
                f"   stdout: {result.stdout.strip()}", "debug", effective_logger
            )
        if result.stderr and result.stderr.strip():
            log_message(
                f"   stderr: {result.stderr.strip()}", "debug", effective_logger
            )
    return result


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings] = None,
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with elevated permissions (``sudo`` when not root).

    Takes the same arguments as :func:`run_command`, except that the command
    must be a list and is never run through the shell.
    """
    prefix = _get_elevated_command_prefix()
    elevated_command_list = prefix + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        shell=False,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
    )


def command_exists(command_name: str) -> bool:
    """
    Check if a command exists in the system's PATH.
    """
    return shutil.which(command_name) is not None


def run_logged(
    command: List[str],
    log_file: Optional[str],
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
) -> int:
    """
    Run `command` with stdout and stderr appended to `log_file`.

    Without a log file the output is discarded. Returns the exit code.

    Raises:
        CommandError: The command failed and `check` is set.
    """
    effective_logger = current_logger if current_logger else module_logger
    run_env = None
    if env:
        run_env = os.environ.copy()
        run_env.update(env)

    effective_logger.debug(f"Executing (logged): {_command_to_str(command)}")
    try:
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as log_fh:
                log_fh.write(f"$ {_command_to_str(command)}\n")
                log_fh.flush()
                returncode = subprocess.call(
                    command,
                    stdout=log_fh,
                    stderr=subprocess.STDOUT,
                    cwd=cwd,
                    env=run_env,
                )
        else:
            returncode = subprocess.call(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=cwd,
                env=run_env,
            )
    except FileNotFoundError as e:
        raise CommandError(command, 127, str(e)) from e

    if returncode != 0 and check:
        effective_logger.error(
            f"Command `{_command_to_str(command)}` failed (rc {returncode})."
            + (f" See {log_file}." if log_file else "")
        )
        raise CommandError(command, returncode)
    return returncode


def run_with_spinner(
    command: List[str],
    task: str,
    log_file: Optional[str] = None,
    check: bool = True,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> int:
    """
    Run a long command while drawing a spinner next to `task`.

    Output goes to `log_file` (or is discarded). The spinner only polls
    whether the child is still alive; it prints "done" or "failed" when the
    child exits. Returns the exit code.

    Raises:
        CommandError: The command failed and `check` is set.
    """
    effective_logger = current_logger if current_logger else module_logger
    run_env = None
    if env:
        run_env = os.environ.copy()
        run_env.update(env)

    effective_logger.debug(f"Executing (spinner): {_command_to_str(command)}")
    log_fh = open(log_file, "a", encoding="utf-8") if log_file else None
    process = None
    try:
        try:
            process = subprocess.Popen(
                command,
                stdout=log_fh if log_fh else subprocess.DEVNULL,
                stderr=subprocess.STDOUT if log_fh else subprocess.DEVNULL,
                cwd=cwd,
                env=run_env,
            )
        except FileNotFoundError as e:
            raise CommandError(command, 127, str(e)) from e

        interactive = sys.stdout.isatty()
        frame = 0
        while process.poll() is None:
            if interactive:
                sys.stdout.write(
                    f"\r{SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]} {task}..."
                )
                sys.stdout.flush()
            frame += 1
            time.sleep(0.1)
        returncode = process.returncode
    finally:
        # Interrupted while polling: do not leave the child running.
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        if log_fh:
            log_fh.close()

    status = "done" if returncode == 0 else "failed"
    if sys.stdout.isatty():
        sys.stdout.write(f"\r{task}... {status}\n")
        sys.stdout.flush()
    else:
        effective_logger.info(f"{task}... {status}")

    if returncode != 0 and check:
        raise CommandError(command, returncode)
    return returncode


def confirm(
    prompt: str,
    assume_yes: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Ask a y/N question on the terminal.

    `assume_yes` answers yes without prompting. End of input counts as no.
    """
    effective_logger = current_logger if current_logger else module_logger
    if assume_yes:
        effective_logger.info(f"{prompt} [y/N]: y (assumed)")
        return True
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def prompt_text(prompt: str) -> str:
    """Read a line of free text; end of input yields an empty string."""
    try:
        return input(prompt)
    except EOFError:
        return ""


def run_powershell(
    script: str,
    app_settings: Optional[AppSettings] = None,
    check: bool = True,
    capture_output: bool = True,
    current_logger: Optional[logging.Logger] = None,
) -> subprocess.CompletedProcess:
    """Run a PowerShell script block non-interactively."""
    return run_command(
        [
            "powershell.exe",
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ],
        app_settings,
        check=check,
        capture_output=capture_output,
        current_logger=current_logger,
    )
