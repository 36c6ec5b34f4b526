# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions: OS and distribution detection, privilege
checks and systemd service control.
"""

import logging
import os
import platform
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from common.command_utils import (
    command_exists,
    log_message,
    run_command,
    run_elevated_command,
)
from common.errors import (
    InstallerError,
    PrivilegeError,
    UnsupportedPlatformError,
)
from settings.config_models import SYMBOLS_DEFAULT, AppSettings
from settings.constants import DEPRECATED_RELEASES, OS_RELEASE_PATH

module_logger = logging.getLogger(__name__)

ROOT_REQUIRED_MESSAGE = "This installer must be run as root (use sudo)."


@dataclass
class OsRelease:
    """Parsed contents of /etc/os-release."""

    id: str = "unknown"
    id_like: str = ""
    version_id: str = ""
    version_codename: str = ""
    name: str = ""

    @property
    def major_version(self) -> str:
        return self.version_id.split(".")[0] if self.version_id else ""


def read_os_release(path: str = OS_RELEASE_PATH) -> OsRelease:
    """
    Parse an os-release file.

    Raises:
        UnsupportedPlatformError: The file does not exist.
    """
    release_path = Path(path)
    if not release_path.is_file():
        raise UnsupportedPlatformError(
            f"Cannot determine the distribution: {path} not found."
        )

    values = {}
    for raw_line in release_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"').strip("'")

    return OsRelease(
        id=values.get("ID", "unknown").lower(),
        id_like=values.get("ID_LIKE", "").lower(),
        version_id=values.get("VERSION_ID", ""),
        version_codename=values.get("VERSION_CODENAME", ""),
        name=values.get("NAME", ""),
    )


def get_debian_codename(
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    os_release_path: str = OS_RELEASE_PATH,
) -> Optional[str]:
    """
    Get the Debian/Ubuntu codename (e.g. 'bookworm', 'noble').

    Uses ``lsb_release -cs`` and falls back to VERSION_CODENAME from
    os-release. Returns None when neither is available.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if command_exists("lsb_release"):
        try:
            result = run_command(
                ["lsb_release", "-cs"],
                app_settings,
                capture_output=True,
                current_logger=logger_to_use,
            )
            if result.stdout and result.stdout.strip():
                return result.stdout.strip()
        except InstallerError:
            logger_to_use.debug(
                "lsb_release failed; falling back to os-release."
            )

    try:
        codename = read_os_release(os_release_path).version_codename
    except (UnsupportedPlatformError, OSError):
        codename = ""
    return codename or None


def get_machine_architecture() -> str:
    """Machine hardware name as reported by ``uname -m``."""
    return platform.machine()


def get_dpkg_architecture(
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    result = run_command(
        ["dpkg", "--print-architecture"],
        app_settings,
        capture_output=True,
        current_logger=current_logger,
    )
    return result.stdout.strip()


def is_root() -> bool:
    """True when running as root (or, on Windows, as Administrator)."""
    if hasattr(os, "geteuid"):
        return os.geteuid() == 0
    try:
        import ctypes

        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except (AttributeError, OSError):
        return False


def require_root() -> None:
    """
    Raises:
        PrivilegeError: The process is not privileged.
    """
    if not is_root():
        raise PrivilegeError(ROOT_REQUIRED_MESSAGE)


def in_ssh_session(env: Optional[Mapping[str, str]] = None) -> bool:
    environment = os.environ if env is None else env
    return any(
        environment.get(var)
        for var in ("SSH_CONNECTION", "SSH_CLIENT", "SSH_TTY")
    )


def cpu_count_for_build() -> int:
    return os.cpu_count() or 1


def is_windows() -> bool:
    return platform.system() == "Windows"


def systemd_reload(
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Reload the systemd daemon."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    log_message(
        f"{symbols.get('gear', '⚙️')} Reloading systemd daemon...",
        "info",
        logger_to_use,
    )
    run_elevated_command(
        ["systemctl", "daemon-reload"],
        app_settings,
        current_logger=logger_to_use,
    )


def enable_service(
    service: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    now: bool = False,
) -> None:
    command = ["systemctl", "enable"]
    if now:
        command.append("--now")
    run_elevated_command(
        command + [service], app_settings, current_logger=current_logger
    )


def start_service(
    service: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    run_elevated_command(
        ["systemctl", "start", service],
        app_settings,
        current_logger=current_logger,
    )


def stop_service(
    service: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    disable: bool = False,
) -> None:
    """Stop (and optionally disable) a service. Failures are ignored."""
    run_elevated_command(
        ["systemctl", "stop", service],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=current_logger,
    )
    if disable:
        run_elevated_command(
            ["systemctl", "disable", service],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
        )


def service_is_active(
    service: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    result = run_command(
        ["systemctl", "is-active", "--quiet", service],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=current_logger,
    )
    return result.returncode == 0


def binary_version_output(
    command: list,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Run a version command and return stdout and stderr combined.

    Several tools (``nginx -v``, ``ssh -V``) print their version on stderr.
    Returns None when the command cannot be run or fails.
    """
    try:
        result = run_command(
            command,
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
        )
    except InstallerError:
        return None
    if result.returncode != 0:
        return None
    return f"{result.stdout or ''}{result.stderr or ''}".strip()


def deprecation_notice(
    distro: str,
    release: Optional[str],
    current_logger: Optional[logging.Logger] = None,
    delay: float = 5,
) -> bool:
    """
    Warn and pause when `release` of `distro` is end-of-life.

    Returns True when a notice was printed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not release or release not in DEPRECATED_RELEASES.get(distro, ()):
        return False
    logger_to_use.warning(
        f"DEPRECATION WARNING: {distro} {release} is end-of-life and no "
        f"longer receives vendor packages. This installation may fail."
    )
    logger_to_use.warning(
        f"Continuing in {int(delay)} seconds. Press Ctrl-C to abort."
    )
    time.sleep(delay)
    return True


def get_sudo_user() -> Optional[str]:
    """The user who invoked sudo, if any."""
    user = os.environ.get("SUDO_USER")
    return user if user and user != "root" else None
