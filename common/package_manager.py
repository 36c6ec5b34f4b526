# common/package_manager.py
# -*- coding: utf-8 -*-
"""
Package-manager detection and a generic, family-independent action wrapper.

``PACKAGE_MANAGERS`` is a static lookup table; the first entry whose binary
is found in PATH wins.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from common.command_utils import command_exists, run_elevated_command
from common.debian.apt_manager import AptManager
from common.errors import UnsupportedPlatformError
from common.redhat.dnf_manager import DnfManager
from common.suse.zypper_manager import ZypperManager
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

ACTIONS = ("install", "remove", "update", "upgrade")
ACTION_ALIASES = {"makecache": "update"}


@dataclass(frozen=True)
class PackageManagerInfo:
    name: str
    binary: str
    family: str
    install: List[str] = field(default_factory=list)
    remove: List[str] = field(default_factory=list)
    update: List[str] = field(default_factory=list)
    upgrade: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)

    def command(
        self, action: str, packages: Optional[Sequence[str]] = None
    ) -> List[str]:
        """
        Build the argv for `action` (install, remove, update or upgrade).
        ``makecache`` is accepted as another name for ``update``.

        Raises:
            UnsupportedPlatformError: `action` is not a known action.
        """
        action = ACTION_ALIASES.get(action, action)
        if action not in ACTIONS:
            raise UnsupportedPlatformError(
                f"Unknown package-manager action '{action}' for {self.name}"
            )
        return list(getattr(self, action)) + list(packages or [])


PACKAGE_MANAGERS: Sequence[PackageManagerInfo] = (
    PackageManagerInfo(
        name="apt",
        binary="apt-get",
        family="debian",
        install=["apt-get", "install", "-y"],
        remove=["apt-get", "remove", "-y"],
        update=["apt-get", "update", "-y"],
        upgrade=["apt-get", "upgrade", "-y"],
        env={"DEBIAN_FRONTEND": "noninteractive"},
    ),
    PackageManagerInfo(
        name="dnf",
        binary="dnf",
        family="redhat",
        install=["dnf", "install", "-y"],
        remove=["dnf", "remove", "-y"],
        update=["dnf", "makecache", "-y"],
        upgrade=["dnf", "upgrade", "-y"],
    ),
    PackageManagerInfo(
        name="yum",
        binary="yum",
        family="redhat",
        install=["yum", "install", "-y"],
        remove=["yum", "remove", "-y"],
        update=["yum", "makecache", "-y"],
        upgrade=["yum", "update", "-y"],
    ),
    PackageManagerInfo(
        name="zypper",
        binary="zypper",
        family="suse",
        install=["zypper", "--non-interactive", "install", "-y"],
        remove=["zypper", "--non-interactive", "remove", "-y"],
        update=["zypper", "--non-interactive", "refresh"],
        upgrade=["zypper", "--non-interactive", "update", "-y"],
    ),
    PackageManagerInfo(
        name="pacman",
        binary="pacman",
        family="arch",
        install=["pacman", "-S", "--noconfirm", "--needed"],
        remove=["pacman", "-R", "--noconfirm"],
        update=["pacman", "-Sy", "--noconfirm"],
        upgrade=["pacman", "-Syu", "--noconfirm"],
    ),
    PackageManagerInfo(
        name="apk",
        binary="apk",
        family="alpine",
        install=["apk", "add", "--no-cache"],
        remove=["apk", "del"],
        update=["apk", "update"],
        upgrade=["apk", "upgrade"],
    ),
)


def detect_package_manager() -> PackageManagerInfo:
    """
    Raises:
        UnsupportedPlatformError: No known package manager is in PATH.
    """
    for info in PACKAGE_MANAGERS:
        if command_exists(info.binary):
            return info
    raise UnsupportedPlatformError("No supported package manager found")


def get_package_manager(
    app_settings: Optional[AppSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> Union[AptManager, DnfManager, ZypperManager]:
    """
    Return a manager object for the detected package-manager family.

    Raises:
        UnsupportedPlatformError: The detected manager has no wrapper class
            (pacman, apk) or none was found.
    """
    info = detect_package_manager()
    if info.family == "debian":
        return AptManager(app_settings, logger)
    if info.family == "redhat":
        return DnfManager(app_settings, logger, binary=info.binary)
    if info.family == "suse":
        return ZypperManager(app_settings, logger)
    raise UnsupportedPlatformError(
        f"Package manager '{info.name}' is not supported by the installers."
    )


def generic_pkg_action(
    action: str,
    packages: Optional[List[str]] = None,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> int:
    """
    Run `action` on `packages` with whichever manager exists, using the
    argv from its ``PACKAGE_MANAGERS`` entry. Output is captured and logged
    at debug level when the command fails.

    Returns:
        The exit status of the package-manager command.

    Raises:
        UnsupportedPlatformError: No manager found or `action` is unknown.
    """
    logger_to_use = current_logger if current_logger else module_logger
    info = detect_package_manager()

    result: subprocess.CompletedProcess = run_elevated_command(
        info.command(action, packages),
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
        env=info.env or None,
    )
    if result.returncode != 0:
        logger_to_use.debug(
            f"Package manager command failed. Output:\n{result.stdout}{result.stderr}"
        )
    return result.returncode
