# common/redhat/dnf_manager.py
# -*- coding: utf-8 -*-
import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from common.errors import UnsupportedPlatformError
from common.file_utils import write_text_file
from settings.config_models import AppSettings

YUM_REPOS_DIR = "/etc/yum.repos.d"
YUM_CONF_CANDIDATES = ("/etc/yum.conf", "/etc/dnf/dnf.conf")


def add_to_exclude_line(conf_text: str, packages: List[str]) -> str:
    """
    Return `conf_text` with `packages` appended to its first ``exclude=``
    line, or with a new ``exclude=`` line when there is none.

    Packages already listed are not repeated, so running twice gives the
    same text.
    """
    lines = remove_from_exclude_line(conf_text, packages).splitlines()
    joined = " ".join(packages)
    for index, line in enumerate(lines):
        if line.startswith("exclude="):
            current = line[len("exclude="):].strip()
            lines[index] = (
                f"exclude={current} {joined}" if current else f"exclude={joined}"
            )
            break
    else:
        lines.append(f"exclude={joined}")
    return "\n".join(lines) + "\n"


def remove_from_exclude_line(conf_text: str, packages: List[str]) -> str:
    """Return `conf_text` with `packages` removed from ``exclude=`` lines."""
    result_lines = []
    for line in conf_text.splitlines():
        if line.startswith("exclude="):
            names = line[len("exclude="):].split()
            remaining = [name for name in names if name not in packages]
            line = "exclude=" + " ".join(remaining)
        result_lines.append(line)
    return "\n".join(result_lines) + "\n"


class DnfManager:
    """
    Package management through dnf, or yum on systems without dnf.

    Every method raises ``CommandError`` when the underlying command fails.
    """

    family = "redhat"

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
        binary: Optional[str] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        if binary is None:
            if command_exists("dnf"):
                binary = "dnf"
            elif command_exists("yum"):
                binary = "yum"
            else:
                raise UnsupportedPlatformError(
                    "Neither 'dnf' nor 'yum' found. Is this a Red Hat-based system?"
                )
        self.binary = binary
        self.name = binary

    @property
    def install_flags(self) -> List[str]:
        return ["-y", "-q", "--best"] if self.binary == "dnf" else ["-y", "-q"]

    def _run(self, args: List[str], check: bool = True, capture_output: bool = False):
        return run_elevated_command(
            [self.binary] + args,
            self.app_settings,
            check=check,
            capture_output=capture_output,
            current_logger=self.logger,
        )

    def update(self) -> None:
        self.logger.info(f"Refreshing {self.binary} metadata...")
        self._run(["makecache", "-y", "-q"])

    def is_installed(self, package: str) -> bool:
        result = run_command(
            ["rpm", "-q", package],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0

    def install(
        self,
        packages: Union[List[str], str],
        extra_args: Optional[List[str]] = None,
    ) -> List[str]:
        if not isinstance(packages, list):
            packages = [packages]
        self.logger.info(f"Installing with {self.binary}: {', '.join(packages)}")
        self._run(["install"] + self.install_flags + (extra_args or []) + packages)
        return packages

    def remove(self, packages: Union[List[str], str]) -> None:
        if not isinstance(packages, list):
            packages = [packages]
        self.logger.info(f"Removing packages: {', '.join(packages)}")
        self._run(["remove", "-y", "-q"] + packages)

    def group_install(self, group: str) -> None:
        self.logger.info(f"Installing package group '{group}'...")
        self._run(["groupinstall", "-y", "-q", group])

    def write_repo_file(self, name: str, content: str) -> Path:
        """Write ``/etc/yum.repos.d/<name>.repo`` (mode 0644)."""
        repo_path = os.path.join(YUM_REPOS_DIR, f"{name}.repo")
        path = write_text_file(repo_path, content, 0o644, self.logger)
        self.logger.info(f"Wrote repository file {repo_path}")
        return path

    def remove_repo_file(self, name: str) -> bool:
        repo_path = Path(YUM_REPOS_DIR) / f"{name}.repo"
        if repo_path.exists():
            repo_path.unlink()
            self.logger.info(f"Removed repository file {repo_path}")
            return True
        return False

    def _is_dnf5(self) -> bool:
        if self.binary != "dnf":
            return False
        result = run_command(
            ["dnf", "--version"],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return (result.stdout or "").strip().startswith("dnf5")

    def add_repo_from_url(self, url: str) -> None:
        """
        Register a remote ``.repo`` file.

        dnf5 uses ``config-manager addrepo --from-repofile``; dnf4 uses
        ``config-manager --add-repo``; yum uses ``yum-config-manager``.
        """
        if self.binary == "yum":
            command = ["yum-config-manager", "--add-repo", url]
        elif self._is_dnf5():
            command = ["dnf", "config-manager", "addrepo", f"--from-repofile={url}"]
        else:
            command = ["dnf", "config-manager", "--add-repo", url]
        run_elevated_command(
            command, self.app_settings, current_logger=self.logger
        )

    def _conf_path(self) -> Optional[Path]:
        for candidate in YUM_CONF_CANDIDATES:
            if Path(candidate).is_file():
                return Path(candidate)
        return None

    def exclude(self, packages: List[str]) -> None:
        """
        Stop the package manager from updating `packages`.

        dnf uses ``dnf mark exclude``; yum edits the ``exclude=`` line of
        yum.conf (or dnf.conf).
        """
        if self.binary == "dnf":
            self._run(["mark", "exclude"] + list(packages))
            return
        conf_path = self._conf_path()
        if conf_path is None:
            raise UnsupportedPlatformError(
                "No yum.conf or dnf.conf found to exclude packages."
            )
        conf_path.write_text(
            add_to_exclude_line(conf_path.read_text(encoding="utf-8"), packages),
            encoding="utf-8",
        )
        self.logger.info(f"Packages added to exclude list in {conf_path}.")

    def unexclude(self, packages: List[str]) -> None:
        if self.binary == "dnf":
            self._run(["mark", "unexclude"] + list(packages))
            return
        conf_path = self._conf_path()
        if conf_path is None:
            self.logger.warning("No yum.conf or dnf.conf found to unexclude packages.")
            return
        conf_path.write_text(
            remove_from_exclude_line(
                conf_path.read_text(encoding="utf-8"), packages
            ),
            encoding="utf-8",
        )
        self.logger.info(f"Packages removed from exclude list in {conf_path}.")
