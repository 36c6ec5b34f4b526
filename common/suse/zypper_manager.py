# common/suse/zypper_manager.py
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

ZYPP_REPOS_DIR = "/etc/zypp/repos.d"


class ZypperManager:
    """Package management on SUSE systems through zypper."""

    family = "suse"
    name = "zypper"

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("zypper"):
            raise UnsupportedPlatformError(
                "'zypper' not found. Is this a SUSE-based system?"
            )

    def _run(self, args: List[str]):
        return run_elevated_command(
            ["zypper", "--non-interactive"] + args,
            self.app_settings,
            current_logger=self.logger,
        )

    def update(self) -> None:
        self.logger.info("Refreshing zypper repositories...")
        self._run(["refresh"])

    def is_installed(self, package: str) -> bool:
        result = run_command(
            ["rpm", "-q", package],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0

    def install(self, packages: Union[List[str], str]) -> List[str]:
        if not isinstance(packages, list):
            packages = [packages]
        self.logger.info(f"Installing with zypper: {', '.join(packages)}")
        self._run(["install", "-y"] + packages)
        return packages

    def remove(self, packages: Union[List[str], str]) -> None:
        if not isinstance(packages, list):
            packages = [packages]
        self._run(["remove", "-y"] + packages)

    def write_repo_file(self, name: str, content: str) -> Path:
        repo_path = os.path.join(ZYPP_REPOS_DIR, f"{name}.repo")
        path = write_text_file(repo_path, content, 0o644, self.logger)
        self.logger.info(f"Wrote repository file {repo_path}")
        return path

    def remove_repo_file(self, name: str) -> bool:
        repo_path = Path(ZYPP_REPOS_DIR) / f"{name}.repo"
        if repo_path.exists():
            repo_path.unlink()
            return True
        return False
