# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from common.errors import UnsupportedPlatformError
from common.file_utils import write_text_file
from common.network_utils import download_file
from settings.config_models import AppSettings

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptManager:
    """
    A centralized manager for Debian apt packages using command-line tools.

    Repository sources are written as one-line ``.list`` files.
    Every method raises ``CommandError`` when the underlying command fails.
    """

    family = "debian"
    name = "apt"

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise UnsupportedPlatformError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    def _apt(self, args: List[str], capture_output: bool = False):
        return run_elevated_command(
            ["apt-get"] + args,
            self.app_settings,
            capture_output=capture_output,
            current_logger=self.logger,
            env=APT_ENV,
        )

    def update(self) -> None:
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        self._apt(["update", "-yq"])

    def is_installed(self, package: str) -> bool:
        result = run_command(
            ["dpkg-query", "-W", "-f=${db:Status-Status}", package],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0 and result.stdout.strip() == "installed"

    def package_available(self, package: str) -> bool:
        """True when ``apt-cache show`` knows `package`."""
        result = run_command(
            ["apt-cache", "show", package],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    def install(
        self,
        packages: Union[List[str], str],
        update_first: bool = False,
    ) -> List[str]:
        """
        Installs packages that are not installed yet.

        Returns:
            The packages that were actually passed to ``apt-get install``.
        """
        if not isinstance(packages, list):
            packages = [packages]

        if update_first:
            self.update()

        packages_to_install = []
        for pkg_name in packages:
            if self.is_installed(pkg_name):
                self.logger.info(
                    f"Package '{pkg_name}' is already installed. Skipping."
                )
            else:
                packages_to_install.append(pkg_name)

        if not packages_to_install:
            self.logger.info("All requested packages are already installed.")
            return []

        self.logger.info(
            f"Installing: {', '.join(packages_to_install)}"
        )
        self._apt(["install", "-yq"] + packages_to_install)
        return packages_to_install

    def remove(self, packages: Union[List[str], str]) -> None:
        if not isinstance(packages, list):
            packages = [packages]
        self.logger.info(f"Removing packages: {', '.join(packages)}")
        self._apt(["remove", "-yq"] + packages)

    def purge(self, packages: Union[List[str], str]) -> None:
        if not isinstance(packages, list):
            packages = [packages]
        self.logger.info(f"Purging packages: {', '.join(packages)}")
        self._apt(["purge", "-yq"] + packages)

    def hold(self, packages: List[str]) -> None:
        run_elevated_command(
            ["apt-mark", "hold"] + list(packages),
            self.app_settings,
            current_logger=self.logger,
        )

    def unhold(self, packages: List[str]) -> None:
        run_elevated_command(
            ["apt-mark", "unhold"] + list(packages),
            self.app_settings,
            current_logger=self.logger,
        )

    def add_gpg_key_from_url(self, key_url: str, keyring_path: str) -> None:
        """
        Download an ASCII-armored key and dearmor it into `keyring_path`
        (mode 0644). The keyring directory is created with mode 0755.
        """
        self.logger.info(f"Adding GPG key from {key_url} to {keyring_path}")
        keyring_dir = os.path.dirname(keyring_path)
        os.makedirs(keyring_dir, mode=0o755, exist_ok=True)

        with tempfile.TemporaryDirectory() as tmp_dir:
            armored = download_file(
                key_url,
                Path(tmp_dir) / "key.asc",
                self.app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                [
                    "gpg",
                    "--batch",
                    "--yes",
                    "--dearmor",
                    "-o",
                    keyring_path,
                    str(armored),
                ],
                self.app_settings,
                current_logger=self.logger,
            )
        os.chmod(keyring_path, 0o644)

    def add_key_legacy(self, key_url: str) -> None:
        """Import a key with ``apt-key add`` for systems without gpg."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            armored = download_file(
                key_url,
                Path(tmp_dir) / "key.asc",
                self.app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["apt-key", "add", str(armored)],
                self.app_settings,
                current_logger=self.logger,
            )

    def add_source_list(
        self, list_path: str, lines: Union[List[str], str]
    ) -> None:
        """Write a one-line-style ``.list`` source file (mode 0644)."""
        if isinstance(lines, str):
            lines = [lines]
        write_text_file(
            list_path, "\n".join(lines) + "\n", 0o644, self.logger
        )
        self.logger.info(f"Wrote apt source {list_path}")
