"""
Terraform installer using the HashiCorp package repositories.
"""

import logging
from typing import Optional

from common.command_utils import command_exists, log_message, run_command
from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UnsupportedPlatformError
from common.file_utils import remove_path
from common.redhat.dnf_manager import DnfManager
from common.system_utils import get_debian_codename, require_root
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings
from settings.constants import (
    HASHICORP_APT_KEY_URL,
    HASHICORP_APT_LIST_PATH,
    HASHICORP_APT_REPO_URL,
    HASHICORP_KEYRING,
    HASHICORP_RPM_REPO_URL,
    HASHICORP_YUM_REPO_PATH,
)

APT_PREREQS = ["gnupg", "software-properties-common", "curl"]


def build_hashicorp_source_line(codename: str) -> str:
    return (
        f"deb [signed-by={HASHICORP_KEYRING}] "
        f"{HASHICORP_APT_REPO_URL} {codename} main"
    )


@InstallerRegistry.register(
    name="terraform",
    metadata={
        "dependencies": [],
        "estimated_time": 120,
        "description": "Terraform from the HashiCorp repositories",
        "platform": "linux",
        "aliases": ["hashicorp-terraform"],
    },
)
class TerraformInstaller(BaseInstaller):
    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings = app_settings.terraform

    def _install_apt(self) -> None:
        log_message("APT-based system detected.", "info", self.logger)
        apt = AptManager(self.app_settings, self.logger)
        apt.update()
        log_message(
            "Installing prerequisites: gnupg, software-properties-common, and curl...",
            "info",
            self.logger,
        )
        apt.install(APT_PREREQS)

        log_message("Adding HashiCorp GPG key...", "info", self.logger)
        apt.add_gpg_key_from_url(HASHICORP_APT_KEY_URL, HASHICORP_KEYRING)

        codename = (
            get_debian_codename(self.app_settings, self.logger)
            or self.settings.fallback_codename
        )
        log_message(
            f"Adding HashiCorp repository for '{codename}'...", "info", self.logger
        )
        apt.add_source_list(
            HASHICORP_APT_LIST_PATH, build_hashicorp_source_line(codename)
        )
        apt.update()
        log_message("Installing Terraform...", "info", self.logger)
        apt.install("terraform")

    def _install_rpm(self, binary: str) -> None:
        log_message(
            f"{binary.upper()}-based system detected.", "info", self.logger
        )
        manager = DnfManager(self.app_settings, self.logger, binary=binary)
        manager.install("yum-utils" if binary == "yum" else "dnf-plugins-core")
        log_message("Adding HashiCorp repository...", "info", self.logger)
        manager.add_repo_from_url(HASHICORP_RPM_REPO_URL)
        log_message("Installing Terraform...", "info", self.logger)
        manager.install("terraform")

    def install(self) -> bool:
        try:
            require_root()
            if self.is_installed():
                log_message(
                    "Terraform is already installed. Skipping installation.",
                    "warning",
                    self.logger,
                )
                return True

            if command_exists("apt-get"):
                self._install_apt()
            elif command_exists("yum"):
                self._install_rpm("yum")
            elif command_exists("dnf"):
                self._install_rpm("dnf")
            else:
                raise UnsupportedPlatformError(
                    "Unsupported package manager. Exiting."
                )
            self.installed_by_run = True

            log_message(
                f"{self.symbols.get('success', '✅')} Terraform installation completed successfully!",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Terraform installation failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        try:
            require_root()
            if command_exists("apt-get"):
                AptManager(self.app_settings, self.logger).remove("terraform")
                remove_path(HASHICORP_APT_LIST_PATH, self.logger)
                remove_path(HASHICORP_KEYRING, self.logger)
            elif command_exists("yum") or command_exists("dnf"):
                DnfManager(self.app_settings, self.logger).remove("terraform")
                remove_path(HASHICORP_YUM_REPO_PATH, self.logger)
            else:
                raise UnsupportedPlatformError(
                    "Unsupported package manager. Exiting."
                )
            log_message(
                f"{self.symbols.get('success', '✅')} Terraform and the HashiCorp repository removed.",
                "success",
                self.logger,
            )
            return True
        except InstallerError as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error uninstalling Terraform: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        return command_exists("terraform")

    def verify(self) -> bool:
        try:
            result = run_command(
                ["terraform", "version"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            )
        except InstallerError:
            self.logger.warning("'terraform version' failed.")
            return False
        self.logger.info(result.stdout.strip().splitlines()[0] if result.stdout.strip() else "terraform")
        return True
