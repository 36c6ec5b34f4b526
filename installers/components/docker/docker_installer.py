"""
Docker Engine installer.

Installs Docker CE from download.docker.com on apt, dnf/yum and Amazon Linux
systems. When the native installation fails the get.docker.com convenience
script is tried instead.
"""

import logging
import platform
import re
import tempfile
from pathlib import Path
from typing import Optional

from common.command_utils import (
    command_exists,
    log_message,
    run_command,
    run_elevated_command,
)
from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UnsupportedPlatformError
from common.file_utils import remove_path, write_text_file
from common.network_utils import fetch_text
from common.redhat.dnf_manager import DnfManager
from common.suse.zypper_manager import ZypperManager
from common.system_utils import (
    OsRelease,
    deprecation_notice,
    enable_service,
    get_debian_codename,
    get_dpkg_architecture,
    get_machine_architecture,
    get_sudo_user,
    read_os_release,
    require_root,
    service_is_active,
    start_service,
    stop_service,
)
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings
from settings.constants import (
    DOCKER_APT_KEYRING,
    DOCKER_APT_LIST_PATH,
    DOCKER_APT_PREREQS,
    DOCKER_CONVENIENCE_SCRIPT_URL,
    DOCKER_DOWNLOAD_BASE_URL,
    DOCKER_RPM_REPO_URL,
    DOCKER_YUM_REPO_FILES,
)

APT_DISTROS = ("ubuntu", "debian", "raspbian")
RPM_DISTROS = ("centos", "fedora", "rhel")
DOCKER_DESKTOP_URL = "https://www.docker.com/products/docker-desktop"
SLES_REPO_URL = f"{DOCKER_DOWNLOAD_BASE_URL}/sles/docker-ce.repo"


def amazon_linux_releasever(os_release: OsRelease) -> str:
    """CentOS release whose packages fit this Amazon Linux version."""
    return "9" if "2023" in f"{os_release.version_id} {os_release.name}" else "8"


def override_releasever(repo_text: str, release: str) -> str:
    return re.sub(r"\$releasever", release, repo_text)


def build_apt_source_line(distro: str, codename: str, arch: str) -> str:
    return (
        f"deb [arch={arch} signed-by={DOCKER_APT_KEYRING}] "
        f"{DOCKER_DOWNLOAD_BASE_URL}/{distro} {codename} stable"
    )


@InstallerRegistry.register(
    name="docker",
    metadata={
        "dependencies": [],
        "estimated_time": 300,
        "description": "Docker Engine (docker-ce) from download.docker.com",
        "platform": "linux",
        "aliases": ["docker-ce", "docker-engine"],
    },
)
class DockerInstaller(BaseInstaller):
    """
    Installs Docker Engine with the distribution's package manager.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings = app_settings.docker

    def _install_apt(self, os_release: OsRelease) -> None:
        log_message(
            f"APT-based system detected: {os_release.id}", "info", self.logger
        )
        codename = get_debian_codename(self.app_settings, self.logger)
        if not codename:
            raise UnsupportedPlatformError(
                "Cannot determine the release codename."
            )
        deprecation_notice(os_release.id, codename, self.logger)

        apt = AptManager(self.app_settings, self.logger)
        log_message(
            "Updating package list and installing prerequisites...",
            "info",
            self.logger,
        )
        apt.update()
        apt.install(DOCKER_APT_PREREQS)

        log_message("Adding Docker GPG key and repository...", "info", self.logger)
        apt.add_gpg_key_from_url(
            f"{DOCKER_DOWNLOAD_BASE_URL}/{os_release.id}/gpg", DOCKER_APT_KEYRING
        )
        apt.add_source_list(
            DOCKER_APT_LIST_PATH,
            build_apt_source_line(
                os_release.id,
                codename,
                get_dpkg_architecture(self.app_settings, self.logger),
            ),
        )
        apt.update()

        log_message(
            f"{self.symbols.get('package', '📦')} Installing Docker packages...",
            "info",
            self.logger,
        )
        apt.install(self.settings.packages)
        self.print_rootless_info()

    def _install_rpm(self, os_release: OsRelease) -> None:
        log_message(
            f"YUM/DNF-based system detected: {os_release.id}", "info", self.logger
        )
        dnf = DnfManager(self.app_settings, self.logger)
        try:
            dnf.install("dnf-plugins-core")
        except InstallerError as e:
            log_message(
                f"Failed to install dnf-plugins-core, continuing: {e}",
                "warning",
                self.logger,
            )
        dnf.install("yum-utils")
        for repo_file in DOCKER_YUM_REPO_FILES:
            remove_path(repo_file, self.logger)
        dnf.add_repo_from_url(DOCKER_RPM_REPO_URL)
        log_message(
            f"{self.symbols.get('package', '📦')} Installing Docker packages...",
            "info",
            self.logger,
        )
        dnf.install(self.settings.packages)

    def _install_amazon(self, os_release: OsRelease) -> None:
        release = amazon_linux_releasever(os_release)
        log_message(
            f"Amazon Linux detected. Using $releasever override '{release}'.",
            "info",
            self.logger,
        )
        dnf = DnfManager(self.app_settings, self.logger)
        dnf.install("dnf-plugins-core")
        dnf.add_repo_from_url(DOCKER_RPM_REPO_URL)

        repo_path = Path(DOCKER_YUM_REPO_FILES[0])
        write_text_file(
            repo_path,
            override_releasever(repo_path.read_text(encoding="utf-8"), release),
            0o644,
            self.logger,
        )
        dnf.install(self.settings.packages)

    def _install_sles(self) -> None:
        if get_machine_architecture() != "s390x":
            raise UnsupportedPlatformError(
                "SLES packages are currently only available for s390x architecture."
            )
        run_elevated_command(
            ["zypper", "--non-interactive", "addrepo", SLES_REPO_URL],
            self.app_settings,
            current_logger=self.logger,
        )
        zypper = ZypperManager(self.app_settings, self.logger)
        zypper.update()
        zypper.install(self.settings.packages)

    def install_native(self) -> None:
        """
        Raises:
            UnsupportedPlatformError: macOS, SLES off s390x or an unknown
                distribution. These do not trigger the fallback script.
        """
        if platform.system() == "Darwin":
            raise UnsupportedPlatformError(
                f"Unsupported operating system 'macOS'. Please install Docker Desktop from {DOCKER_DESKTOP_URL}"
            )
        os_release = read_os_release()
        if os_release.id in APT_DISTROS:
            self._install_apt(os_release)
        elif os_release.id in RPM_DISTROS:
            self._install_rpm(os_release)
        elif os_release.id == "amzn":
            self._install_amazon(os_release)
        elif os_release.id == "sles":
            self._install_sles()
        else:
            raise UnsupportedPlatformError(
                f"Unsupported distribution: {os_release.id}"
            )

        log_message("Enabling and starting Docker service...", "info", self.logger)
        enable_service("docker", self.app_settings, self.logger)
        start_service("docker", self.app_settings, self.logger)

    def install_with_script(self) -> None:
        """Run the get.docker.com convenience script."""
        script = fetch_text(
            DOCKER_CONVENIENCE_SCRIPT_URL,
            self.app_settings,
            current_logger=self.logger,
        )
        with tempfile.TemporaryDirectory() as tmp_dir:
            script_path = Path(tmp_dir) / "get-docker.sh"
            script_path.write_text(script, encoding="utf-8")
            run_elevated_command(
                ["sh", str(script_path)],
                self.app_settings,
                current_logger=self.logger,
            )

    def add_user_to_group(self) -> None:
        user = get_sudo_user()
        if not user:
            self.logger.debug("No invoking sudo user; skipping docker group.")
            return
        try:
            run_elevated_command(
                ["usermod", "-aG", "docker", user],
                self.app_settings,
                current_logger=self.logger,
            )
            log_message(
                f"Added {user} to the 'docker' group. Log out and back in for it to take effect.",
                "info",
                self.logger,
            )
        except InstallerError as e:
            log_message(
                f"Could not add {user} to the 'docker' group: {e}",
                "warning",
                self.logger,
            )

    def print_rootless_info(self) -> None:
        log_message(
            "To run Docker as a non-root user, consider installing rootless mode:",
            "info",
            self.logger,
        )
        log_message("    dockerd-rootless-setuptool.sh install", "info", self.logger)
        log_message(
            "See https://docs.docker.com/go/rootless/ for more information.",
            "info",
            self.logger,
        )

    def install(self) -> bool:
        try:
            require_root()
            log_message(
                f"{self.symbols.get('rocket', '🚀')} Starting Docker installation...",
                "info",
                self.logger,
            )
            if command_exists("docker"):
                log_message(
                    "Docker is already installed. Skipping installation.",
                    "warning",
                    self.logger,
                )
                return True

            try:
                self.install_native()
            except UnsupportedPlatformError:
                raise
            except InstallerError as e:
                if not self.settings.use_fallback_script:
                    raise
                log_message(
                    f"An error occurred during the installation process ({e}). Defaulting to the fallback installer.",
                    "warning",
                    self.logger,
                )
                try:
                    self.install_with_script()
                except InstallerError as fallback_error:
                    raise InstallerError(
                        f"Fallback installer (get.docker.com) also failed: {fallback_error}"
                    ) from fallback_error

            self.installed_by_run = True
            if self.settings.add_user_to_group:
                self.add_user_to_group()

            log_message(
                f"{self.symbols.get('success', '✅')} Docker installation completed successfully!",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Docker installation failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        try:
            require_root()
            stop_service("docker", self.app_settings, self.logger, disable=True)
            os_release = read_os_release()
            if os_release.id in APT_DISTROS:
                apt = AptManager(self.app_settings, self.logger)
                apt.purge(self.settings.packages)
                remove_path(DOCKER_APT_LIST_PATH, self.logger)
                remove_path(DOCKER_APT_KEYRING, self.logger)
            elif os_release.id in RPM_DISTROS + ("amzn",):
                DnfManager(self.app_settings, self.logger).remove(
                    self.settings.packages
                )
                for repo_file in DOCKER_YUM_REPO_FILES:
                    remove_path(repo_file, self.logger)
            elif os_release.id == "sles":
                ZypperManager(self.app_settings, self.logger).remove(
                    self.settings.packages
                )
            else:
                raise UnsupportedPlatformError(
                    f"Unsupported distribution: {os_release.id}"
                )
            log_message(
                f"{self.symbols.get('success', '✅')} Docker packages and repository removed. /var/lib/docker was kept.",
                "success",
                self.logger,
            )
            return True
        except InstallerError as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error uninstalling Docker: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        return command_exists("docker")

    def verify(self) -> bool:
        try:
            result = run_command(
                ["docker", "--version"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            )
        except InstallerError:
            self.logger.warning("'docker --version' failed.")
            return False
        self.logger.info(result.stdout.strip())
        if not service_is_active("docker", self.app_settings, self.logger):
            self.logger.warning("The docker service is not active.")
            return False
        return True
