"""
NGINX package installer.

Installs NGINX from the nginx.org package repositories, on either the
stable or the mainline release track.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from common.command_utils import (
    command_exists,
    log_message,
    run_elevated_command,
)
from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UnsupportedPlatformError
from common.file_utils import write_text_file
from common.system_utils import (
    OsRelease,
    binary_version_output,
    get_debian_codename,
    read_os_release,
    require_root,
)
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings
from settings.constants import NGINX_APT_LIST_PATH, NGINX_YUM_REPO_PATH
from settings.templates import NGINX_YUM_REPO_TEMPLATE

DEBIAN_DISTROS = ("debian", "ubuntu")
RPM_DISTROS = ("amzn", "fedora", "rhel", "centos")


def parse_nginx_version(output: Optional[str]) -> Optional[str]:
    """Extract ``X.Y.Z`` from ``nginx version: nginx/X.Y.Z``."""
    if not output:
        return None
    match = re.search(r"nginx/(\d+(?:\.\d+)*)", output)
    return match.group(1) if match else None


def build_yum_repo(
    os_release: OsRelease,
    channel: str,
    base_url: str,
    gpg_key_url: str,
) -> str:
    """
    Render the ``nginx.repo`` contents for an RPM-based distribution.

    Raises:
        UnsupportedPlatformError: `os_release` is not an RPM distribution
            served by nginx.org.
    """
    track = "Mainline" if channel == "mainline" else "Stable"
    channel_path = "/mainline" if channel == "mainline" else ""
    extra = ""

    if os_release.id == "amzn":
        name = f"NGINX {track} for Amazon Linux 2023"
        path = "amzn/2023"
        extra = "module_hotfixes=true\n"
    elif os_release.id == "fedora":
        name = f"NGINX {track} for Fedora {os_release.version_id}"
        path = f"fedora/{os_release.version_id}"
    elif os_release.id in ("rhel", "centos"):
        major = os_release.major_version
        name = f"NGINX {track} for RHEL/CentOS {major}"
        path = f"rhel/{major}"
    else:
        raise UnsupportedPlatformError(
            f"No repo configuration for distro: {os_release.id}"
        )

    return NGINX_YUM_REPO_TEMPLATE.format(
        channel=channel,
        name=name,
        baseurl=f"{base_url}{channel_path}/{path}/$basearch/",
        gpgkey=gpg_key_url,
        extra=extra,
    )


def build_apt_source_lines(
    distro: str,
    codename: str,
    channel: str,
    base_url: str,
    keyring_path: Optional[str] = None,
) -> list:
    channel_path = "/mainline" if channel == "mainline" else ""
    key_opt = f"[signed-by={keyring_path}] " if keyring_path else ""
    repo = f"{base_url}{channel_path}/{distro} {codename} nginx"
    return [f"deb {key_opt}{repo}", f"deb-src {key_opt}{repo}"]


@InstallerRegistry.register(
    name="nginx",
    metadata={
        "dependencies": [],
        "estimated_time": 120,
        "description": "NGINX from the nginx.org repositories (stable or mainline)",
        "platform": "linux",
        "aliases": ["nginx-package"],
    },
)
class NginxInstaller(BaseInstaller):
    """
    Installer for the NGINX package from nginx.org.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings = app_settings.nginx

    @property
    def channel(self) -> str:
        return self.settings.channel

    def _remove_existing(self, os_release: OsRelease) -> None:
        log_message(
            f"{self.symbols.get('info', 'ℹ️')} Removing existing NGINX packages...",
            "info",
            self.logger,
        )
        if os_release.id in DEBIAN_DISTROS:
            commands = [["apt-get", "remove", "-y", "nginx*"]]
        elif os_release.id == "fedora":
            commands = [["dnf", "remove", "-y", "nginx*"]]
        elif os_release.id in RPM_DISTROS:
            commands = [
                ["dnf", "remove", "-y", "nginx*"],
                ["yum", "remove", "-y", "nginx*"],
            ]
        else:
            raise UnsupportedPlatformError(
                f"Unknown distro for package removal: {os_release.id}"
            )

        for command in commands:
            if not command_exists(command[0]):
                continue
            result = run_elevated_command(
                command,
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
            )
            if result.returncode == 0:
                break

    def _remove_repo_files(self) -> None:
        for repo_file in (NGINX_YUM_REPO_PATH, NGINX_APT_LIST_PATH):
            path = Path(repo_file)
            if path.exists():
                path.unlink()
                self.logger.debug(f"Removed {path}")

    def _configure_apt_repo(self, os_release: OsRelease) -> None:
        codename = get_debian_codename(self.app_settings, self.logger)
        if not codename:
            raise UnsupportedPlatformError(
                "Cannot determine the release codename (lsb_release -cs)."
            )
        apt = AptManager(self.app_settings, self.logger)

        log_message(
            f"{self.symbols.get('info', 'ℹ️')} Importing NGINX signing key...",
            "info",
            self.logger,
        )
        keyring: Optional[str] = None
        if command_exists("gpg"):
            apt.add_gpg_key_from_url(
                self.settings.gpg_key_url, self.settings.keyring_path
            )
            keyring = self.settings.keyring_path
        else:
            apt.add_key_legacy(self.settings.gpg_key_url)

        apt.add_source_list(
            NGINX_APT_LIST_PATH,
            build_apt_source_lines(
                os_release.id,
                codename,
                self.channel,
                self.settings.packages_base_url,
                keyring,
            ),
        )

    def _configure_repo(self, os_release: OsRelease) -> None:
        log_message(
            f"{self.symbols.get('gear', '⚙️')} Configuring NGINX {self.channel} repository...",
            "info",
            self.logger,
        )
        if os_release.id in DEBIAN_DISTROS:
            self._configure_apt_repo(os_release)
        else:
            write_text_file(
                NGINX_YUM_REPO_PATH,
                build_yum_repo(
                    os_release,
                    self.channel,
                    self.settings.packages_base_url,
                    self.settings.gpg_key_url,
                ),
                0o644,
                self.logger,
            )

    def _rpm_fallback(self, args: list) -> None:
        """Run ``dnf <args>``, falling back to ``yum <args>``."""
        last_error: Optional[InstallerError] = None
        for binary in ("dnf", "yum"):
            if not command_exists(binary):
                continue
            try:
                run_elevated_command(
                    [binary] + args,
                    self.app_settings,
                    current_logger=self.logger,
                )
                return
            except InstallerError as e:
                last_error = e
        raise last_error or UnsupportedPlatformError(
            "Neither dnf nor yum is available."
        )

    def _install_package(self, os_release: OsRelease) -> None:
        log_message(
            f"{self.symbols.get('info', 'ℹ️')} Updating package cache / repo metadata...",
            "info",
            self.logger,
        )
        if os_release.id in DEBIAN_DISTROS:
            apt = AptManager(self.app_settings, self.logger)
            apt.update()
            log_message(
                f"{self.symbols.get('package', '📦')} Installing NGINX {self.channel}...",
                "info",
                self.logger,
            )
            apt.install("nginx")
        else:
            self._rpm_fallback(["clean", "all"])
            log_message(
                f"{self.symbols.get('package', '📦')} Installing NGINX {self.channel}...",
                "info",
                self.logger,
            )
            self._rpm_fallback(["install", "-y", "nginx"])

    def installed_version(self) -> Optional[str]:
        return parse_nginx_version(
            binary_version_output(["nginx", "-v"], self.app_settings, self.logger)
        )

    def _check_version(self) -> str:
        installed = self.installed_version()
        expected = self.settings.expected_version()
        log_message(
            f"{self.symbols.get('info', 'ℹ️')} Detected NGINX version: {installed}",
            "info",
            self.logger,
        )
        if not installed or not (
            installed == expected or installed.startswith(f"{expected}.")
        ):
            raise InstallerError(
                f"Expected a {expected}.x version but got: {installed}"
            )
        return installed

    def install(self) -> bool:
        """
        Install NGINX from the configured channel.
        """
        try:
            require_root()
            os_release = read_os_release()
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Detected distribution: {os_release.id} {os_release.version_id}",
                "info",
                self.logger,
            )
            if os_release.id not in DEBIAN_DISTROS + RPM_DISTROS:
                raise UnsupportedPlatformError(
                    f"No repo configuration for distro: {os_release.id}"
                )

            self._remove_existing(os_release)
            self._remove_repo_files()
            self._configure_repo(os_release)
            self._install_package(os_release)
            self.installed_by_run = True
            self._check_version()

            log_message(
                f"{self.symbols.get('success', '✅')} NGINX {self.channel} installation completed successfully!",
                "success",
                self.logger,
            )
            log_message(
                "Start NGINX with: sudo systemctl start nginx (or run 'nginx' manually).",
                "info",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} NGINX installation failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        try:
            require_root()
            os_release = read_os_release()
            self._remove_existing(os_release)
            self._remove_repo_files()
            log_message(
                f"{self.symbols.get('success', '✅')} NGINX package and repository removed.",
                "success",
                self.logger,
            )
            return True
        except InstallerError as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error uninstalling NGINX: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        return command_exists("nginx")

    def verify(self) -> bool:
        if not self.is_installed():
            self.logger.warning("nginx binary not found.")
            return False
        try:
            self._check_version()
        except InstallerError as e:
            self.logger.warning(str(e))
            return False
        return True

    def status_summary(self) -> str:
        version = self.installed_version() if self.is_installed() else None
        return f"installed ({version})" if version else "not installed"

