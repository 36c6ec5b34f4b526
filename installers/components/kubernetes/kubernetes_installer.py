"""
kubectl installer, with optional minikube.

kubectl comes from the pkgs.k8s.io repositories (apt, yum/dnf, zypper), or
from snap or Homebrew when none of those is available.
"""

import logging
import os
import platform
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.command_utils import (
    command_exists,
    confirm,
    log_message,
    run_command,
    run_elevated_command,
)
from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UnsupportedPlatformError
from common.file_utils import remove_path
from common.network_utils import download_file
from common.redhat.dnf_manager import DnfManager
from common.suse.zypper_manager import ZypperManager
from common.system_utils import get_machine_architecture, require_root
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings, KubernetesSettings
from settings.constants import (
    KUBERNETES_APT_KEYRING,
    KUBERNETES_APT_LIST_PATH,
    KUBERNETES_APT_PREREQS,
    KUBERNETES_REPO_NAME,
    MINIKUBE_ARCH_MAP,
    MINIKUBE_DOWNLOAD_BASE_URL,
)
from settings.templates import KUBERNETES_REPO_TEMPLATE


def build_kubernetes_repo(baseurl: str, with_exclude: bool) -> str:
    """
    Render the kubernetes ``.repo`` file. The yum/dnf variant excludes
    ``kube*`` and checks the repository signature; the zypper one does not.
    """
    return KUBERNETES_REPO_TEMPLATE.format(
        baseurl=baseurl,
        repo_gpgcheck="repo_gpgcheck=1\n" if with_exclude else "",
        exclude="exclude=kube*\n" if with_exclude else "",
    )


def minikube_asset(system: str, machine: str) -> str:
    """
    Raises:
        UnsupportedPlatformError: No minikube build for this OS/architecture.
    """
    if system != "Linux":
        raise UnsupportedPlatformError(
            f"minikube installation is not supported on {system} by this installer."
        )
    arch = MINIKUBE_ARCH_MAP.get(machine)
    if not arch:
        raise UnsupportedPlatformError(f"Unsupported architecture: {machine}")
    return f"minikube-linux-{arch}"


@InstallerRegistry.register(
    name="kubernetes",
    metadata={
        "dependencies": [],
        "estimated_time": 180,
        "description": "kubectl from pkgs.k8s.io, optionally minikube",
        "platform": "linux",
        "aliases": ["kubectl", "k8s"],
    },
)
class KubernetesInstaller(BaseInstaller):
    """
    Installs kubectl and, when requested, minikube.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings: KubernetesSettings = app_settings.kubernetes
        self.kubectl_installed_by_run = False

    def _install_apt(self) -> None:
        log_message(
            "APT-based system detected. Installing kubectl using apt-get...",
            "info",
            self.logger,
        )
        apt = AptManager(self.app_settings, self.logger)
        apt.update()
        apt.install(KUBERNETES_APT_PREREQS)
        apt.add_gpg_key_from_url(
            f"{self.settings.apt_base_url}Release.key", KUBERNETES_APT_KEYRING
        )
        apt.add_source_list(
            KUBERNETES_APT_LIST_PATH,
            f"deb [signed-by={KUBERNETES_APT_KEYRING}] {self.settings.apt_base_url} /",
        )
        apt.update()
        apt.install("kubectl")

    def _install_rpm(self) -> None:
        log_message(
            "YUM/DNF-based system detected. Installing kubectl using yum/dnf...",
            "info",
            self.logger,
        )
        dnf = DnfManager(self.app_settings, self.logger)
        dnf.write_repo_file(
            KUBERNETES_REPO_NAME,
            build_kubernetes_repo(self.settings.rpm_base_url, with_exclude=True),
        )
        dnf.install(
            "kubectl", extra_args=["--disableexcludes=kubernetes"]
        )

    def _install_zypper(self) -> None:
        log_message(
            "zypper-based system detected. Installing kubectl using zypper...",
            "info",
            self.logger,
        )
        zypper = ZypperManager(self.app_settings, self.logger)
        zypper.write_repo_file(
            KUBERNETES_REPO_NAME,
            build_kubernetes_repo(self.settings.rpm_base_url, with_exclude=False),
        )
        zypper.update()
        zypper.install("kubectl")

    def install_kubectl(self) -> None:
        if command_exists("apt-get"):
            self._install_apt()
        elif command_exists("yum") or command_exists("dnf"):
            self._install_rpm()
        elif command_exists("zypper"):
            self._install_zypper()
        elif command_exists("snap"):
            log_message(
                "snap package manager detected. Installing kubectl using snap...",
                "info",
                self.logger,
            )
            run_elevated_command(
                ["snap", "install", "kubectl", "--classic"],
                self.app_settings,
                current_logger=self.logger,
            )
        elif command_exists("brew"):
            log_message(
                "Homebrew detected. Installing kubectl using Homebrew...",
                "info",
                self.logger,
            )
            run_command(
                ["brew", "install", "kubectl"],
                self.app_settings,
                current_logger=self.logger,
            )
        else:
            raise UnsupportedPlatformError(
                "No supported package manager found. Supported methods: apt, yum/dnf, zypper, snap, or Homebrew."
            )
        log_message(
            f"{self.symbols.get('success', '✅')} kubectl installation completed successfully!",
            "success",
            self.logger,
        )
        log_message(
            "Verify the installation with: kubectl version --client",
            "info",
            self.logger,
        )
        log_message(
            "If you have a Kubernetes cluster configured, check connectivity with: kubectl cluster-info",
            "info",
            self.logger,
        )

    def wants_minikube(self) -> bool:
        if self.settings.install_minikube is not None:
            return self.settings.install_minikube
        return confirm(
            "Do you want to install minikube as well?",
            self.app_settings.confirm,
            self.logger,
        )

    def install_minikube(self) -> Path:
        log_message("Installing minikube...", "info", self.logger)
        asset = minikube_asset(platform.system(), get_machine_architecture())
        destination = Path(self.settings.minikube_path)
        with tempfile.TemporaryDirectory() as tmp_dir:
            downloaded = download_file(
                f"{MINIKUBE_DOWNLOAD_BASE_URL}/{asset}",
                Path(tmp_dir) / asset,
                self.app_settings,
                current_logger=self.logger,
            )
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(downloaded, destination)
        os.chmod(destination, 0o755)
        log_message(
            f"{self.symbols.get('success', '✅')} minikube installed to {destination}",
            "success",
            self.logger,
        )
        return destination

    def install(self) -> bool:
        try:
            require_root()
            if command_exists("kubectl"):
                log_message(
                    "kubectl is already installed. Skipping installation.",
                    "warning",
                    self.logger,
                )
            else:
                self.install_kubectl()
                self.kubectl_installed_by_run = True
                self.installed_by_run = True

            if self.wants_minikube():
                self.install_minikube()
                self.installed_by_run = True
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Kubernetes tooling installation failed: {e}",
                "error",
                self.logger,
            )
            return False

    def rollback(self) -> bool:
        if self.installed_by_run and not self.kubectl_installed_by_run:
            # Only minikube is ours; kubectl was already there.
            try:
                remove_path(self.settings.minikube_path, self.logger)
            except OSError as e:
                self.logger.error(f"Could not remove minikube: {e}")
                return False
            return True
        return super().rollback()

    def uninstall(self) -> bool:
        try:
            require_root()
            if command_exists("apt-get"):
                AptManager(self.app_settings, self.logger).remove("kubectl")
                remove_path(KUBERNETES_APT_LIST_PATH, self.logger)
                remove_path(KUBERNETES_APT_KEYRING, self.logger)
            elif command_exists("yum") or command_exists("dnf"):
                dnf = DnfManager(self.app_settings, self.logger)
                dnf.remove("kubectl")
                dnf.remove_repo_file(KUBERNETES_REPO_NAME)
            elif command_exists("zypper"):
                zypper = ZypperManager(self.app_settings, self.logger)
                zypper.remove("kubectl")
                zypper.remove_repo_file(KUBERNETES_REPO_NAME)
            elif command_exists("snap"):
                run_elevated_command(
                    ["snap", "remove", "kubectl"],
                    self.app_settings,
                    current_logger=self.logger,
                )
            elif command_exists("brew"):
                run_command(
                    ["brew", "uninstall", "kubectl"],
                    self.app_settings,
                    current_logger=self.logger,
                )
            remove_path(self.settings.minikube_path, self.logger)
            log_message(
                f"{self.symbols.get('success', '✅')} kubectl and minikube removed.",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error uninstalling Kubernetes tooling: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        return command_exists("kubectl")

    def verify(self) -> bool:
        try:
            result = run_command(
                ["kubectl", "version", "--client"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            )
        except InstallerError:
            self.logger.warning("'kubectl version --client' failed.")
            return False
        self.logger.info(result.stdout.strip())
        return True

    def status_summary(self) -> str:
        parts = ["kubectl installed" if self.is_installed() else "kubectl not installed"]
        if Path(self.settings.minikube_path).exists():
            parts.append("minikube installed")
        return ", ".join(parts)
