"""
Ansible installer.

Installs Ansible into a Python virtual environment, building Python from
source when no suitable interpreter is available, links the Ansible tools
into /usr/local/bin and writes a global ansible.cfg.
"""

import datetime
import logging
import os
import platform
import shutil
from pathlib import Path
from typing import List, Optional

from common.command_utils import (
    command_exists,
    log_message,
    run_command,
    run_logged,
)
from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UnsupportedPlatformError
from common.file_utils import link_binary, remove_path, write_text_file
from common.logging_config import add_file_handler, remove_handler
from common.network_utils import (
    download_file,
    extract_tarball,
    sha256sum,
    verify_sha256,
)
from common.orchestrator import Orchestrator
from common.system_utils import cpu_count_for_build, require_root
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings
from settings.constants import (
    ANSIBLE_APT_DEPS,
    ANSIBLE_PIP_PACKAGES,
    ANSIBLE_RPM_DEPS,
    ANSIBLE_TOOLS,
    ANSIBLE_WINRM_PIP_PACKAGES,
    DEADSNAKES_PPA,
    PYTHON_SOURCE_URL_TEMPLATE,
)
from settings.templates import ANSIBLE_CFG_TEMPLATE

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def detect_ansible_package_manager() -> str:
    for name in ("apt", "dnf", "yum"):
        if command_exists(name):
            return name
    raise UnsupportedPlatformError("Unsupported package manager. Exiting.")


def major_minor(version: str) -> str:
    """``3.13.2`` -> ``3.13``."""
    return ".".join(version.split(".")[:2])


@InstallerRegistry.register(
    name="ansible",
    metadata={
        "dependencies": [],
        "estimated_time": 600,
        "description": "Ansible in a Python virtual environment with global tool symlinks",
        "platform": "linux",
        "aliases": ["ansible-venv"],
    },
)
class AnsibleInstaller(BaseInstaller):
    """
    Installs Ansible into ``venv_dir``.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings = app_settings.ansible
        self.venv_dir = Path(self.settings.venv_dir)
        self.log_file = str(
            Path(self.settings.log_dir)
            / f"ansible_install_{datetime.datetime.now():%Y%m%d_%H%M%S}.log"
        )
        self.pkg_manager: Optional[str] = None
        self.python_cmd: Optional[str] = None

    @property
    def tarball_name(self) -> str:
        return f"Python-{self.settings.build_python_version}.tgz"

    @property
    def python_source_dir(self) -> Path:
        return Path(self.settings.source_root) / (
            f"Python-{self.settings.build_python_version}"
        )

    @property
    def built_python_path(self) -> Path:
        return Path(
            f"/usr/local/bin/python{major_minor(self.settings.build_python_version)}"
        )

    @property
    def config_file(self) -> Path:
        return Path(self.settings.config_dir) / "ansible.cfg"

    def _logged(self, command: List[str], cwd: Optional[str] = None) -> int:
        log_message(
            f"Executing (output to log only): {' '.join(command)}",
            "info",
            self.logger,
        )
        env = APT_ENV if self.pkg_manager == "apt" else None
        return run_logged(command, self.log_file, self.logger, cwd=cwd, env=env)

    def update_system(self) -> None:
        log_message("Updating system packages (output in log)...", "warning", self.logger)
        if self.pkg_manager == "apt":
            self._logged(["apt", "update", "-y"])
            self._logged(["apt", "upgrade", "-y"])
        elif self.pkg_manager == "dnf":
            self._logged(["dnf", "upgrade", "-y"])
        else:
            self._logged(["yum", "update", "-y"])

    def dependency_list(self) -> List[str]:
        if self.pkg_manager != "apt":
            return list(ANSIBLE_RPM_DEPS)
        deps = list(ANSIBLE_APT_DEPS)
        if AptManager(self.app_settings, self.logger).package_available(
            "libmpdec-dev"
        ):
            deps.append("libmpdec-dev")
        return deps

    def install_dependencies(self) -> None:
        log_message("Installing system dependencies...", "info", self.logger)
        self._logged([self.pkg_manager, "install", "-y"] + self.dependency_list())

    def _install_from_ppa(self) -> None:
        version = self.settings.req_python_version
        log_message(
            f"Attempting to install Python {version} via deadsnakes PPA...",
            "info",
            self.logger,
        )
        if not command_exists("add-apt-repository"):
            log_message(
                "Command 'add-apt-repository' not found. Skipping PPA method.",
                "warning",
                self.logger,
            )
            return
        try:
            self._logged(["add-apt-repository", "-y", DEADSNAKES_PPA])
        except InstallerError:
            log_message(
                "Could not add deadsnakes PPA. Proceeding without it.",
                "warning",
                self.logger,
            )
        self._logged(["apt", "update", "-y"])
        try:
            self._logged(
                ["apt", "install", "-y", f"python{version}", f"python{version}-venv"]
            )
        except InstallerError:
            log_message(
                f"Failed to install python{version} from PPA.",
                "warning",
                self.logger,
            )

    def _fetch_python_tarball(self) -> Path:
        expected = self.settings.build_python_sha256
        if not expected:
            raise InstallerError(
                "BUILD_PYTHON_SHA256 must be set to build Python from source."
            )
        tarball = Path(self.settings.source_root) / self.tarball_name
        if tarball.is_file() and sha256sum(tarball) == expected.strip().lower():
            log_message(
                f"Tarball {tarball.name} exists and checksum is valid.",
                "info",
                self.logger,
            )
            return tarball

        log_message(
            f"Downloading Python {self.settings.build_python_version} tarball...",
            "warning",
            self.logger,
        )
        remove_path(tarball, self.logger)
        download_file(
            PYTHON_SOURCE_URL_TEMPLATE.format(
                version=self.settings.build_python_version
            ),
            tarball,
            self.app_settings,
            current_logger=self.logger,
        )
        verify_sha256(tarball, expected, self.logger)
        return tarball

    def build_python(self) -> str:
        """
        Build ``BUILD_PYTHON_VERSION`` with ``make altinstall``.

        Returns:
            Path of the installed interpreter.

        Raises:
            ChecksumMismatchError: The downloaded tarball has the wrong digest.
            InstallerError: The build did not produce the interpreter.
        """
        target = self.built_python_path
        if os.access(target, os.X_OK) and not self.settings.force_build:
            log_message(
                f"Python {self.settings.build_python_version} already exists at {target}.",
                "info",
                self.logger,
            )
            return str(target)

        tarball = self._fetch_python_tarball()
        if self.python_source_dir.is_dir():
            log_message(
                f"Removing existing source directory: {self.python_source_dir}",
                "info",
                self.logger,
            )
            shutil.rmtree(self.python_source_dir)
        log_message("Extracting Python source...", "info", self.logger)
        extract_tarball(tarball, self.settings.source_root, self.logger)

        source_dir = str(self.python_source_dir)
        log_message("Configuring Python build...", "info", self.logger)
        self._logged(
            [
                "./configure",
                "--enable-optimizations",
                "--with-system-libmpdec",
                "--prefix=/usr/local",
            ],
            cwd=source_dir,
        )
        log_message(
            f"Building Python {self.settings.build_python_version} (this may take several minutes)...",
            "info",
            self.logger,
        )
        self._logged(["make", f"-j{cpu_count_for_build()}"], cwd=source_dir)
        log_message("Installing Python using altinstall...", "info", self.logger)
        self._logged(["make", "altinstall"], cwd=source_dir)

        if not os.access(target, os.X_OK):
            raise InstallerError("Python build/installation failed. Aborting.")
        log_message(
            f"Python {self.settings.build_python_version} installed successfully.",
            "info",
            self.logger,
        )
        return str(target)

    def select_python(self) -> str:
        """
        Find or provide the interpreter for the virtual environment.

        Order: ``python<REQ>`` in PATH, the deadsnakes PPA (apt only, unless
        FORCE_BUILD), then a source build (unless SKIP_BUILD).
        """
        req_cmd = f"python{self.settings.req_python_version}"
        log_message(
            f"Searching for Python {self.settings.req_python_version}...",
            "info",
            self.logger,
        )
        python_cmd: Optional[str] = None
        if command_exists(req_cmd):
            python_cmd = req_cmd
            log_message(f"Found system Python: {python_cmd}", "info", self.logger)
        elif self.pkg_manager == "apt" and not self.settings.force_build:
            self._install_from_ppa()
            if command_exists(req_cmd):
                python_cmd = req_cmd
                log_message(
                    f"Successfully installed Python from PPA: {python_cmd}",
                    "info",
                    self.logger,
                )
            else:
                log_message(
                    f"Python {self.settings.req_python_version} not found via system or PPA.",
                    "info",
                    self.logger,
                )

        if not python_cmd:
            if self.settings.skip_build:
                raise InstallerError(
                    f"Could not find or install a suitable Python version "
                    f"({self.settings.req_python_version} or {self.settings.build_python_version}). Aborting."
                )
            log_message(
                f"No suitable Python found. Building Python {self.settings.build_python_version} from source.",
                "info",
                self.logger,
            )
            python_cmd = self.build_python()

        if not (command_exists(python_cmd) or os.access(python_cmd, os.X_OK)):
            raise InstallerError(
                f"Unable to determine a working Python command ('{python_cmd}'). Aborting."
            )
        log_message(f"Using Python command: {python_cmd}", "info", self.logger)
        self.python_cmd = python_cmd
        return python_cmd

    def create_venv(self) -> None:
        if self.venv_dir.is_dir():
            log_message(
                f"Virtual environment already exists at {self.venv_dir}. Skipping creation.",
                "info",
                self.logger,
            )
            return
        log_message(
            f"Creating virtual environment at {self.venv_dir} using {self.python_cmd}...",
            "info",
            self.logger,
        )
        self.venv_dir.parent.mkdir(parents=True, exist_ok=True)
        self._logged([self.python_cmd, "-m", "venv", str(self.venv_dir)])

    def install_ansible(self) -> None:
        pip = self.venv_dir / "bin" / "pip"
        if not pip.exists():
            raise InstallerError(
                f"pip not found in virtual environment {self.venv_dir}."
            )
        self._logged([str(pip), "install", "--upgrade", "pip", "setuptools", "wheel"])
        self._logged([str(pip), "install"] + ANSIBLE_PIP_PACKAGES)
        if self.settings.install_winrm_support:
            self._logged([str(pip), "install"] + ANSIBLE_WINRM_PIP_PACKAGES)

    def link_tools(self) -> List[str]:
        """Symlink the Ansible tools; missing ones are skipped with a warning."""
        log_message(
            f"Creating global symlinks for Ansible tools in {self.settings.symlink_dir}...",
            "info",
            self.logger,
        )
        linked = []
        for tool in ANSIBLE_TOOLS:
            try:
                link_binary(
                    self.venv_dir / "bin" / tool,
                    Path(self.settings.symlink_dir) / tool,
                    self.logger,
                )
                linked.append(tool)
            except InstallerError:
                log_message(
                    f"Executable {tool} not found in {self.venv_dir}/bin. Skipping symlink.",
                    "warning",
                    self.logger,
                )
        return linked

    def venv_site_packages(self) -> Path:
        result = run_command(
            [
                str(self.venv_dir / "bin" / "python"),
                "-c",
                "import site; print(site.getsitepackages()[0])",
            ],
            self.app_settings,
            capture_output=True,
            current_logger=self.logger,
        )
        site_packages = Path(result.stdout.strip())
        if not result.stdout.strip() or not site_packages.is_dir():
            raise InstallerError(
                "Unable to determine the site-packages directory within the virtual environment!"
            )
        return site_packages

    def write_config(self) -> Path:
        log_message("Configuring global Ansible settings...", "info", self.logger)
        collections = self.venv_site_packages() / "ansible_collections"
        write_text_file(
            self.config_file,
            ANSIBLE_CFG_TEMPLATE.format(venv_collections_path=collections),
            0o644,
            self.logger,
        )
        log_message(
            f"{self.symbols.get('success', '✅')} Updated global Ansible configuration at {self.config_file}.",
            "success",
            self.logger,
        )
        return self.config_file

    def cleanup_source(self) -> None:
        if not self.settings.cleanup_source or not self.python_source_dir.is_dir():
            return
        log_message("Cleaning up Python source files...", "info", self.logger)
        remove_path(self.python_source_dir, self.logger)
        remove_path(Path(self.settings.source_root) / self.tarball_name, self.logger)

    def _first_line(self, command: List[str], default: str) -> str:
        try:
            result = run_command(
                command,
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            )
        except InstallerError:
            return default
        lines = f"{result.stdout}{result.stderr}".strip().splitlines()
        return lines[0] if lines else default

    def show_summary(self) -> None:
        python_version = self._first_line([self.python_cmd, "--version"], "N/A")
        ansible_version = self._first_line(["ansible", "--version"], "N/A")
        config_info = "Config file not reported"
        try:
            output = run_command(
                ["ansible", "--version"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            ).stdout
            for line in output.splitlines():
                if "config file" in line:
                    config_info = line.strip()
                    break
        except InstallerError:
            self.logger.debug("ansible --version failed; config file unknown.")

        log_message(
            f"{self.symbols.get('success', '✅')} Ansible installation completed successfully!",
            "success",
            self.logger,
        )
        for label, value in (
            ("Python Used", f"{self.python_cmd} ({python_version})"),
            ("Ansible Version", ansible_version),
            ("Ansible Config", config_info),
            ("Virtual Environment", str(self.venv_dir)),
            ("To activate manually", f"source {self.venv_dir}/bin/activate"),
            (
                "To uninstall (basic)",
                f"sudo rm -rf {self.venv_dir} {self.settings.symlink_dir}/ansible* {self.settings.config_dir}",
            ),
            ("Log File", self.log_file),
            ("System", " ".join(platform.uname())),
        ):
            log_message(f"{label + ':':<25} {value}", "info", self.logger)

    def install(self) -> bool:
        handler = None
        try:
            require_root()
            handler = add_file_handler(self.log_file)
            self.pkg_manager = detect_ansible_package_manager()
            log_message(
                f"Using package manager: {self.pkg_manager}", "info", self.logger
            )

            steps = Orchestrator(self.app_settings, self.logger)
            steps.add_task("Update system packages", self.update_system)
            steps.add_task("Install system dependencies", self.install_dependencies)
            steps.add_task("Determine suitable Python", self.select_python)
            steps.add_task("Create virtual environment", self.create_venv)
            steps.add_task("Install Ansible", self.install_ansible)
            steps.add_task("Link Ansible tools", self.link_tools)
            steps.add_task("Write ansible.cfg", self.write_config)
            steps.add_task("Clean up Python source", self.cleanup_source, fatal=False)
            steps.run()

            self.installed_by_run = True
            self.show_summary()
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Ansible installation failed: {e}. Check log: {self.log_file}",
                "error",
                self.logger,
            )
            return False
        finally:
            if handler:
                remove_handler(handler)

    def uninstall(self) -> bool:
        try:
            require_root()
            for tool in ANSIBLE_TOOLS:
                link = Path(self.settings.symlink_dir) / tool
                if link.is_symlink():
                    link.unlink()
            remove_path(self.venv_dir, self.logger)
            remove_path(self.config_file, self.logger)
            log_message(
                f"{self.symbols.get('success', '✅')} Ansible virtual environment, symlinks and {self.config_file} removed.",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error uninstalling Ansible: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        return (self.venv_dir / "bin" / "ansible").exists()

    def verify(self) -> bool:
        try:
            result = run_command(
                ["ansible", "--version"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
            )
        except InstallerError:
            self.logger.warning("'ansible --version' failed.")
            return False
        lines = result.stdout.strip().splitlines()
        if lines:
            self.logger.info(lines[0])
        return True
