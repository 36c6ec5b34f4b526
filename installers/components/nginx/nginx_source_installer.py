"""
NGINX source installer.

Compiles NGINX with HTTP/3 support and installs it as a systemd service.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from common.command_utils import (
    command_exists,
    log_message,
    run_command,
    run_elevated_command,
)
from common.errors import InstallerError
from common.file_utils import (
    remove_path,
    temporary_build_dir,
    write_text_file,
)
from common.network_utils import download_file, extract_tarball
from common.orchestrator import Orchestrator
from common.package_manager import get_package_manager
from common.redhat.dnf_manager import DnfManager
from common.system_utils import (
    binary_version_output,
    cpu_count_for_build,
    enable_service,
    require_root,
    start_service,
    stop_service,
    systemd_reload,
)
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings, NginxSourceSettings
from settings.constants import NGINX_CACHE_SUBDIRS, NGINX_SOURCE_BUILD_DEPS
from settings.templates import NGINX_INDEX_HTML_TEMPLATE

from .nginx_installer import parse_nginx_version


def build_configure_args(settings: NginxSourceSettings) -> List[str]:
    """Arguments for ``./configure``: paths first, then module flags."""
    cache = settings.cache_dir
    return [
        f"--prefix={settings.prefix}",
        f"--sbin-path={settings.sbin_path}",
        f"--conf-path={settings.conf_path}",
        f"--error-log-path={settings.error_log_path}",
        f"--http-log-path={settings.http_log_path}",
        f"--pid-path={settings.pid_path}",
        f"--lock-path={settings.lock_path}",
        f"--http-client-body-temp-path={cache}/client_temp",
        f"--http-proxy-temp-path={cache}/proxy_temp",
        f"--http-fastcgi-temp-path={cache}/fastcgi_temp",
        f"--http-uwsgi-temp-path={cache}/uwsgi_temp",
        f"--http-scgi-temp-path={cache}/scgi_temp",
        f"--user={settings.user}",
        f"--group={settings.group}",
    ] + list(settings.configure_flags)


@InstallerRegistry.register(
    name="nginx-source",
    metadata={
        "dependencies": [],
        "estimated_time": 600,
        "description": "NGINX compiled from source with HTTP/3 and a systemd unit",
        "platform": "linux",
        "aliases": ["nginx-http3"],
    },
)
class NginxSourceInstaller(BaseInstaller):
    """
    Builds NGINX from the nginx.org source tarball.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings = app_settings.nginx_source
        self.source_dir: Optional[Path] = None

    @property
    def build_dir(self) -> Path:
        return Path(
            self.settings.build_dir or f"/tmp/nginx-build-{os.getpid()}"
        )

    @property
    def tarball_name(self) -> str:
        return f"nginx-{self.settings.version}.tar.gz"

    def remove_packaged_nginx(self) -> None:
        stop_service("nginx", self.app_settings, self.logger)
        for command in (
            ["dnf", "remove", "-y", "nginx", "nginx-*"],
            ["apt-get", "remove", "-y", "nginx", "nginx-common"],
        ):
            if command_exists(command[0]):
                run_elevated_command(
                    command,
                    self.app_settings,
                    check=False,
                    capture_output=True,
                    current_logger=self.logger,
                )
                break

    def install_build_dependencies(self) -> None:
        manager = get_package_manager(self.app_settings, self.logger)
        if isinstance(manager, DnfManager):
            manager.group_install("Development Tools")
            manager.install(NGINX_SOURCE_BUILD_DEPS["redhat"])
        elif manager.family == "debian":
            manager.update()
            manager.install(NGINX_SOURCE_BUILD_DEPS["debian"])
        else:
            manager.install(NGINX_SOURCE_BUILD_DEPS["redhat"])

    def download_source(self, build_dir: Path) -> Path:
        base = self.settings.download_base_url.rstrip("/")
        archive = download_file(
            f"{base}/{self.tarball_name}",
            build_dir / self.tarball_name,
            self.app_settings,
            current_logger=self.logger,
        )
        download_file(
            f"{base}/{self.tarball_name}.asc",
            build_dir / f"{self.tarball_name}.asc",
            self.app_settings,
            current_logger=self.logger,
        )
        extract_tarball(archive, build_dir, self.logger)
        self.source_dir = build_dir / f"nginx-{self.settings.version}"
        return self.source_dir

    def compile_and_install(self) -> None:
        source_dir = self.source_dir
        log_message(
            f"{self.symbols.get('gear', '⚙️')} Configuring build with HTTP/3 and modern modules...",
            "info",
            self.logger,
        )
        run_command(
            ["./configure"] + build_configure_args(self.settings),
            self.app_settings,
            cwd=str(source_dir),
            current_logger=self.logger,
        )
        log_message(
            "Building nginx (this may take several minutes)...",
            "info",
            self.logger,
        )
        run_command(
            ["make", f"-j{cpu_count_for_build()}"],
            self.app_settings,
            cwd=str(source_dir),
            current_logger=self.logger,
        )
        run_elevated_command(
            ["make", "install"],
            self.app_settings,
            cwd=str(source_dir),
            current_logger=self.logger,
        )

    def create_user_and_directories(self) -> None:
        s = self.settings
        # useradd fails when the user exists
        run_elevated_command(
            [
                "useradd",
                "--system",
                "--home",
                s.cache_dir,
                "--shell",
                "/sbin/nologin",
                "--comment",
                "nginx user",
                "--user-group",
                s.user,
            ],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        for subdir in NGINX_CACHE_SUBDIRS:
            Path(s.cache_dir, subdir).mkdir(parents=True, exist_ok=True)
        Path(s.log_dir).mkdir(parents=True, exist_ok=True)
        conf_dir = Path(s.conf_path).parent
        for subdir in ("conf.d", "snippets"):
            (conf_dir / subdir).mkdir(parents=True, exist_ok=True)

        run_elevated_command(
            ["chown", "-R", f"{s.user}:{s.group}", s.cache_dir, s.log_dir],
            self.app_settings,
            current_logger=self.logger,
        )
        os.chmod(s.cache_dir, 0o755)
        os.chmod(s.log_dir, 0o755)

    def write_configuration(self) -> None:
        s = self.settings
        write_text_file(
            s.systemd_unit_path,
            s.systemd_unit_template.format(
                pid_path=s.pid_path, sbin_path=s.sbin_path
            ),
            0o644,
            self.logger,
        )
        if not Path(s.conf_path).exists():
            log_message("Creating basic nginx.conf...", "info", self.logger)
            write_text_file(s.conf_path, s.nginx_conf, 0o644, self.logger)
        else:
            self.logger.info(f"Keeping existing {s.conf_path}")
        write_text_file(
            Path(s.web_root) / "index.html",
            NGINX_INDEX_HTML_TEMPLATE.format(version=s.version),
            0o644,
            self.logger,
        )

    def enable_and_start(self) -> None:
        systemd_reload(self.app_settings, self.logger)
        enable_service("nginx", self.app_settings, self.logger)
        log_message("Testing nginx configuration...", "info", self.logger)
        run_elevated_command(
            [self.settings.sbin_path, "-t"],
            self.app_settings,
            current_logger=self.logger,
        )
        start_service("nginx", self.app_settings, self.logger)

    def has_http3(self) -> bool:
        output = binary_version_output(
            [self.settings.sbin_path, "-V"], self.app_settings, self.logger
        )
        return bool(output) and "http_v3_module" in output

    def report(self) -> None:
        version = parse_nginx_version(
            binary_version_output(
                [self.settings.sbin_path, "-v"], self.app_settings, self.logger
            )
        )
        log_message(
            f"{self.symbols.get('success', '✅')} Nginx {self.settings.version} installation completed!",
            "success",
            self.logger,
        )
        log_message(f"Installed version: {version}", "info", self.logger)
        if self.has_http3():
            log_message(
                f"{self.symbols.get('success', '✅')} HTTP/3 support available",
                "success",
                self.logger,
            )
        else:
            log_message(
                f"{self.symbols.get('error', '❌')} HTTP/3 support not available",
                "error",
                self.logger,
            )
        log_message(
            f"Nginx is running and enabled for startup. Configuration files are in {Path(self.settings.conf_path).parent}/",
            "info",
            self.logger,
        )

    def install(self) -> bool:
        try:
            require_root()
            log_message(
                f"{self.symbols.get('rocket', '🚀')} Installing Nginx {self.settings.version} from source with HTTP/3",
                "info",
                self.logger,
            )
            with temporary_build_dir(
                self.build_dir, current_logger=self.logger
            ) as build_dir:
                steps = Orchestrator(self.app_settings, self.logger)
                steps.add_task(
                    "Remove existing nginx", self.remove_packaged_nginx, fatal=False
                )
                steps.add_task(
                    "Install build dependencies", self.install_build_dependencies
                )
                steps.add_task(
                    "Download nginx source", self.download_source, args=[build_dir]
                )
                steps.add_task("Compile and install", self.compile_and_install)
                steps.add_task(
                    "Create nginx user and directories",
                    self.create_user_and_directories,
                )
                steps.add_task("Write configuration", self.write_configuration)
                steps.add_task("Enable and start service", self.enable_and_start)
                steps.run()

            self.installed_by_run = True
            self.report()
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} NGINX source installation failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        try:
            require_root()
            stop_service("nginx", self.app_settings, self.logger, disable=True)
            for path in (
                self.settings.systemd_unit_path,
                self.settings.sbin_path,
                self.settings.prefix,
            ):
                remove_path(path, self.logger)
            systemd_reload(self.app_settings, self.logger)
            log_message(
                f"{self.symbols.get('success', '✅')} Source-built NGINX removed. {Path(self.settings.conf_path).parent} was kept.",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error uninstalling NGINX: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        return Path(self.settings.sbin_path).exists() and Path(
            self.settings.systemd_unit_path
        ).exists()

    def verify(self) -> bool:
        if not Path(self.settings.systemd_unit_path).exists():
            self.logger.warning(
                f"Service unit {self.settings.systemd_unit_path} not found."
            )
            return False
        if not self.has_http3():
            self.logger.warning("nginx -V does not list http_v3_module.")
            return False
        return True
