"""
OpenSSL + OpenSSH source installer.

Builds OpenSSL and OpenSSH from source, links the binaries over the system
ones, writes a hardened configuration and schedules a reboot. The system
packages are excluded (dnf/yum) or held (apt) so that updates do not
overwrite the custom build.
"""

import datetime
import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from common.command_utils import (
    command_exists,
    confirm,
    log_message,
    prompt_text,
    run_command,
    run_logged,
    run_with_spinner,
)
from common.debian.apt_manager import AptManager
from common.errors import InstallerError, UserAbort
from common.file_utils import (
    backup_paths,
    link_binary,
    remove_path,
    temporary_build_dir,
    timestamp,
    write_text_file,
)
from common.network_utils import download_file, extract_tarball
from common.orchestrator import Orchestrator
from common.package_manager import (
    detect_package_manager,
    generic_pkg_action,
    get_package_manager,
)
from common.redhat.dnf_manager import DnfManager
from common.system_utils import (
    binary_version_output,
    cpu_count_for_build,
    in_ssh_session,
    require_root,
)
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings
from settings.constants import (
    EXCLUDED_SSL_SSH_PACKAGES,
    OPENSSH_BUILD_DEPS,
    OPENSSH_CLIENT_BINARIES,
    OPENSSH_REQUIRED_TOOLS,
    OPENSSH_SOURCE_URL_TEMPLATE,
    OPENSSL_SOURCE_URL_TEMPLATE,
    PRIVSEP_PATH,
    SSH_RISK_CONFIRMATION,
    SSH_SSL_BACKUP_ITEMS,
    SYSTEM_SSL_SSH_PACKAGES,
)
from settings.templates import OPENSSL_LDCONFIG_TEMPLATE

from .reboot import prepare_reboot
from .ssh_config import write_hardened_config

LD_SO_CONF_DIR = "/etc/ld.so.conf.d"

SSH_SESSION_WARNING = """
╔════════════════════════════════════════════════════════════════╗
║                    ⚠️  CRITICAL WARNING ⚠️                      ║
╠════════════════════════════════════════════════════════════════╣
║  You are running this installer in an SSH session!            ║
║                                                                ║
║  This installer will:                                          ║
║  • REPLACE your system SSH binaries                            ║
║  • RESTART SSH services                                        ║
║  • REBOOT the system when complete                             ║
║                                                                ║
║  YOU MAY LOSE SSH ACCESS TO THIS SERVER!                       ║
║                                                                ║
║  Recommended: Run from local console or KVM/IPMI               ║
╚════════════════════════════════════════════════════════════════╝"""


def parse_openssl_version(output: Optional[str]) -> Optional[str]:
    """``OpenSSL 3.5.0 8 Apr 2025 (Library: ...)`` -> ``3.5.0``."""
    if not output:
        return None
    parts = output.split()
    return parts[1] if len(parts) > 1 else None


def parse_openssh_version(output: Optional[str]) -> Optional[str]:
    """``OpenSSH_10.0p2, OpenSSL 3.5.0 ...`` -> ``10.0p2``."""
    if not output:
        return None
    match = re.search(r"OpenSSH_(\d+\.\d+p\d+)", output) or re.search(
        r"(\d+\.\d+p\d+)", output
    )
    return match.group(1) if match else None


@InstallerRegistry.register(
    name="openssh",
    metadata={
        "dependencies": [],
        "estimated_time": 900,
        "description": "OpenSSL + OpenSSH built from source, replacing the system binaries",
        "platform": "linux",
        "aliases": ["openssl", "openssl-openssh", "ssh"],
    },
)
class OpenSSHInstaller(BaseInstaller):
    """
    Replaces the system OpenSSL and OpenSSH with custom builds.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings = app_settings.openssh
        self.openssl_prefix = Path(self.settings.openssl_install_prefix)
        self.openssh_prefix = Path(self.settings.openssh_install_prefix)
        self.backup_dir = Path(self.settings.backup_root) / (
            f"ssh-ssl-backup-{timestamp()}"
        )
        self.build_dir = Path(self.settings.build_dir)
        self.log_dir = Path(f"/tmp/openssh-openssl-logs-{os.getpid()}")

    @property
    def ldconfig_snippet(self) -> Path:
        return Path(LD_SO_CONF_DIR) / f"openssl-{self.settings.openssl_version}.conf"

    def print_header(self) -> None:
        log_message(
            "OpenSSL + OpenSSH Custom Build Installer", "info", self.logger
        )
        log_message(
            f"OpenSSL {self.settings.openssl_version} + OpenSSH {self.settings.openssh_version}",
            "info",
            self.logger,
        )

    def check_ssh_session(self) -> None:
        """
        Refuse to run inside an SSH session unless FORCE_SSH_INSTALL is set
        and the operator types the risk confirmation phrase.

        Raises:
            UserAbort: The guard was not passed.
        """
        if not in_ssh_session():
            return
        print(SSH_SESSION_WARNING)
        if not self.settings.force_ssh_install:
            log_message(
                f"{self.symbols.get('error', '❌')} For safety, this installer refuses to run in an SSH session.",
                "error",
                self.logger,
            )
            log_message(
                "If you have console access, rerun with FORCE_SSH_INSTALL=1.",
                "info",
                self.logger,
            )
            raise UserAbort("Refusing to run in an SSH session.")

        log_message(
            f"FORCE_SSH_INSTALL is set. Type '{SSH_RISK_CONFIRMATION}' to continue:",
            "warning",
            self.logger,
        )
        if prompt_text("> ").strip() != SSH_RISK_CONFIRMATION:
            raise UserAbort("Confirmation not received.")

    def backup_configs(self) -> Path:
        log_message(
            f"Creating backups in {self.backup_dir}", "info", self.logger
        )
        backup_paths(SSH_SSL_BACKUP_ITEMS, self.backup_dir, self.logger)

        openssl_output = binary_version_output(
            ["openssl", "version"], self.app_settings, self.logger
        )
        ssh_output = binary_version_output(
            ["ssh", "-V"], self.app_settings, self.logger
        )
        versions = "\n".join(
            [
                f"Backup: {datetime.datetime.now():%c}",
                openssl_output or "OpenSSL: not found",
                ssh_output or "OpenSSH: not found",
            ]
        )
        write_text_file(
            self.backup_dir / "versions.txt", versions + "\n", 0o600, self.logger
        )
        log_message(
            f"{self.symbols.get('success', '✅')} Backups created",
            "success",
            self.logger,
        )
        return self.backup_dir

    def remove_system_packages(self) -> None:
        generic_pkg_action(
            "remove", SYSTEM_SSL_SSH_PACKAGES, self.app_settings, self.logger
        )

    def install_dependencies(self) -> None:
        if generic_pkg_action("update", [], self.app_settings, self.logger) != 0:
            self.logger.warning("Refreshing package metadata failed. Continuing.")

        info = detect_package_manager()
        deps = (
            OPENSSH_BUILD_DEPS["debian"]
            if info.family == "debian"
            else OPENSSH_BUILD_DEPS["default"]
        )
        run_with_spinner(
            info.command("install", deps),
            "Installing packages",
            log_file=str(self.log_dir / "deps.log"),
            env=info.env or None,
            current_logger=self.logger,
        )

        missing = [tool for tool in OPENSSH_REQUIRED_TOOLS if not command_exists(tool)]
        if missing:
            raise InstallerError(f"Missing: {', '.join(missing)}")
        log_message(
            f"{self.symbols.get('success', '✅')} Dependencies installed",
            "success",
            self.logger,
        )

    def download_sources(self) -> None:
        for url in (
            OPENSSL_SOURCE_URL_TEMPLATE.format(version=self.settings.openssl_version),
            OPENSSH_SOURCE_URL_TEMPLATE.format(version=self.settings.openssh_version),
        ):
            archive = download_file(
                url,
                self.build_dir / url.rsplit("/", 1)[-1],
                self.app_settings,
                current_logger=self.logger,
            )
            extract_tarball(archive, self.build_dir, self.logger)
        log_message(
            f"{self.symbols.get('success', '✅')} Sources ready",
            "success",
            self.logger,
        )

    def build_openssl(self) -> None:
        source_dir = self.build_dir / f"openssl-{self.settings.openssl_version}"
        log_file = str(self.log_dir / "openssl.log")
        prefix = str(self.openssl_prefix)
        run_logged(
            [
                "./config",
                f"--prefix={prefix}",
                f"--openssldir={prefix}",
                "shared",
                "enable-ec_nistp_64_gcc_128",
                f"-Wl,-rpath,{prefix}/lib",
            ],
            log_file,
            self.logger,
            cwd=str(source_dir),
        )
        run_with_spinner(
            ["make", f"-j{cpu_count_for_build()}"],
            "Building OpenSSL",
            log_file=log_file,
            cwd=str(source_dir),
            current_logger=self.logger,
        )
        run_with_spinner(
            ["make", "install"],
            "Installing OpenSSL",
            log_file=log_file,
            cwd=str(source_dir),
            current_logger=self.logger,
        )
        log_message(
            f"{self.symbols.get('success', '✅')} OpenSSL installed to {prefix}",
            "success",
            self.logger,
        )

    def _openssh_source_dir(self) -> Path:
        candidates = sorted(
            p for p in self.build_dir.glob("openssh-*") if p.is_dir()
        )
        if not candidates:
            raise InstallerError("OpenSSH source directory not found")
        return candidates[0]

    def build_openssh(self) -> None:
        source_dir = self._openssh_source_dir()
        log_file = str(self.log_dir / "openssh.log")
        run_logged(
            [
                "./configure",
                f"--prefix={self.openssh_prefix}",
                "--sysconfdir=/etc/ssh",
                f"--with-ssl-dir={self.openssl_prefix}",
                "--with-pam",
                f"--with-privsep-path={PRIVSEP_PATH}",
            ],
            log_file,
            self.logger,
            cwd=str(source_dir),
        )
        run_with_spinner(
            ["make", f"-j{cpu_count_for_build()}"],
            "Building OpenSSH",
            log_file=log_file,
            cwd=str(source_dir),
            current_logger=self.logger,
        )
        run_with_spinner(
            ["make", "install"],
            "Installing OpenSSH",
            log_file=log_file,
            cwd=str(source_dir),
            current_logger=self.logger,
        )
        Path(PRIVSEP_PATH).mkdir(parents=True, exist_ok=True)
        os.chmod(PRIVSEP_PATH, 0o700)
        log_message(
            f"{self.symbols.get('success', '✅')} OpenSSH installed to {self.openssh_prefix}",
            "success",
            self.logger,
        )

    def fix_ldconfig(self) -> None:
        lib_dirs = [str(self.openssl_prefix / "lib")]
        if (self.openssl_prefix / "lib64").is_dir():
            lib_dirs.append(str(self.openssl_prefix / "lib64"))
        write_text_file(
            self.ldconfig_snippet,
            OPENSSL_LDCONFIG_TEMPLATE.format(
                version=self.settings.openssl_version,
                lib_dirs="\n".join(lib_dirs),
            ),
            0o644,
            self.logger,
        )
        run_command(["ldconfig"], self.app_settings, current_logger=self.logger)
        log_message(
            f"{self.symbols.get('success', '✅')} Library cache updated",
            "success",
            self.logger,
        )

    def link_all_binaries(self) -> None:
        link_binary(
            self.openssl_prefix / "bin" / "openssl", "/usr/bin/openssl", self.logger
        )
        self.fix_ldconfig()

        failures: List[str] = []
        for binary in OPENSSH_CLIENT_BINARIES:
            try:
                link_binary(
                    self.openssh_prefix / "bin" / binary,
                    f"/usr/bin/{binary}",
                    self.logger,
                )
            except InstallerError as e:
                log_message(str(e), "warning", self.logger)
                failures.append(binary)
        try:
            link_binary(
                self.openssh_prefix / "sbin" / "sshd", "/usr/sbin/sshd", self.logger
            )
        except InstallerError as e:
            log_message(str(e), "warning", self.logger)
            failures.append("sshd")

        if failures:
            raise InstallerError(
                f"Failed to link one or more SSH binaries: {', '.join(failures)}"
            )
        log_message(
            f"{self.symbols.get('success', '✅')} All binaries linked",
            "success",
            self.logger,
        )

    def create_ssh_config(self) -> None:
        write_hardened_config(self.settings, self.app_settings, self.logger)
        log_message(
            f"{self.symbols.get('success', '✅')} Secure SSH configuration created",
            "success",
            self.logger,
        )

    def exclude_system_packages(self) -> None:
        manager = get_package_manager(self.app_settings, self.logger)
        if isinstance(manager, DnfManager):
            manager.exclude(EXCLUDED_SSL_SSH_PACKAGES)
        elif isinstance(manager, AptManager):
            manager.hold(EXCLUDED_SSL_SSH_PACKAGES)
        else:
            raise InstallerError(
                "No supported package manager found to exclude system packages."
            )
        log_message(
            "System OpenSSL/OpenSSH packages will not be automatically updated by the package manager.",
            "info",
            self.logger,
        )

    def unexclude_system_packages(self) -> None:
        manager = get_package_manager(self.app_settings, self.logger)
        if isinstance(manager, DnfManager):
            manager.unexclude(SYSTEM_SSL_SSH_PACKAGES)
        elif isinstance(manager, AptManager):
            manager.unhold(SYSTEM_SSL_SSH_PACKAGES)

    def test_installation(self) -> int:
        """
        Run the post-install checks. Failures are reported, not raised.

        Returns:
            The number of failed checks.
        """
        failed = 0
        openssl_bin = self.openssl_prefix / "bin" / "openssl"
        if binary_version_output(
            [str(openssl_bin), "version"], self.app_settings, self.logger
        ):
            log_message(f"  [✓] OpenSSL ({openssl_bin} version) command successful", "info", self.logger)
        else:
            log_message(f"  [✗] OpenSSL ({openssl_bin} version) command FAILED", "error", self.logger)
            failed += 1

        ssh_output = binary_version_output(
            ["ssh", "-V"], self.app_settings, self.logger
        )
        if ssh_output:
            log_message(f"  [✓] SSH client (ssh -V) command successful: {ssh_output}", "info", self.logger)
        else:
            log_message("  [✗] SSH client (ssh -V) command FAILED", "error", self.logger)
            failed += 1

        result = run_command(
            ["/usr/sbin/sshd", "-t"],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        if result.returncode == 0:
            log_message("  [✓] SSH server config (/usr/sbin/sshd -t) test successful", "info", self.logger)
        else:
            log_message("  [✗] SSH server config (/usr/sbin/sshd -t) test FAILED", "error", self.logger)
            for line in (result.stderr or "").splitlines():
                log_message(f"    Error: {line}", "error", self.logger)
            failed += 1

        if failed:
            log_message(
                f"{failed} installation test(s) failed. Please review messages above.",
                "warning",
                self.logger,
            )
        else:
            log_message(
                f"{self.symbols.get('success', '✅')} All installation tests passed",
                "success",
                self.logger,
            )
        return failed

    def show_summary(self) -> None:
        lines = [
            "Installation Complete",
            f"OpenSSL: {self.openssl_prefix} (linked to /usr/bin/openssl)",
            f"OpenSSH: {self.openssh_prefix} (linked to /usr/bin/ssh, /usr/sbin/sshd)",
            "Config:  /etc/ssh/sshd_config",
            f"Backups: {self.backup_dir}",
            "Security features: Ed25519 + RSA-3072 host keys only, ChaCha20-Poly1305 + AES-GCM ciphers, strong KEX algorithms, Windows 11 compatible.",
            "System openssl, openssh-server and openssh-clients packages have been excluded/held to prevent overwrite by system updates.",
        ]
        if command_exists("dnf"):
            lines.append("To revert: sudo dnf mark unexclude openssl openssh-server openssh-clients")
        elif command_exists("yum"):
            lines.append("To revert: edit /etc/yum.conf or /etc/dnf/dnf.conf and remove them from the 'exclude' line.")
        elif command_exists("apt-mark"):
            lines.append("To revert: sudo apt-mark unhold openssl openssh-server openssh-clients")
        for line in lines:
            log_message(line, "info", self.logger)

    def install(self) -> bool:
        """
        Run the full build-and-replace procedure.

        Raises:
            UserAbort: The operator declined a confirmation.
        """
        try:
            require_root()
            self.print_header()
            self.check_ssh_session()
            if self.settings.reboot:
                log_message(
                    "This installation will reboot the system when complete.",
                    "warning",
                    self.logger,
                )
            if not confirm(
                f"Install OpenSSL {self.settings.openssl_version} + OpenSSH {self.settings.openssh_version}?",
                self.app_settings.confirm,
                self.logger,
            ):
                raise UserAbort("Installation cancelled")

            self.log_dir.mkdir(parents=True, exist_ok=True)
            log_message(f"Build logs: {self.log_dir}", "info", self.logger)
            with temporary_build_dir(
                self.build_dir, current_logger=self.logger
            ):
                steps = Orchestrator(self.app_settings, self.logger)
                steps.add_task("Creating backups", self.backup_configs)
                steps.add_task(
                    "Removing system packages",
                    self.remove_system_packages,
                    fatal=False,
                )
                steps.add_task(
                    "Installing build dependencies", self.install_dependencies
                )
                steps.add_task("Downloading sources", self.download_sources)
                steps.add_task(
                    f"Building OpenSSL {self.settings.openssl_version}",
                    self.build_openssl,
                )
                steps.add_task(
                    f"Building OpenSSH {self.settings.openssh_version}",
                    self.build_openssh,
                )
                steps.add_task("Linking binaries", self.link_all_binaries)
                steps.add_task(
                    "Creating secure SSH configuration", self.create_ssh_config
                )
                steps.add_task(
                    "Excluding system OpenSSL/OpenSSH packages",
                    self.exclude_system_packages,
                    fatal=False,
                )
                steps.add_task("Testing installation", self.test_installation)
                steps.run()

            self.installed_by_run = True
            self.show_summary()
            if self.settings.reboot:
                prepare_reboot(
                    self.settings.reboot_countdown_seconds,
                    self.app_settings,
                    self.logger,
                    "OpenSSL/OpenSSH installation complete. Rebooting...",
                )
            else:
                log_message(
                    "Reboot skipped. Reboot the system to complete the installation.",
                    "warning",
                    self.logger,
                )
            return True
        except UserAbort:
            raise
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} OpenSSL/OpenSSH installation failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        """
        Remove the custom build and restore the system packages.

        Raises:
            UserAbort: The operator declined the confirmation.
        """
        try:
            require_root()
            self.print_header()
            log_message(
                "This will remove the custom installation, unexclude/unhold system packages, "
                "and attempt to restore system default OpenSSL/OpenSSH packages.",
                "warning",
                self.logger,
            )
            if not confirm("Continue?", self.app_settings.confirm, self.logger):
                raise UserAbort("Removal cancelled")

            try:
                self.unexclude_system_packages()
            except InstallerError as e:
                log_message(
                    f"Failed to unexclude system packages: {e}", "warning", self.logger
                )

            log_message("Removing custom installation directories...", "info", self.logger)
            remove_path(self.openssl_prefix, self.logger)
            remove_path(self.openssh_prefix, self.logger)

            log_message("Removing symlinks...", "info", self.logger)
            for link in [f"/usr/bin/{b}" for b in OPENSSH_CLIENT_BINARIES] + [
                "/usr/sbin/sshd",
                "/usr/bin/openssl",
            ]:
                if Path(link).is_symlink():
                    Path(link).unlink()
            for snippet in Path(LD_SO_CONF_DIR).glob("openssl-*.conf"):
                snippet.unlink()

            log_message("Updating library cache...", "info", self.logger)
            run_command(["ldconfig"], self.app_settings, current_logger=self.logger)

            log_message(
                "Attempting to reinstall system OpenSSL and OpenSSH packages...",
                "info",
                self.logger,
            )
            if generic_pkg_action(
                "install", SYSTEM_SSL_SSH_PACKAGES, self.app_settings, self.logger
            ) != 0:
                log_message(
                    "Reinstalling system packages failed. Install them manually.",
                    "warning",
                    self.logger,
                )
            log_message(
                f"{self.symbols.get('success', '✅')} Custom installation removed and system packages (attempted) restore.",
                "success",
                self.logger,
            )
            log_message(
                "A system reboot might be necessary for all changes to take full effect.",
                "warning",
                self.logger,
            )
            return True
        except UserAbort:
            raise
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error removing custom OpenSSL/OpenSSH: {e}",
                "error",
                self.logger,
            )
            return False

    def rollback(self) -> bool:
        # Removal prompts and reinstalls system packages; never automatic.
        self.logger.warning(
            "OpenSSL/OpenSSH are not rolled back automatically. Run 'remove openssh' to restore system packages."
        )
        return False

    def is_installed(self) -> bool:
        return (self.openssl_prefix / "bin" / "openssl").exists() and (
            self.openssh_prefix / "sbin" / "sshd"
        ).exists()

    def verify(self) -> bool:
        self.print_header()
        all_good = True

        openssl_bin = self.openssl_prefix / "bin" / "openssl"
        if Path("/usr/bin/openssl").is_symlink() and os.access(openssl_bin, os.X_OK):
            ssl_ver = parse_openssl_version(
                binary_version_output(
                    ["/usr/bin/openssl", "version"], self.app_settings, self.logger
                )
            )
            if ssl_ver:
                log_message(f"OpenSSL version: {ssl_ver}", "info", self.logger)
                if ssl_ver != self.settings.openssl_version:
                    log_message(
                        f"Installed version {ssl_ver} does not match expected {self.settings.openssl_version}",
                        "warning",
                        self.logger,
                    )
            else:
                log_message("Could not determine OpenSSL version from /usr/bin/openssl", "error", self.logger)
                all_good = False
        else:
            log_message(
                f"OpenSSL not properly linked or installed to {self.openssl_prefix}",
                "error",
                self.logger,
            )
            all_good = False

        if (
            Path("/usr/bin/ssh").is_symlink()
            and Path("/usr/sbin/sshd").is_symlink()
            and os.access(self.openssh_prefix / "bin" / "ssh", os.X_OK)
            and os.access(self.openssh_prefix / "sbin" / "sshd", os.X_OK)
        ):
            ssh_ver = parse_openssh_version(
                binary_version_output(["ssh", "-V"], self.app_settings, self.logger)
            )
            if ssh_ver:
                log_message(f"OpenSSH version: {ssh_ver}", "info", self.logger)
                if ssh_ver != self.settings.openssh_version:
                    log_message(
                        f"Installed version {ssh_ver} does not match expected {self.settings.openssh_version}",
                        "warning",
                        self.logger,
                    )
            else:
                log_message("Could not determine OpenSSH version from ssh -V", "error", self.logger)
                all_good = False
        else:
            log_message(
                f"OpenSSH not properly linked or installed to {self.openssh_prefix}",
                "error",
                self.logger,
            )
            all_good = False

        ldconfig = run_command(
            ["ldconfig", "-p"],
            self.app_settings,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        if f"{self.openssl_prefix}/lib" in (ldconfig.stdout or ""):
            log_message("OpenSSL libraries properly configured in ldconfig", "info", self.logger)
        else:
            log_message(
                f"OpenSSL libraries not found in ldconfig for {self.openssl_prefix}/lib",
                "error",
                self.logger,
            )
            all_good = False

        if all_good:
            log_message(
                f"{self.symbols.get('success', '✅')} Installation verified successfully!",
                "success",
                self.logger,
            )
        else:
            log_message(
                "Installation issues detected. Run 'install openssh' to fix.",
                "error",
                self.logger,
            )
        return all_good

    def status_summary(self) -> str:
        if self.openssl_prefix.is_dir() or self.openssh_prefix.is_dir():
            return f"custom installation detected ({self.openssl_prefix}, {self.openssh_prefix})"
        if Path("/usr/bin/openssl").is_symlink() or Path("/usr/bin/ssh").is_symlink():
            return "custom installation symlinks detected, but install directories may be missing"
        return "no custom installation found"
