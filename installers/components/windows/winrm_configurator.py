"""
WinRM enablement for Windows hosts that Ansible manages.

Creates an HTTPS listener with a self-signed certificate and opens the
firewall for it. Every step is a PowerShell script block run through
``powershell.exe``.
"""

import logging
from typing import Optional

from common.command_utils import log_message, run_powershell
from common.errors import InstallerError, UnsupportedPlatformError
from common.system_utils import is_windows, require_root
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings, WinRMSettings
from settings.constants import WINRM_FIREWALL_RULE_NAME

WINRM_HTTP_FIREWALL_RULE_NAME = "WinRM HTTP"


def _ps_bool(value: bool) -> str:
    return "$true" if value else "$false"


def https_listener_script(settings: WinRMSettings) -> str:
    """Self-signed certificate for the host name, bound to an HTTPS listener."""
    return (
        "$hostName = [System.Net.Dns]::GetHostName(); "
        "$cert = New-SelfSignedCertificate -DnsName $hostName "
        "-CertStoreLocation Cert:\\LocalMachine\\My "
        f"-NotAfter (Get-Date).AddDays({settings.certificate_validity_days}); "
        "Get-ChildItem WSMan:\\localhost\\Listener | "
        "Where-Object { $_.Keys -contains 'Transport=HTTPS' } | "
        "Remove-Item -Recurse -Force; "
        "New-Item -Path WSMan:\\localhost\\Listener -Transport HTTPS -Address * "
        "-CertificateThumbPrint $cert.Thumbprint "
        f"-Port {settings.https_port} -Force | Out-Null"
    )


def auth_script(settings: WinRMSettings) -> str:
    return (
        "Set-Item -Path WSMan:\\localhost\\Service\\Auth\\Basic "
        f"-Value {_ps_bool(settings.enable_basic_auth)}; "
        "Set-Item -Path WSMan:\\localhost\\Service\\AllowUnencrypted -Value $false"
    )


def firewall_rule_script(name: str, port: int) -> str:
    return (
        f"if (-not (Get-NetFirewallRule -DisplayName '{name}' -ErrorAction SilentlyContinue)) {{ "
        f"New-NetFirewallRule -DisplayName '{name}' -Direction Inbound "
        f"-Protocol TCP -LocalPort {port} -Action Allow | Out-Null }}"
    )


@InstallerRegistry.register(
    name="winrm",
    metadata={
        "dependencies": [],
        "estimated_time": 60,
        "description": "Enable WinRM over HTTPS for remote management",
        "platform": "windows",
        "aliases": ["winrm-https"],
    },
)
class WinRMConfigurator(BaseInstaller):
    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings: WinRMSettings = app_settings.winrm

    def _ps(self, script: str, check: bool = True):
        return run_powershell(
            script, self.app_settings, check=check, current_logger=self.logger
        )

    def _require_windows(self) -> None:
        if not is_windows():
            raise UnsupportedPlatformError(
                "WinRM configuration is only available on Windows."
            )
        require_root()

    def install(self) -> bool:
        try:
            self._require_windows()
            log_message("Starting the WinRM service...", "info", self.logger)
            self._ps(
                "Set-Service -Name WinRM -StartupType Automatic; Start-Service -Name WinRM"
            )
            log_message("Enabling PowerShell remoting...", "info", self.logger)
            self._ps("Enable-PSRemoting -Force -SkipNetworkProfileCheck")

            log_message(
                f"Creating HTTPS listener on port {self.settings.https_port}...",
                "info",
                self.logger,
            )
            self._ps(https_listener_script(self.settings))
            self._ps(auth_script(self.settings))

            self._ps(
                firewall_rule_script(WINRM_FIREWALL_RULE_NAME, self.settings.https_port)
            )
            if self.settings.open_http_firewall:
                self._ps(
                    firewall_rule_script(
                        WINRM_HTTP_FIREWALL_RULE_NAME, self.settings.http_port
                    )
                )

            self.installed_by_run = True
            log_message(
                f"{self.symbols.get('success', '✅')} WinRM is listening on HTTPS port {self.settings.https_port}.",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} WinRM configuration failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        try:
            self._require_windows()
            self._ps(
                "Get-ChildItem WSMan:\\localhost\\Listener | "
                "Where-Object { $_.Keys -contains 'Transport=HTTPS' } | "
                "Remove-Item -Recurse -Force"
            )
            for rule in (WINRM_FIREWALL_RULE_NAME, WINRM_HTTP_FIREWALL_RULE_NAME):
                self._ps(
                    f"Remove-NetFirewallRule -DisplayName '{rule}' -ErrorAction SilentlyContinue",
                    check=False,
                )
            self._ps("Disable-PSRemoting -Force")
            log_message(
                f"{self.symbols.get('success', '✅')} WinRM HTTPS listener removed and remoting disabled.",
                "success",
                self.logger,
            )
            return True
        except InstallerError as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error removing WinRM configuration: {e}",
                "error",
                self.logger,
            )
            return False

    def is_installed(self) -> bool:
        if not is_windows():
            return False
        result = self._ps(
            "(Get-ChildItem WSMan:\\localhost\\Listener | "
            "Where-Object { $_.Keys -contains 'Transport=HTTPS' }).Count",
            check=False,
        )
        return result.returncode == 0 and result.stdout.strip() not in ("", "0")

    def verify(self) -> bool:
        if not is_windows():
            self.logger.warning("WinRM can only be verified on Windows.")
            return False
        result = self._ps("Test-WSMan -ComputerName localhost", check=False)
        if result.returncode != 0:
            self.logger.warning("Test-WSMan failed.")
            return False
        return True
