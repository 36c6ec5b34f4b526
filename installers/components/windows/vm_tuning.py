"""
Performance tuning for Windows virtual machines.
"""

import logging
from typing import List, Optional

from common.command_utils import log_message, run_command, run_powershell
from common.errors import InstallerError, UnsupportedPlatformError
from common.system_utils import is_windows, require_root
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings, VMTuningSettings
from settings.constants import BALANCED_SCHEME_GUID, HIGH_PERFORMANCE_SCHEME_GUID

DEFRAG_TASK = "\\Microsoft\\Windows\\Defrag\\ScheduledDefrag"
VISUAL_EFFECTS_KEY = (
    "HKCU:\\Software\\Microsoft\\Windows\\CurrentVersion\\Explorer\\VisualEffects"
)


def service_startup_script(services: List[str], startup_type: str) -> str:
    names = ",".join(f"'{s}'" for s in services)
    stop = "Stop-Service -Name $_ -Force -ErrorAction SilentlyContinue; " if startup_type == "Disabled" else ""
    return (
        f"@({names}) | ForEach-Object {{ {stop}"
        f"Set-Service -Name $_ -StartupType {startup_type} }}"
    )


def parse_active_scheme(output: str) -> Optional[str]:
    """GUID from ``powercfg /getactivescheme`` output."""
    for token in output.split():
        if token.count("-") == 4:
            return token.lower()
    return None


@InstallerRegistry.register(
    name="vm-tuning",
    metadata={
        "dependencies": [],
        "estimated_time": 30,
        "description": "Power plan, services and visual effects tuned for a Windows VM",
        "platform": "windows",
        "aliases": ["windows-vm-tuning"],
    },
)
class VMTuning(BaseInstaller):
    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.settings: VMTuningSettings = app_settings.vm_tuning

    def _require_windows(self) -> None:
        if not is_windows():
            raise UnsupportedPlatformError(
                "VM tuning is only available on Windows."
            )
        require_root()

    def _powercfg(self, args: List[str], check: bool = True):
        return run_command(
            ["powercfg"] + args,
            self.app_settings,
            check=check,
            capture_output=True,
            current_logger=self.logger,
        )

    def install(self) -> bool:
        try:
            self._require_windows()
            log_message("Activating the High Performance power plan...", "info", self.logger)
            self._powercfg(["/setactive", HIGH_PERFORMANCE_SCHEME_GUID])
            if self.settings.disable_hibernation:
                self._powercfg(["/hibernate", "off"])
            if self.settings.services_to_disable:
                log_message(
                    f"Disabling services: {', '.join(self.settings.services_to_disable)}",
                    "info",
                    self.logger,
                )
                run_powershell(
                    service_startup_script(self.settings.services_to_disable, "Disabled"),
                    self.app_settings,
                    current_logger=self.logger,
                )
            if self.settings.disable_defrag:
                run_powershell(
                    f"Disable-ScheduledTask -TaskName '{DEFRAG_TASK}' | Out-Null",
                    self.app_settings,
                    current_logger=self.logger,
                )
            if self.settings.visual_effects_best_performance:
                run_powershell(
                    f"New-Item -Path '{VISUAL_EFFECTS_KEY}' -Force | Out-Null; "
                    f"Set-ItemProperty -Path '{VISUAL_EFFECTS_KEY}' -Name VisualFXSetting -Value 2 -Type DWord",
                    self.app_settings,
                    current_logger=self.logger,
                )
            self.installed_by_run = True
            log_message(
                f"{self.symbols.get('success', '✅')} VM tuning applied. Some changes take effect after sign-out.",
                "success",
                self.logger,
            )
            return True
        except (InstallerError, OSError) as e:
            log_message(
                f"{self.symbols.get('error', '❌')} VM tuning failed: {e}",
                "error",
                self.logger,
            )
            return False

    def uninstall(self) -> bool:
        try:
            self._require_windows()
            self._powercfg(["/setactive", BALANCED_SCHEME_GUID])
            if self.settings.services_to_disable:
                run_powershell(
                    service_startup_script(self.settings.services_to_disable, "Manual"),
                    self.app_settings,
                    current_logger=self.logger,
                )
            run_powershell(
                f"Enable-ScheduledTask -TaskName '{DEFRAG_TASK}' | Out-Null",
                self.app_settings,
                current_logger=self.logger,
            )
            log_message(
                f"{self.symbols.get('success', '✅')} Balanced power plan restored and services re-enabled.",
                "success",
                self.logger,
            )
            return True
        except InstallerError as e:
            log_message(
                f"{self.symbols.get('error', '❌')} Error reverting VM tuning: {e}",
                "error",
                self.logger,
            )
            return False

    def active_scheme(self) -> Optional[str]:
        result = self._powercfg(["/getactivescheme"], check=False)
        if result.returncode != 0:
            return None
        return parse_active_scheme(result.stdout)

    def disabled_services(self) -> List[str]:
        result = run_powershell(
            "@("
            + ",".join(f"'{s}'" for s in self.settings.services_to_disable)
            + ") | Where-Object { (Get-Service -Name $_).StartType -eq 'Disabled' }",
            self.app_settings,
            check=False,
            current_logger=self.logger,
        )
        return result.stdout.split() if result.returncode == 0 else []

    def is_installed(self) -> bool:
        if not is_windows():
            return False
        return self.active_scheme() == HIGH_PERFORMANCE_SCHEME_GUID

    def verify(self) -> bool:
        if not is_windows():
            self.logger.warning("VM tuning can only be verified on Windows.")
            return False
        if self.active_scheme() != HIGH_PERFORMANCE_SCHEME_GUID:
            self.logger.warning("The High Performance power plan is not active.")
            return False
        disabled = self.disabled_services()
        missing = [s for s in self.settings.services_to_disable if s not in disabled]
        if missing:
            self.logger.warning(f"Services not disabled: {', '.join(missing)}")
            return False
        return True
