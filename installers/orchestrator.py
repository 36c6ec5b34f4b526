"""
Orchestrator for the installer components.

Imports every component module so that it registers itself, resolves
dependencies and runs install, uninstall or verify across a list of
components, rolling back earlier installations when one fails.
"""

import importlib
import logging
import pkgutil
from typing import Dict, List, Optional, Type

from common.errors import InstallerError
from installers.base_installer import BaseInstaller
from installers.registry import InstallerRegistry
from settings.config_models import AppSettings


class InstallerOrchestrator:
    """
    Runs installer components in dependency order.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)

        self._import_installer_modules()

    def _import_installer_modules(self) -> None:
        """
        Import every module below ``installers.components`` so that each
        component class is registered with the InstallerRegistry.
        """
        import installers.components

        for module_info in pkgutil.walk_packages(
            installers.components.__path__, prefix="installers.components."
        ):
            importlib.import_module(module_info.name)
            self.logger.debug(f"Imported installer module: {module_info.name}")

    def get_available_installers(self) -> Dict[str, Type[BaseInstaller]]:
        return InstallerRegistry.get_all_installers()

    def resolve_dependencies(self, installer_names: List[str]) -> List[str]:
        return InstallerRegistry.resolve_dependencies(installer_names)

    def _create(self, names: List[str]) -> Dict[str, BaseInstaller]:
        return {
            name: InstallerRegistry.get_installer(name)(
                self.app_settings, self.logger
            )
            for name in names
        }

    def install(self, installer_names: List[str]) -> bool:
        """
        Install the specified components.

        Returns:
            True if all installations were successful, False otherwise.
        """
        resolved_names = self.resolve_dependencies(installer_names)
        self.logger.info(
            f"Installing components in order: {', '.join(resolved_names)}"
        )
        installers = self._create(resolved_names)

        installed_components: List[str] = []
        for name in resolved_names:
            self.logger.info(f"Installing component: {name}")

            if not installers[name].install():
                self.logger.error(f"Failed to install component: {name}")
                self._rollback_installations(installers, installed_components)
                return False

            installed_components.append(name)
            self.logger.info(f"Successfully installed component: {name}")

        self.logger.info("All components installed successfully")
        return True

    def uninstall(self, installer_names: List[str]) -> bool:
        """
        Uninstall the specified components in reverse dependency order.
        """
        resolved_names = self.resolve_dependencies(installer_names)
        resolved_names.reverse()
        self.logger.info(
            f"Uninstalling components in order: {', '.join(resolved_names)}"
        )
        installers = self._create(resolved_names)

        for name in resolved_names:
            self.logger.info(f"Uninstalling component: {name}")
            if not installers[name].uninstall():
                self.logger.error(f"Failed to uninstall component: {name}")
                return False
            self.logger.info(f"Successfully uninstalled component: {name}")

        self.logger.info("All components uninstalled successfully")
        return True

    def verify(self, installer_names: List[str]) -> Dict[str, bool]:
        """
        Verify the specified components.

        Returns:
            A dictionary mapping installer names to their verification result.
        """
        names = [InstallerRegistry.canonical_name(n) for n in installer_names]
        installers = self._create(names)
        results: Dict[str, bool] = {}
        for name in names:
            self.logger.info(f"Verifying component: {name}")
            try:
                results[name] = installers[name].verify()
            except InstallerError as e:
                self.logger.error(f"Verification of {name} failed: {e}")
                results[name] = False
            self.logger.info(
                f"Component {name}: {'OK' if results[name] else 'FAILED'}"
            )
        return results

    def supported_installers(self) -> List[str]:
        """Names of the components that run on this platform, sorted."""
        return [
            name
            for name, installer in self._create(
                sorted(self.get_available_installers())
            ).items()
            if installer.supports_current_platform()
        ]

    def status(self) -> Dict[str, str]:
        """
        One-line status for every component supported on this platform.
        """
        summary: Dict[str, str] = {}
        for name, installer in self._create(self.supported_installers()).items():
            try:
                summary[name] = installer.status_summary()
            except InstallerError as e:
                summary[name] = f"unknown ({e})"
        return summary

    def _rollback_installations(
        self,
        installers: Dict[str, BaseInstaller],
        installed_components: List[str],
    ) -> None:
        for name in reversed(installed_components):
            self.logger.info(f"Rolling back installation of component: {name}")
            try:
                if not installers[name].rollback():
                    self.logger.error(
                        f"Failed to roll back installation of component: {name}"
                    )
                else:
                    self.logger.info(
                        f"Successfully rolled back installation of component: {name}"
                    )
            except (InstallerError, OSError) as e:
                self.logger.error(
                    f"Error during rollback of component {name}: {str(e)}"
                )
