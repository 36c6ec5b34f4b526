"""
Base installer class for all installer components.

This module provides the base class that all installer components must
inherit from. It defines the common interface: install, uninstall,
is_installed, verify and rollback.
"""

import logging
import platform
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from settings.config_models import AppSettings


class BaseInstaller(ABC):
    """
    Base class for all installer components.

    ``install`` and ``uninstall`` return True on success. Fatal steps inside
    them raise ``InstallerError`` subclasses, which the component catches at
    that boundary, logs and turns into ``False``.
    """

    # Class-level metadata, normally set by the registry decorator
    metadata: Dict[str, Any] = {
        "dependencies": [],  # installer names this installer depends on
        "estimated_time": 0,  # seconds
        "description": "",
        "platform": "linux",  # "linux" or "windows"
        "aliases": [],
    }

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the installer.

        Args:
            app_settings: The application settings.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        # Set by install() only when it changed the system in this run.
        self.installed_by_run = False

    @property
    def symbols(self) -> Dict[str, str]:
        return self.app_settings.symbols

    @abstractmethod
    def install(self) -> bool:
        """
        Install the component.

        Returns:
            True if the installation was successful, False otherwise.
        """

    @abstractmethod
    def uninstall(self) -> bool:
        """
        Uninstall the component.

        Returns:
            True if the uninstallation was successful, False otherwise.
        """

    @abstractmethod
    def is_installed(self) -> bool:
        """
        Check if the component is installed.
        """

    def verify(self) -> bool:
        """
        Check that the installed component works.

        Defaults to :meth:`is_installed`; components override it with
        version and service checks.
        """
        return self.is_installed()

    def status_summary(self) -> str:
        """One-line status shown when the CLI is run without a verb."""
        return "installed" if self.is_installed() else "not installed"

    def rollback(self) -> bool:
        """
        Rollback the installation of the component.

        Called when a later installation in the same run fails. Components
        that were already present before the run are left alone; otherwise
        it calls :meth:`uninstall`.
        """
        if not self.installed_by_run:
            self.logger.info(
                f"{self.__class__.__name__} was not installed by this run. Nothing to roll back."
            )
            return True
        self.logger.info(
            f"Rolling back installation of {self.__class__.__name__}"
        )
        return self.uninstall()

    def get_platform(self) -> str:
        return str(self.metadata.get("platform", "linux"))

    def supports_current_platform(self) -> bool:
        return (platform.system() == "Windows") == (
            self.get_platform() == "windows"
        )
