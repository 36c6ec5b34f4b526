"""
Scheduled reboot with a cancellable countdown.
"""

import logging
import sys
import time
from typing import Optional

from common.command_utils import run_elevated_command
from common.errors import InstallerError
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def cancel_reboot(
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger
    logger_to_use.warning("Reboot cancellation attempt...")
    result = run_elevated_command(
        ["shutdown", "-c", "Reboot cancelled by user."],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if result.returncode == 0:
        logger_to_use.info("Reboot successfully cancelled.")
        return True
    logger_to_use.error(
        "Failed to cancel reboot. It might be too late, or 'shutdown -c' is not supported."
    )
    return False


def prepare_reboot(
    countdown_seconds: int = 30,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    message: str = "Installation complete. Rebooting...",
) -> None:
    """
    Schedule ``shutdown -r +1`` and show a countdown.

    Ctrl-C (or SIGTERM) during the countdown cancels the scheduled reboot with
    ``shutdown -c`` and re-raises the interruption.

    Raises:
        InstallerError: The reboot could not be scheduled.
    """
    logger_to_use = current_logger if current_logger else module_logger
    logger_to_use.warning(
        f"System will reboot in {countdown_seconds} seconds..."
    )

    result = run_elevated_command(
        ["shutdown", "-r", "+1", message],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if result.returncode != 0:
        raise InstallerError("Failed to schedule reboot. Please reboot manually.")

    try:
        for remaining in range(countdown_seconds, 0, -1):
            sys.stdout.write(
                f"\rRebooting in {remaining} seconds... (Press Ctrl+C to cancel) "
            )
            sys.stdout.flush()
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        sys.stdout.write("\n")
        cancel_reboot(app_settings, logger_to_use)
        raise

    sys.stdout.write("\rRebooting now...                                           \n")
    sys.stdout.flush()
