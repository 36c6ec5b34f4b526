# common/errors.py
# -*- coding: utf-8 -*-
"""
Exception types raised by the installers.

Every failure an installer step reports is one of these; components catch
``InstallerError`` at their ``install``/``uninstall`` boundary, log it and
return ``False`` to the orchestrator.
"""

from typing import List, Optional, Union


class InstallerError(Exception):
    """Base class for fatal installer failures."""


class CommandError(InstallerError):
    """An external command exited with a non-zero status."""

    def __init__(
        self,
        command: Union[List[str], str],
        returncode: int,
        output: Optional[str] = None,
    ):
        self.command = command
        self.returncode = returncode
        self.output = output
        cmd_str = command if isinstance(command, str) else " ".join(command)
        super().__init__(f"Command `{cmd_str}` failed (rc {returncode}).")


class DownloadError(InstallerError):
    """A download did not succeed within the allowed attempts."""


class ChecksumMismatchError(InstallerError):
    """A downloaded file does not match its expected SHA256 digest."""


class UnsupportedPlatformError(InstallerError):
    """The operating system, distribution or architecture is not supported."""


class PrivilegeError(InstallerError):
    """The installer needs root (or Administrator) privileges."""


class UserAbort(InstallerError):
    """The operator declined a confirmation prompt."""
