# common/orchestrator.py
# -*- coding: utf-8 -*-
"""
Sequential step runner used by the installer components.

Each component describes its procedure as an ordered list of named steps.
Fatal steps abort the run; non-fatal steps log a warning and continue.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from common.errors import InstallerError


class Orchestrator:
    """Runs a series of named steps in order."""

    def __init__(
        self,
        app_settings: Any,
        orchestrator_logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.tasks: List[Dict[str, Any]] = []

    def add_task(
        self,
        name: str,
        func: Callable,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        fatal: bool = True,
    ) -> "Orchestrator":
        """
        Adds a step to the execution list.

        Args:
            name: A human-readable name for the step.
            func: The callable to execute.
            args: Positional arguments for the callable.
            kwargs: Keyword arguments for the callable.
            fatal: If True, a failure in this step halts the run.
        """
        self.tasks.append(
            {
                "name": name,
                "func": func,
                "args": args or [],
                "kwargs": kwargs or {},
                "fatal": fatal,
            }
        )
        self.logger.debug(f"Task '{name}' added to the queue.")
        return self

    def run(self) -> bool:
        """
        Executes all steps in sequence.

        Returns:
            True if every step succeeded, False if a non-fatal step failed.

        Raises:
            InstallerError: A fatal step failed. The original exception is
                chained when it was not already an ``InstallerError``.
        """
        symbols = getattr(self.app_settings, "symbols", {}) or {}
        all_succeeded = True
        total = len(self.tasks)
        for i, task in enumerate(self.tasks):
            task_name = task["name"]
            self.logger.info(
                f"{symbols.get('step', '➡️')} [{i + 1}/{total}] {task_name}"
            )

            try:
                task["func"](*task["args"], **task["kwargs"])
            except InstallerError as e:
                if task["fatal"]:
                    self.logger.error(
                        f"{symbols.get('error', '❌')} Step '{task_name}' failed: {e}"
                    )
                    raise
                all_succeeded = False
                self.logger.warning(
                    f"{symbols.get('warning', '⚠️')} Step '{task_name}' failed: {e}. Continuing."
                )
            except OSError as e:
                if task["fatal"]:
                    self.logger.error(
                        f"{symbols.get('error', '❌')} Step '{task_name}' failed: {e}"
                    )
                    raise InstallerError(f"{task_name}: {e}") from e
                all_succeeded = False
                self.logger.warning(
                    f"{symbols.get('warning', '⚠️')} Step '{task_name}' failed: {e}. Continuing."
                )

        return all_succeeded
