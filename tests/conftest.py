# tests/conftest.py
import logging
import subprocess
from unittest.mock import MagicMock

import pytest

from settings.config_models import AppSettings


@pytest.fixture
def app_settings():
    """Default settings; tests override nested sections as needed."""
    return AppSettings()


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def completed():
    """Factory for CompletedProcess results returned by mocked commands."""

    def _completed(returncode=0, stdout="", stderr=""):
        return subprocess.CompletedProcess(
            args=[], returncode=returncode, stdout=stdout, stderr=stderr
        )

    return _completed


@pytest.fixture
def restore_root_logger():
    """Put back the root logger handlers replaced by setup_logging."""
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    yield root_logger
    for handler in list(root_logger.handlers):
        if handler not in saved_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(saved_level)
