# settings/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installers.

Handles loading settings from Pydantic model defaults, environment
variables, a YAML file and command-line arguments, applying a specific
order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (via Pydantic's BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from `overrides`.

    Nested dictionaries are merged key by key. ``None`` values in
    `overrides` never replace an existing value.

    Parameters:
        source: The dictionary to be updated in place.
        overrides: The dictionary containing values to update or add.

    Returns:
        The updated `source` dictionary.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def read_yaml_config(
    config_path: Path, current_logger: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Read a YAML mapping from `config_path`.

    A missing file, a parse error or a non-mapping document are logged and
    yield an empty dictionary; the installers then run on defaults and
    environment variables.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not config_path.is_file():
        logger_to_use.debug(
            f"Configuration file '{config_path}' not found. Using defaults and environment variables."
        )
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{config_path}': {e}. Using defaults and environment variables."
        )
        return {}

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}

    logger_to_use.info(f"Loaded configuration from {config_path}")
    return yaml_data


def _drop_derived_values(values: Dict[str, Any]) -> None:
    """
    Reset install prefixes that were derived from a version, so they are
    derived again after the YAML file or the command line changes it.
    """
    openssh_values = values.get("openssh", {})
    for prefix_key, version_key, product in (
        ("openssl_install_prefix", "openssl_version", "openssl"),
        ("openssh_install_prefix", "openssh_version", "openssh"),
    ):
        derived = f"/usr/local/{product}-{openssh_values.get(version_key)}"
        if openssh_values.get(prefix_key) == derived:
            openssh_values[prefix_key] = None


def _cli_overrides(cli_args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed command-line options onto the settings structure."""
    cli_arg_dict = vars(cli_args)
    overrides: Dict[str, Any] = {}

    if cli_arg_dict.get("yes"):
        overrides["confirm"] = True
    if cli_arg_dict.get("log_file"):
        overrides["log_file"] = cli_arg_dict["log_file"]
    if cli_arg_dict.get("no_reboot"):
        overrides.setdefault("openssh", {})["reboot"] = False
    if cli_arg_dict.get("channel"):
        overrides.setdefault("nginx", {})["channel"] = cli_arg_dict["channel"]
    if cli_arg_dict.get("minikube") is not None:
        overrides.setdefault("kubernetes", {})["install_minikube"] = (
            cli_arg_dict["minikube"]
        )

    return overrides


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Union[str, Path, None] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings with the precedence documented above.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML configuration file. Defaults to
            ``config.yaml`` in the current working directory.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        SystemExit: If the merged configuration fails validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # Model defaults < environment variables
    current_values_dict = AppSettings().model_dump(exclude_defaults=False)
    _drop_derived_values(current_values_dict)

    yaml_path = Path(config_file_path or Path.cwd() / DEFAULT_CONFIG_FILE)
    yaml_data = read_yaml_config(yaml_path, logger_to_use)
    if yaml_data:
        current_values_dict = _deep_update(current_values_dict, yaml_data)

    if cli_args:
        current_values_dict = _deep_update(
            current_values_dict, _cli_overrides(cli_args)
        )

    try:
        final_settings = AppSettings(**current_values_dict)
    except Exception as e:  # Pydantic validation errors
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug(
        "Successfully loaded and validated application settings"
    )
    return final_settings
