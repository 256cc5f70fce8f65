# provisioner/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the provisioner.

Handles loading settings from Pydantic model defaults, environment
variables, a YAML file and command-line arguments, applying this order of
precedence:
1. Pydantic Model Defaults
2. Environment Variables (DOCKPROV_ prefix, loaded by BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import yaml
from pydantic import ValidationError

from provisioner.config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"

# argparse destination -> AppSettings field
CLI_SETTING_KEYS = {
    "data_root": "data_root",
    "user": "docker_user",
    "log_file": "log_file",
    "audit_file": "audit_file",
    "timeout": "step_timeout",
    "os_release": "os_release_path",
    "log_prefix": "log_prefix",
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively update `source` with the values from `overrides`.

    Nested dictionaries are merged key by key; any other value replaces the
    one in `source`. A None override only lands on keys `source` lacks.
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


def _read_yaml(
    config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
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


def cli_overrides(cli_args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed CLI arguments onto AppSettings field names."""
    cli_arg_dict = vars(cli_args)
    overrides: Dict[str, Any] = {}
    for cli_key, setting_key in CLI_SETTING_KEYS.items():
        value = cli_arg_dict.get(cli_key)
        if value is not None:
            overrides[setting_key] = value
    return overrides


def _configuration_error(error: ValidationError, logger_to_use: logging.Logger) -> NoReturn:
    logger_to_use.error(f"Configuration validation failed: {error}")
    raise SystemExit(f"Configuration error: {error}") from error


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Build the effective AppSettings.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: YAML file to read. When omitted, ``config.yaml``
            in the working directory is used if present.
        current_logger: Optional logger to use instead of the module logger.

    Raises:
        SystemExit: The merged configuration does not validate.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # Defaults < environment, courtesy of BaseSettings.
    try:
        current_values_dict = AppSettings().model_dump(exclude_defaults=False)
    except ValidationError as e:
        _configuration_error(e, logger_to_use)

    if config_file_path:
        yaml_config_path = Path(config_file_path)
        if not yaml_config_path.is_file():
            logger_to_use.warning(
                f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
            )
    else:
        yaml_config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if yaml_config_path.is_file():
        current_values_dict = _deep_update(
            current_values_dict, _read_yaml(yaml_config_path, logger_to_use)
        )

    if cli_args is not None:
        current_values_dict = _deep_update(
            current_values_dict, cli_overrides(cli_args)
        )
        # --no-user is an explicit "nobody", which a None override cannot express.
        if getattr(cli_args, "no_user", False):
            current_values_dict["docker_user"] = None

    try:
        final_settings = AppSettings(**current_values_dict)
    except ValidationError as e:
        _configuration_error(e, logger_to_use)

    logger_to_use.debug("Successfully loaded and validated application settings")
    return final_settings
