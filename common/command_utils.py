# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing external commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional

from provisioner.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def log_provision(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a provisioning message at the given level.

    Args:
        message (str): The log message to be recorded.
        level (str): One of "debug", "info", "success", "warning", "error"
            or "critical". "success" is logged at INFO. Defaults to "info".
        current_logger (Optional[logging.Logger]): A logger instance to use.
            If not provided, the module-level logger is used.
        app_settings (Optional[AppSettings]): Application settings. Accepted
            so every call site reads the same way; not used for routing.
        exc_info (bool): Include exception details in the record.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _symbols_for(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    if app_settings is not None and getattr(app_settings, "symbols", None):
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ["sudo"] when the process is not running as root, else [].
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the process details and results.

    Args:
        command: The command to execute, as a list of arguments.
        app_settings: Application settings providing logging symbols.
        check: Raise CalledProcessError on a non-zero exit code.
        capture_output: Capture stdout and stderr.
        text: Decode the output streams as text.
        cmd_input: Data passed to the command's standard input.
        current_logger: Logger to use instead of the module logger.
        timeout: Seconds to wait before the child is killed and
            subprocess.TimeoutExpired is raised.

    Returns:
        subprocess.CompletedProcess: The completed process.

    Raises:
        subprocess.CalledProcessError: Non-zero exit code with check=True.
        subprocess.TimeoutExpired: The command outlived its timeout.
        FileNotFoundError: The program is not installed or not in PATH.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols_for(app_settings)
    command_to_run = list(command)
    command_to_log_str = subprocess.list2cmdline(command_to_run)

    log_provision(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str}",
        "info",
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            timeout=timeout,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                log_provision(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
            if result.stderr and result.stderr.strip():
                log_provision(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
        return result
    except subprocess.CalledProcessError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            app_settings,
        )
        if e.stdout and hasattr(e.stdout, "strip") and e.stdout.strip():
            log_provision(
                f"   stdout: {e.stdout.strip()}",
                "error",
                effective_logger,
                app_settings,
            )
        if e.stderr and hasattr(e.stderr, "strip") and e.stderr.strip():
            log_provision(
                f"   stderr: {e.stderr.strip()}",
                "error",
                effective_logger,
                app_settings,
            )
        raise
    except subprocess.TimeoutExpired:
        log_provision(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` timed out after {timeout}s and was terminated.",
            "error",
            effective_logger,
            app_settings,
        )
        raise
    except FileNotFoundError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            app_settings,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with elevated privileges.

    Prefixes the command with sudo unless the process already runs as root,
    then delegates to run_command. Steps only run after the privilege guard
    has passed, so for them the prefix is always empty.
    """
    elevated_command_list = _get_elevated_command_prefix() + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        timeout=timeout,
    )


def command_exists(command_name: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(command_name) is not None
