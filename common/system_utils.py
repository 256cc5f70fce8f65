# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the provisioner.

This module includes functions for inspecting the host: privilege level,
the os-release identity file, the package architecture, the distribution
codename and local user accounts.
"""

import logging
import os
import pwd
import shlex
import subprocess
from pathlib import Path
from typing import Dict, Optional

from common.command_utils import log_provision, run_command
from provisioner.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def is_running_as_root() -> bool:
    """Return True when the effective user id is 0."""
    return os.geteuid() == 0


def parse_os_release(content: str) -> Dict[str, str]:
    """
    Parse the KEY=value lines of an os-release file.

    Values follow shell quoting rules, so quotes and escapes are handled
    with shlex. Blank lines, comments and malformed lines are skipped.
    Keys are returned exactly as written (upper case by convention).
    """
    data: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw_value = line.partition("=")
        key = key.strip()
        if not key:
            continue
        try:
            parts = shlex.split(raw_value, comments=False, posix=True)
        except ValueError:
            parts = [raw_value.strip().strip("\"'")]
        data[key] = " ".join(parts)
    return data


def read_os_release(
    path: str = "/etc/os-release",
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """
    Read and parse the host identity file.

    Falls back to /usr/lib/os-release when the default path is missing,
    as systemd documents. Raises FileNotFoundError when neither exists.
    """
    logger_to_use = current_logger if current_logger else module_logger
    candidates = [Path(path)]
    if path == "/etc/os-release":
        candidates.append(Path("/usr/lib/os-release"))

    for candidate in candidates:
        if candidate.is_file():
            log_provision(
                f"Reading host identity from {candidate}",
                "debug",
                logger_to_use,
                app_settings,
            )
            return parse_os_release(candidate.read_text(encoding="utf-8"))

    raise FileNotFoundError(f"Host identity file not found: {path}")


def get_dpkg_architecture(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Get the Debian package architecture (e.g. 'amd64', 'arm64').
    Returns None when dpkg is unavailable or fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    try:
        result = run_command(
            ["dpkg", "--print-architecture"],
            app_settings,
            capture_output=True,
            check=True,
            current_logger=logger_to_use,
        )
        arch = (result.stdout or "").strip()
        return arch or None
    except (FileNotFoundError, subprocess.CalledProcessError):
        log_provision(
            f"{symbols.get('warning', '!')} Could not determine the dpkg architecture.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None


def get_debian_codename(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Get the distribution codename (e.g. 'bookworm', 'noble') from lsb_release.

    Only used when the identity file carries no codename.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    try:
        result = run_command(
            ["lsb_release", "-cs"],
            app_settings,
            capture_output=True,
            check=True,
            current_logger=logger_to_use,
        )
        codename = (result.stdout or "").strip()
        return codename or None
    except FileNotFoundError:
        log_provision(
            f"{symbols.get('warning', '!')} lsb_release command not found. Cannot determine the codename.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None
    except subprocess.CalledProcessError:
        # run_command has already logged the failure.
        return None


def user_exists(username: str) -> bool:
    """Return True if a local account with this name exists."""
    try:
        pwd.getpwnam(username)
        return True
    except KeyError:
        return False
