# provisioner/step.py
# -*- coding: utf-8 -*-
"""
A Step is one named unit of privileged provisioning work.

Its action takes no arguments. Returning False or raising marks the step
as failed; any other return value (including None) marks it as succeeded.
"""

import logging
import subprocess
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from common.command_utils import run_elevated_command
from provisioner.config_models import AppSettings

module_logger = logging.getLogger(__name__)


class Step(BaseModel):
    """A named unit of work with a required/optional failure policy."""

    model_config = ConfigDict(frozen=True)

    name: str
    action: Callable[[], Any]
    required: bool = True


def _stream_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").strip()
    return str(value).strip()


def describe_failure(error: BaseException) -> str:
    """
    Build the diagnostic text recorded for a failed step.

    Failed and timed-out subprocesses contribute their captured output.
    """
    if isinstance(error, subprocess.CalledProcessError):
        lines = [f"exit status {error.returncode}"]
    elif isinstance(error, subprocess.TimeoutExpired):
        lines = [f"timed out after {error.timeout}s; process terminated"]
    elif isinstance(error, FileNotFoundError) and error.filename:
        return f"command not found: {error.filename}"
    else:
        return f"{type(error).__name__}: {error}"

    stdout = _stream_text(error.stdout)
    stderr = _stream_text(error.stderr)
    if stdout:
        lines.append(f"stdout: {stdout}")
    if stderr:
        lines.append(f"stderr: {stderr}")
    return "\n".join(lines)


def command_step(
    name: str,
    argv: List[str],
    required: bool = True,
    timeout: Optional[float] = None,
    cmd_input: Optional[str] = None,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Step:
    """
    Build a Step that runs one external command with output captured.

    A non-zero exit status, a missing program or an expired timeout all
    surface as exceptions, which the executor records as the step failure.
    """
    logger_to_use = current_logger if current_logger else module_logger
    command = list(argv)

    def _run() -> None:
        run_elevated_command(
            command,
            app_settings,
            check=True,
            capture_output=True,
            cmd_input=cmd_input,
            current_logger=logger_to_use,
            timeout=timeout,
        )

    return Step(name=name, action=_run, required=required)
