# provisioner/prompts.py
# -*- coding: utf-8 -*-
"""
Operator interaction for the CLI.

Questions are asked through a Prompter before any step runs. The answers
become an OperatorDecisions value; the executor and the steps never prompt.
"""

import logging
from typing import Callable, Optional, Protocol

from pydantic import ValidationError

from common.command_utils import log_provision
from common.system_utils import user_exists
from provisioner.config_models import (
    DOCKER_USER_DEFAULT,
    AppSettings,
    OperatorDecisions,
    normalize_data_root,
)
from provisioner.exceptions import OperationCancelled

module_logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class Prompter(Protocol):
    def ask(self, question: str, default: str = "") -> str: ...

    def confirm(self, question: str, default: bool = False) -> bool: ...


class CliPrompter:
    """
    Reads answers from standard input.

    End of input is treated as accepting the default, so a closed stdin
    never blocks or crashes a run.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        current_logger: Optional[logging.Logger] = None,
        input_func: Callable[[str], str] = input,
    ):
        self.app_settings = app_settings
        self.logger = current_logger if current_logger else module_logger
        self._input = input_func

    def _read(self, prompt: str, question: str) -> Optional[str]:
        try:
            return self._input(prompt).strip()
        except EOFError:
            log_provision(
                f"{self.app_settings.symbols.get('warning', '!')} No user input (EOF), using the default for: '{question}'",
                "warning",
                self.logger,
                self.app_settings,
            )
            return None

    def ask(self, question: str, default: str = "") -> str:
        symbol = self.app_settings.symbols.get("info", "ℹ️")
        suffix = f" [{default}]" if default else ""
        answer = self._read(f"   {symbol} {question}{suffix}: ", question)
        return answer if answer else default

    def confirm(self, question: str, default: bool = False) -> bool:
        symbol = self.app_settings.symbols.get("info", "ℹ️")
        hint = "Y/n" if default else "y/N"
        answer = self._read(f"   {symbol} {question} ({hint}): ", question)
        if not answer:
            return default
        return answer.lower() in ("y", "yes")


class AutoPrompter:
    """Answers every question with its default (``--yes``)."""

    def ask(self, question: str, default: str = "") -> str:
        return default

    def confirm(self, question: str, default: bool = False) -> bool:
        return default


def _ask_data_root(
    prompter: Prompter, app_settings: AppSettings, logger_to_use: logging.Logger
) -> str:
    try:
        default_root = normalize_data_root(app_settings.data_root)
    except ValueError as e:
        log_provision(
            f"{app_settings.symbols.get('warning', '!')} Ignoring the configured data root: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        default_root = ""

    if default_root and prompter.confirm(f"Use '{default_root}' as the Docker data root?", True):
        return default_root

    for _ in range(MAX_ATTEMPTS):
        answer = prompter.ask("Enter the full path for the Docker data root", default_root)
        try:
            return OperatorDecisions(data_root=answer).data_root
        except ValidationError as e:
            log_provision(
                f"{app_settings.symbols.get('warning', '!')} Invalid data root '{answer}': {e.errors()[0]['msg']}",
                "warning",
                logger_to_use,
                app_settings,
            )
    raise OperationCancelled("No valid data root given.")


def gather_install_decisions(
    prompter: Prompter,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    user_lookup: Callable[[str], bool] = user_exists,
) -> OperatorDecisions:
    """
    Ask where Docker keeps its data and which user joins the docker group.

    The user choice is one of: the configured default user (created with a
    non-login shell if missing), a named existing user, a named new user
    with a login shell, or nobody.
    """
    logger_to_use = current_logger if current_logger else module_logger
    data_root = _ask_data_root(prompter, app_settings, logger_to_use)

    default_user = app_settings.docker_user
    if default_user and prompter.confirm(
        f"Add the default user '{default_user}' to the '{app_settings.docker_group}' group "
        "(created if it does not exist)?",
        True,
    ):
        return OperatorDecisions(
            data_root=data_root,
            target_user=default_user,
            create_user_if_missing=True,
            user_shell=(
                app_settings.default_user_shell
                if default_user == DOCKER_USER_DEFAULT
                else app_settings.custom_user_shell
            ),
        )

    for _ in range(MAX_ATTEMPTS):
        name = prompter.ask(
            f"User to add to the '{app_settings.docker_group}' group (leave empty to skip)", ""
        ).strip()
        if not name:
            logger_to_use.info("No user will be added to the docker group.")
            return OperatorDecisions(data_root=data_root, target_user=None)
        try:
            OperatorDecisions(target_user=name)
        except ValidationError:
            log_provision(
                f"{app_settings.symbols.get('warning', '!')} '{name}' is not a valid user name.",
                "warning",
                logger_to_use,
                app_settings,
            )
            continue

        if user_lookup(name):
            return OperatorDecisions(
                data_root=data_root,
                target_user=name,
                create_user_if_missing=False,
                user_shell=app_settings.custom_user_shell,
            )
        if prompter.confirm(f"User '{name}' does not exist. Create it?", True):
            return OperatorDecisions(
                data_root=data_root,
                target_user=name,
                create_user_if_missing=True,
                user_shell=app_settings.custom_user_shell,
            )
        logger_to_use.info(f"User '{name}' not created; skipping the user steps.")
        return OperatorDecisions(data_root=data_root, target_user=None)

    return OperatorDecisions(data_root=data_root, target_user=None)


def gather_uninstall_decisions(
    prompter: Prompter,
    app_settings: AppSettings,
    remove_data: Optional[bool] = None,
) -> OperatorDecisions:
    """Ask whether Docker's data directories should be deleted as well."""
    if remove_data is None:
        remove_data = prompter.confirm(
            f"Also delete all images, containers and volumes under '{app_settings.data_root}' "
            "and /var/lib/docker?",
            False,
        )
    return OperatorDecisions(data_root=app_settings.data_root, remove_data=remove_data)
