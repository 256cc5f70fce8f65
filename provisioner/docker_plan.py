# provisioner/docker_plan.py
# -*- coding: utf-8 -*-
"""
Builds the ordered Step lists for installing and removing Docker Engine.

The install plan is: the profile's package commands, the data-root
directory, the daemon configuration, the service commands, the user
and group membership steps and a final health check.

Building a plan has no side effects. Host facts that only a running
system can answer (package architecture, release codename) are looked up
lazily, the first time a step that needs them executes.
"""

import grp
import logging
import os
from typing import Callable, Dict, List, Mapping, Optional

from common.command_utils import run_elevated_command
from common.system_utils import (
    get_debian_codename,
    get_dpkg_architecture,
    user_exists,
)
from provisioner.config_models import AppSettings, OperatorDecisions, daemon_json
from provisioner.os_resolver import OsIdentity
from provisioner.profiles import (
    CommandTemplate,
    InstallationProfile,
    render_context,
)
from provisioner.step import Step, command_step

module_logger = logging.getLogger(__name__)

KEY_DOWNLOAD_PATH = "/tmp/docker-archive-key.asc"
DOCKER_STATE_DIRS = ("/var/lib/docker", "/var/lib/containerd")


class TemplateContext(dict):
    """
    Placeholder values for command templates.

    Keys missing from the dict are produced on first use by the matching
    resolver and cached, so an expensive host lookup happens at most once.
    """

    def __init__(
        self,
        values: Mapping[str, str],
        resolvers: Optional[Mapping[str, Callable[[], str]]] = None,
    ):
        super().__init__(values)
        self._resolvers = dict(resolvers or {})

    def __missing__(self, key: str) -> str:
        if key not in self._resolvers:
            raise KeyError(key)
        value = self._resolvers[key]()
        self[key] = value
        return value


def host_fact_resolvers(
    identity: OsIdentity,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Callable[[], str]]:
    """Lazy lookups for the architecture and codename placeholders."""
    logger_to_use = current_logger if current_logger else module_logger

    def _arch() -> str:
        arch = get_dpkg_architecture(app_settings, current_logger=logger_to_use)
        if not arch:
            raise EnvironmentError(
                "Could not determine the package architecture for the Docker repository."
            )
        return arch

    def _codename() -> str:
        codename = identity.version_codename or get_debian_codename(
            app_settings, current_logger=logger_to_use
        )
        if not codename:
            raise EnvironmentError(
                "Could not determine the release codename for the Docker repository."
            )
        return codename

    return {"arch": _arch, "codename": _codename}


def build_context(
    profile: InstallationProfile,
    app_settings: AppSettings,
    resolvers: Optional[Mapping[str, Callable[[], str]]] = None,
) -> TemplateContext:
    values = render_context(
        profile,
        {
            "keyring": app_settings.keyring_path,
            "keyring_dir": os.path.dirname(app_settings.keyring_path) or "/",
            "key_download": KEY_DOWNLOAD_PATH,
            "repository_file": app_settings.repository_file,
            "repo_base_url": app_settings.docker_repo_base_url.rstrip("/"),
        },
    )
    return TemplateContext(values, resolvers)


def template_step(
    template: CommandTemplate,
    profile: InstallationProfile,
    context: TemplateContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Step:
    """Turn one profile command into a Step; argv is rendered when it runs."""
    logger_to_use = current_logger if current_logger else module_logger
    packages = list(profile.packages)

    def _run() -> None:
        argv, stdin = template.render(context, packages)
        run_elevated_command(
            argv,
            app_settings,
            check=True,
            capture_output=True,
            cmd_input=stdin,
            current_logger=logger_to_use,
            timeout=app_settings.step_timeout,
        )

    return Step(
        name=template.render_name(context),
        action=_run,
        required=template.required,
    )


def _run_all(
    commands: List[List[str]],
    app_settings: AppSettings,
    logger_to_use: logging.Logger,
) -> None:
    for argv in commands:
        run_elevated_command(
            argv,
            app_settings,
            check=True,
            capture_output=True,
            current_logger=logger_to_use,
            timeout=app_settings.step_timeout,
        )


def data_root_step(
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Step:
    logger_to_use = current_logger if current_logger else module_logger
    data_root = decisions.data_root

    def _run() -> None:
        _run_all(
            [
                ["mkdir", "-p", data_root],
                ["chown", "root:root", data_root],
                ["chmod", "711", data_root],
            ],
            app_settings,
            logger_to_use,
        )

    return Step(name=f"create data-root {data_root}", action=_run)


def daemon_config_step(
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Step:
    logger_to_use = current_logger if current_logger else module_logger
    config_path = app_settings.daemon_config_path
    content = daemon_json(app_settings, decisions.data_root)

    def _run() -> None:
        _run_all(
            [["mkdir", "-p", os.path.dirname(config_path) or "/"]],
            app_settings,
            logger_to_use,
        )
        run_elevated_command(
            ["tee", config_path],
            app_settings,
            check=True,
            capture_output=True,
            cmd_input=content,
            current_logger=logger_to_use,
            timeout=app_settings.step_timeout,
        )

    return Step(name=f"write {config_path}", action=_run)


def _group_exists(name: str) -> bool:
    try:
        grp.getgrnam(name)
        return True
    except KeyError:
        return False


def _create_user_argv(profile: InstallationProfile, username: str, shell: str) -> List[str]:
    # The package creates a 'docker' group; neither tool will create a
    # same-named user group over it, so join the existing one instead.
    join_group = _group_exists(username)
    if profile.user_tools == "busybox":
        argv = ["adduser", "-D", "-s", shell]
        if join_group:
            argv.extend(["-G", username])
    else:
        argv = ["useradd", "-m", "-s", shell]
        if join_group:
            argv.extend(["-g", username])
    argv.append(username)
    return argv


def _add_to_group_argv(profile: InstallationProfile, username: str, group: str) -> List[str]:
    if profile.user_tools == "busybox":
        return ["addgroup", username, group]
    return ["usermod", "-aG", group, username]


def create_user_step(
    profile: InstallationProfile,
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Step:
    """Create the target user unless the account already exists."""
    logger_to_use = current_logger if current_logger else module_logger
    username = decisions.target_user

    def _run() -> None:
        if user_exists(username):
            logger_to_use.info(f"User '{username}' already exists; not creating it.")
            return
        argv = _create_user_argv(profile, username, decisions.user_shell)
        _run_all([argv], app_settings, logger_to_use)

    return Step(name=f"create user {username}", action=_run, required=False)


def build_install_steps(
    profile: InstallationProfile,
    identity: OsIdentity,
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    resolvers: Optional[Mapping[str, Callable[[], str]]] = None,
) -> List[Step]:
    """
    Return the install plan for a resolved profile.

    Args:
        resolvers: Overrides for the lazy host lookups, keyed by placeholder.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if resolvers is None:
        resolvers = host_fact_resolvers(identity, app_settings, logger_to_use)
    context = build_context(profile, app_settings, resolvers)

    steps: List[Step] = [
        template_step(t, profile, context, app_settings, logger_to_use)
        for t in profile.install_commands
    ]
    steps.append(data_root_step(decisions, app_settings, logger_to_use))
    steps.append(daemon_config_step(decisions, app_settings, logger_to_use))
    steps.extend(
        template_step(t, profile, context, app_settings, logger_to_use)
        for t in profile.service_commands
    )

    if decisions.target_user:
        if decisions.create_user_if_missing:
            steps.append(create_user_step(profile, decisions, app_settings, logger_to_use))
        steps.append(
            command_step(
                f"add {decisions.target_user} to {app_settings.docker_group} group",
                _add_to_group_argv(profile, decisions.target_user, app_settings.docker_group),
                required=False,
                timeout=app_settings.step_timeout,
                app_settings=app_settings,
                current_logger=logger_to_use,
            )
        )

    steps.append(
        command_step(
            "check docker health",
            ["docker", "info"],
            required=False,
            timeout=app_settings.step_timeout,
            app_settings=app_settings,
            current_logger=logger_to_use,
        )
    )
    return steps


def build_uninstall_steps(
    profile: InstallationProfile,
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> List[Step]:
    """
    Return the removal plan: stop the service, remove packages and
    repository configuration, and optionally delete Docker's data.
    """
    logger_to_use = current_logger if current_logger else module_logger
    context = build_context(profile, app_settings)

    steps: List[Step] = [
        template_step(t, profile, context, app_settings, logger_to_use)
        for t in profile.service_stop_commands
    ]
    steps.extend(
        template_step(t, profile, context, app_settings, logger_to_use)
        for t in profile.uninstall_commands
    )
    steps.append(
        command_step(
            f"remove {app_settings.daemon_config_path}",
            ["rm", "-f", app_settings.daemon_config_path],
            required=False,
            timeout=app_settings.step_timeout,
            app_settings=app_settings,
            current_logger=logger_to_use,
        )
    )

    if decisions.remove_data:
        for path in (decisions.data_root,) + DOCKER_STATE_DIRS:
            steps.append(
                command_step(
                    f"remove {path}",
                    ["rm", "-rf", path],
                    required=False,
                    timeout=app_settings.step_timeout,
                    app_settings=app_settings,
                    current_logger=logger_to_use,
                )
            )
    return steps
