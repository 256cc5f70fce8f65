# provisioner/runner.py
# -*- coding: utf-8 -*-
"""
Ties the pieces together: resolve the host to a profile, build the step
plan and hand it to the executor.

Platform resolution happens before the executor is involved. When it
fails, the failure is still recorded through the executor so the audit log
holds exactly one entry explaining why nothing ran.
"""

import logging
from typing import Callable, List, Mapping, Optional

from provisioner.config_models import AppSettings, OperatorDecisions
from provisioner.docker_plan import build_install_steps, build_uninstall_steps
from provisioner.exceptions import ExcludedPlatform, UnsupportedPlatform
from provisioner.executor import ExecutionResult, Executor
from provisioner.os_resolver import OsIdentity, resolve_identity
from provisioner.profiles import InstallationProfile
from provisioner.step import Step

module_logger = logging.getLogger(__name__)

ACTION_INSTALL = "install"
ACTION_UNINSTALL = "uninstall"


def build_steps(
    action: str,
    profile: InstallationProfile,
    identity: OsIdentity,
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    resolvers: Optional[Mapping[str, Callable[[], str]]] = None,
) -> List[Step]:
    if action == ACTION_INSTALL:
        return build_install_steps(
            profile,
            identity,
            decisions,
            app_settings,
            current_logger=current_logger,
            resolvers=resolvers,
        )
    if action == ACTION_UNINSTALL:
        return build_uninstall_steps(
            profile, decisions, app_settings, current_logger=current_logger
        )
    raise ValueError(f"Unknown action '{action}'")


def run_provisioning(
    action: str,
    identity: OsIdentity,
    decisions: OperatorDecisions,
    app_settings: AppSettings,
    executor: Executor,
    current_logger: Optional[logging.Logger] = None,
    resolvers: Optional[Mapping[str, Callable[[], str]]] = None,
) -> ExecutionResult:
    """
    Run the install or uninstall plan for the given host identity.

    Returns:
        The executor's result. Platform failures come back as a failed
        result with a single audit entry and no steps attempted.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        profile = resolve_identity(identity)
    except (UnsupportedPlatform, ExcludedPlatform) as e:
        logger_to_use.error(str(e))
        return executor.record_precondition_failure(e)

    logger_to_use.info(
        f"Using the {profile.display_name} profile ({profile.package_manager}) for '{identity.id}'."
    )
    steps = build_steps(
        action,
        profile,
        identity,
        decisions,
        app_settings,
        current_logger=logger_to_use,
        resolvers=resolvers,
    )
    return executor.run(steps, profile=profile.os_id)
