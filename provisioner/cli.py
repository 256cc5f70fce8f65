# provisioner/cli.py
# -*- coding: utf-8 -*-
"""
Command-line front end for the Docker Engine provisioner.

Commands:
    install      Install and configure Docker Engine.
    uninstall    Remove Docker Engine and its repository configuration.
    plan         Print the steps an install would run, without running them.
    detect       Show the detected OS and the profile it resolves to.
    show-config  Show the effective configuration.
"""

import argparse
import logging
import sys
from typing import List, Optional

from common.command_utils import command_exists, log_provision
from common.core_utils import DETAILED_LOG_FORMAT, setup_logging
from provisioner.audit_log import AuditLog
from provisioner.config_loader import load_app_settings
from provisioner.config_models import AppSettings, OperatorDecisions
from provisioner.exceptions import (
    ExcludedPlatform,
    InsufficientPrivilege,
    OperationCancelled,
    ProvisioningError,
    RequiredStepFailed,
    UnsupportedPlatform,
)
from provisioner.executor import ExecutionResult, Executor
from provisioner.os_resolver import (
    OsIdentity,
    load_host_identity,
    resolve_identity,
)
from provisioner.privilege import ensure_privileged
from provisioner.profiles import supported_ids
from provisioner.prompts import (
    AutoPrompter,
    CliPrompter,
    Prompter,
    gather_install_decisions,
    gather_uninstall_decisions,
)
from provisioner.runner import (
    ACTION_INSTALL,
    ACTION_UNINSTALL,
    build_steps,
    run_provisioning,
)

module_logger = logging.getLogger("provisioner")

EXIT_OK = 0
EXIT_REQUIRED_STEP_FAILED = 1
EXIT_PLATFORM = 2
EXIT_PRIVILEGE = 3
EXIT_CANCELLED = 130

EXIT_CODES = {
    RequiredStepFailed.kind: EXIT_REQUIRED_STEP_FAILED,
    UnsupportedPlatform.kind: EXIT_PLATFORM,
    ExcludedPlatform.kind: EXIT_PLATFORM,
    InsufficientPrivilege.kind: EXIT_PRIVILEGE,
    OperationCancelled.kind: EXIT_CANCELLED,
}


def exit_code_for(result: ExecutionResult) -> int:
    """Optional-step failures still exit 0; they are reported as warnings."""
    if result.succeeded:
        return EXIT_OK
    return EXIT_CODES.get(result.failure or "", EXIT_REQUIRED_STEP_FAILED)


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config", default=None, help="YAML configuration file."
    )
    parser.add_argument(
        "--os-release",
        default=None,
        help="Read the host identity from this file instead of /etc/os-release.",
    )
    parser.add_argument(
        "--log-file", default=None, help="Append log lines to this file."
    )
    parser.add_argument(
        "--audit-file",
        default=None,
        help="Write one JSON record per audit entry to this file.",
    )
    parser.add_argument(
        "--log-prefix", default=None, help="Prefix for every log line."
    )
    parser.add_argument(
        "--data-root",
        default=None,
        help="Docker data-root directory (default: /opt/docker-data).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill any single command after this many seconds.",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not prompt; accept every default answer.",
    )


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    all_args = args if args is not None else sys.argv[1:]

    # -v may appear before or after the command.
    global_parser = argparse.ArgumentParser(add_help=False)
    global_parser.add_argument("-v", "--verbose", action="store_true")
    global_args, remaining_args = global_parser.parse_known_args(all_args)

    parser = argparse.ArgumentParser(
        prog="docker-provision",
        description="Idempotent installer for Docker Engine.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    subparsers = parser.add_subparsers(
        dest="command", help="Command to execute", required=True
    )

    install_parser = subparsers.add_parser(
        "install", help="Install and configure Docker Engine"
    )
    _add_common_options(install_parser)
    user_group = install_parser.add_mutually_exclusive_group()
    user_group.add_argument(
        "--user",
        default=None,
        help="User to add to the docker group (default: docker).",
    )
    user_group.add_argument(
        "--no-user",
        action="store_true",
        help="Do not create or modify any user account.",
    )

    uninstall_parser = subparsers.add_parser(
        "uninstall", help="Remove Docker Engine"
    )
    _add_common_options(uninstall_parser)
    uninstall_parser.add_argument(
        "--remove-data",
        action="store_true",
        default=None,
        help="Also delete the data root, /var/lib/docker and /var/lib/containerd.",
    )

    plan_parser = subparsers.add_parser(
        "plan", help="Print the install steps without running them"
    )
    _add_common_options(plan_parser)
    plan_parser.add_argument(
        "--uninstall",
        action="store_true",
        help="Print the uninstall steps instead.",
    )

    detect_parser = subparsers.add_parser(
        "detect", help="Show the detected OS and selected profile"
    )
    _add_common_options(detect_parser)

    config_parser = subparsers.add_parser(
        "show-config", help="Show the effective configuration"
    )
    _add_common_options(config_parser)

    parsed_args = parser.parse_args(remaining_args)
    if global_args.verbose:
        parsed_args.verbose = True
    return parsed_args


def view_configuration(
    app_config: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Log the effective configuration values."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_config.symbols

    config_text = f"{symbols.get('info', 'ℹ️')} Current effective configuration values (CLI > YAML > ENV > Defaults):\n\n"
    config_text += f"  OS Release File:               {app_config.os_release_path}\n"
    config_text += f"  Log File:                      {app_config.log_file or '[console only]'}\n"
    config_text += f"  Audit File:                    {app_config.audit_file or '[none]'}\n"
    config_text += f"  Log Prefix:                    {app_config.log_prefix}\n"
    config_text += f"  Step Timeout:                  {app_config.step_timeout or '[none]'}\n\n"
    config_text += f"  Data Root:                     {app_config.data_root}\n"
    config_text += f"  Docker User:                   {app_config.docker_user or '[none]'}\n"
    config_text += f"  Docker Group:                  {app_config.docker_group}\n"
    config_text += f"  Default User Shell:            {app_config.default_user_shell}\n"
    config_text += f"  Custom User Shell:             {app_config.custom_user_shell}\n\n"
    config_text += f"  Repository Base URL:           {app_config.docker_repo_base_url}\n"
    config_text += f"  Keyring Path:                  {app_config.keyring_path}\n"
    config_text += f"  Repository File:               {app_config.repository_file}\n"
    config_text += f"  Daemon Config Path:            {app_config.daemon_config_path}\n\n"
    config_text += "  Daemon Settings (daemon.*):\n"
    config_text += f"    Log Driver:                  {app_config.daemon.log_driver}\n"
    config_text += f"    Log Max Size:                {app_config.daemon.log_max_size}\n"
    config_text += f"    Log Max File:                {app_config.daemon.log_max_file}\n"
    config_text += f"    Extra Keys:                  {app_config.daemon.extra or '{}'}\n\n"
    config_text += f"  Supported OS IDs:              {', '.join(supported_ids())}"

    log_provision(
        "Displaying current configuration:", "info", logger_to_use, app_config
    )
    log_provision(f"\n{config_text}\n", "info", logger_to_use, app_config)


def _detect(app_settings: AppSettings, logger: logging.Logger) -> int:
    identity = load_host_identity(app_settings, current_logger=logger)
    try:
        profile = resolve_identity(identity)
    except (UnsupportedPlatform, ExcludedPlatform) as e:
        log_provision(
            f"{app_settings.symbols.get('error', '❌')} {e}",
            "error",
            logger,
            app_settings,
        )
        return EXIT_PLATFORM
    log_provision(
        f"{app_settings.symbols.get('info', 'ℹ️')} docker command: {'found' if command_exists('docker') else 'not found'}",
        "info",
        logger,
        app_settings,
    )
    log_provision(
        f"{app_settings.symbols.get('success', '✅')} {identity.pretty_name or identity.id} -> "
        f"{profile.display_name} profile (family={profile.family}, package manager={profile.package_manager})",
        "success",
        logger,
        app_settings,
    )
    return EXIT_OK


def _plan(
    parsed_args: argparse.Namespace,
    app_settings: AppSettings,
    logger: logging.Logger,
) -> int:
    identity = load_host_identity(app_settings, current_logger=logger)
    try:
        profile = resolve_identity(identity)
    except (UnsupportedPlatform, ExcludedPlatform) as e:
        log_provision(
            f"{app_settings.symbols.get('error', '❌')} {e}",
            "error",
            logger,
            app_settings,
        )
        return EXIT_PLATFORM

    action = ACTION_UNINSTALL if parsed_args.uninstall else ACTION_INSTALL
    decisions = OperatorDecisions(
        data_root=app_settings.data_root,
        target_user=app_settings.docker_user,
        user_shell=app_settings.default_user_shell,
    )
    steps = build_steps(
        action, profile, identity, decisions, app_settings, current_logger=logger
    )
    lines = [f"{action.capitalize()} plan for {profile.display_name}:"]
    for index, step in enumerate(steps, start=1):
        policy = "required" if step.required else "optional"
        lines.append(f"  {index:2d}. {step.name} [{policy}]")
    log_provision("\n".join(lines), "info", logger, app_settings)
    return EXIT_OK


def _report(
    action: str,
    result: ExecutionResult,
    decisions: Optional[OperatorDecisions],
    app_settings: AppSettings,
    logger: logging.Logger,
) -> None:
    symbols = app_settings.symbols
    verb = "INSTALLED" if action == ACTION_INSTALL else "UNINSTALLED"

    if not result.succeeded:
        if result.failed_step:
            log_provision(
                f"{symbols.get('critical', '🔥')} {action.capitalize()} FAILED at step '{result.failed_step}'. "
                "Steps completed before it were not rolled back.",
                "critical",
                logger,
                app_settings,
            )
        else:
            log_provision(
                f"{symbols.get('critical', '🔥')} {result.failure_message}",
                "critical",
                logger,
                app_settings,
            )
        return

    if result.error_count:
        log_provision(
            f"{symbols.get('warning', '⚠️')} {action.capitalize()} completed with {result.error_count} warning(s)/error(s). "
            f"Review the log{': ' + app_settings.log_file if app_settings.log_file else ''}.",
            "warning",
            logger,
            app_settings,
        )
    else:
        log_provision(
            f"{symbols.get('sparkles', '✨')} SUCCESSFULLY {verb} DOCKER",
            "success",
            logger,
            app_settings,
        )

    if action == ACTION_INSTALL and decisions is not None:
        log_provision(
            f"{symbols.get('info', 'ℹ️')} Docker data root: {decisions.data_root}",
            "info",
            logger,
            app_settings,
        )
        if decisions.target_user:
            log_provision(
                f"{symbols.get('info', 'ℹ️')} '{decisions.target_user}' must log out and back in "
                f"(or run 'newgrp {app_settings.docker_group}') before using docker without sudo.",
                "info",
                logger,
                app_settings,
            )


def _provision(
    action: str,
    parsed_args: argparse.Namespace,
    app_settings: AppSettings,
    audit_log: AuditLog,
    logger: logging.Logger,
    prompter: Prompter,
) -> int:
    executor = Executor(
        audit_log=audit_log, app_settings=app_settings, executor_logger=logger
    )

    try:
        identity = load_host_identity(app_settings, current_logger=logger)
    except FileNotFoundError as e:
        logger.error(str(e))
        identity = OsIdentity(id="unknown")

    try:
        profile = resolve_identity(identity)
        ensure_privileged()
    except ProvisioningError as e:
        result = executor.record_precondition_failure(e)
        _report(action, result, None, app_settings, logger)
        return exit_code_for(result)

    question = (
        f"Install Docker Engine on {profile.display_name}?"
        if action == ACTION_INSTALL
        else f"Remove Docker Engine from {profile.display_name}?"
    )
    try:
        if not prompter.confirm(question, True):
            raise OperationCancelled()
        if action == ACTION_INSTALL:
            decisions = gather_install_decisions(
                prompter, app_settings, current_logger=logger
            )
        else:
            decisions = gather_uninstall_decisions(
                prompter, app_settings, remove_data=parsed_args.remove_data
            )
    except OperationCancelled as e:
        result = executor.record_precondition_failure(e)
        _report(action, result, None, app_settings, logger)
        return exit_code_for(result)

    result = run_provisioning(
        action, identity, decisions, app_settings, executor, current_logger=logger
    )
    _report(action, result, decisions, app_settings, logger)
    return exit_code_for(result)


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the Docker Engine provisioner."""
    parsed_args = parse_args(args)
    app_settings = load_app_settings(parsed_args, parsed_args.config)

    setup_logging(
        log_level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        log_file=app_settings.log_file,
        log_format_str=DETAILED_LOG_FORMAT if parsed_args.verbose else None,
        log_prefix=app_settings.log_prefix,
        symbols=app_settings.symbols,
    )
    logger = module_logger

    if parsed_args.command == "show-config":
        view_configuration(app_settings, current_logger=logger)
        return EXIT_OK

    try:
        if parsed_args.command == "detect":
            return _detect(app_settings, logger)
        if parsed_args.command == "plan":
            return _plan(parsed_args, app_settings, logger)
    except FileNotFoundError as e:
        logger.error(str(e))
        return EXIT_PLATFORM

    prompter: Prompter = (
        AutoPrompter()
        if parsed_args.yes
        else CliPrompter(app_settings, current_logger=logger)
    )
    audit_log = AuditLog(audit_file=app_settings.audit_file)
    try:
        return _provision(
            parsed_args.command,
            parsed_args,
            app_settings,
            audit_log,
            logger,
            prompter,
        )
    except KeyboardInterrupt:
        audit_log.error(
            OperationCancelled("Interrupted by the operator.").message,
            kind=OperationCancelled.kind,
        )
        return EXIT_CANCELLED
    finally:
        audit_log.close()


if __name__ == "__main__":
    sys.exit(main())
