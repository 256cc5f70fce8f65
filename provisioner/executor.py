# provisioner/executor.py
# -*- coding: utf-8 -*-
"""
Sequential executor for provisioning steps.

Steps run strictly in order, one at a time. A failed required step stops
the run; a failed optional step is counted and the run continues. Nothing
that already succeeded is rolled back.
"""

import logging
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, Field

from common.command_utils import log_provision
from provisioner.audit_log import AuditLog, LogEntry
from provisioner.config_models import SYMBOLS_DEFAULT, AppSettings
from provisioner.exceptions import (
    ExcludedPlatform,
    InsufficientPrivilege,
    OptionalStepFailed,
    ProvisioningError,
    RequiredStepFailed,
    UnsupportedPlatform,
)
from provisioner.privilege import ensure_privileged
from provisioner.step import Step, describe_failure

module_logger = logging.getLogger(__name__)


class ExecutionResult(BaseModel):
    """Outcome of one executor run."""

    succeeded: bool
    error_count: int = 0
    log: List[LogEntry] = Field(default_factory=list)
    failure: Optional[str] = None
    failure_message: Optional[str] = None
    failed_step: Optional[str] = None
    steps_attempted: int = 0
    profile: Optional[str] = None
    os_id: Optional[str] = None

    def raise_for_failure(self) -> None:
        """Raise the exception matching a fatal failure; no-op on success."""
        if self.succeeded:
            return
        message = self.failure_message
        if self.failure == UnsupportedPlatform.kind:
            raise UnsupportedPlatform(self.os_id or "unknown", message)
        if self.failure == ExcludedPlatform.kind:
            raise ExcludedPlatform(self.os_id or "unknown", "excluded", message)
        if self.failure == InsufficientPrivilege.kind:
            raise InsufficientPrivilege(message)
        if self.failure == RequiredStepFailed.kind:
            output = self.log[-1].output if self.log else None
            raise RequiredStepFailed(
                self.failed_step or "unknown", output, message
            )
        raise ProvisioningError(message or "Provisioning failed.")


class Executor:
    """
    Runs an ordered sequence of Steps and produces an ExecutionResult.

    Args:
        audit_log: Where step outcomes are recorded. A fresh AuditLog is
            created when omitted.
        app_settings: Settings used for log symbols.
        privilege_check: Zero-argument callable returning True when the
            process may run privileged steps. Defaults to an euid check.
        executor_logger: Logger for progress messages.
    """

    def __init__(
        self,
        audit_log: Optional[AuditLog] = None,
        app_settings: Optional[AppSettings] = None,
        privilege_check: Optional[Callable[[], bool]] = None,
        executor_logger: Optional[logging.Logger] = None,
    ):
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.app_settings = app_settings
        self.privilege_check = privilege_check
        self.logger = executor_logger or module_logger
        self.symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT

    def record_precondition_failure(
        self, error: ProvisioningError, profile: Optional[str] = None
    ) -> ExecutionResult:
        """
        Record a fatal failure that happened before any step could run.

        Adds exactly one error entry and returns a failed result with zero
        steps attempted.
        """
        start = len(self.audit_log)
        self.audit_log.error(str(error), kind=error.kind)
        return ExecutionResult(
            succeeded=False,
            error_count=0,
            log=self.audit_log.entries[start:],
            failure=error.kind,
            failure_message=str(error),
            steps_attempted=0,
            profile=profile,
            os_id=getattr(error, "os_id", None),
        )

    def run(
        self, steps: Iterable[Step], profile: Optional[str] = None
    ) -> ExecutionResult:
        """
        Execute the steps in order.

        The privilege guard runs first; when it fails, no step is attempted.
        """
        try:
            ensure_privileged(self.privilege_check)
        except InsufficientPrivilege as e:
            log_provision(
                f"{self.symbols.get('critical', '🔥')} {e}",
                "critical",
                self.logger,
                self.app_settings,
            )
            return self.record_precondition_failure(e, profile=profile)

        start = len(self.audit_log)
        error_count = 0
        attempted = 0

        for index, step in enumerate(steps, start=1):
            attempted += 1
            log_provision(
                f"--- {self.symbols.get('step', '➡️')} Stage {index}: {step.name} ---",
                "info",
                self.logger,
                self.app_settings,
            )

            output: Optional[str] = None
            try:
                succeeded = step.action() is not False
            except Exception as e:
                succeeded = False
                output = describe_failure(e)
                log_provision(
                    f"{self.symbols.get('error', '❌')} Step '{step.name}' raised: {output}",
                    "debug",
                    self.logger,
                    self.app_settings,
                    exc_info=True,
                )

            if succeeded:
                self.audit_log.ok(f"OK: {step.name}", step=step.name)
                continue

            if step.required:
                self.audit_log.error(
                    f"FAIL: {step.name}",
                    step=step.name,
                    kind=RequiredStepFailed.kind,
                    output=output,
                )
                log_provision(
                    f"{self.symbols.get('critical', '🔥')} Required step '{step.name}' failed. Halting; earlier steps are not rolled back.",
                    "error",
                    self.logger,
                    self.app_settings,
                )
                return ExecutionResult(
                    succeeded=False,
                    error_count=error_count,
                    log=self.audit_log.entries[start:],
                    failure=RequiredStepFailed.kind,
                    failure_message=f"Required step '{step.name}' failed.",
                    failed_step=step.name,
                    steps_attempted=attempted,
                    profile=profile,
                )

            error_count += 1
            self.audit_log.error(
                f"FAIL: {step.name}",
                step=step.name,
                kind=OptionalStepFailed.kind,
                output=output,
            )
            log_provision(
                f"{self.symbols.get('warning', '⚠️')} Optional step '{step.name}' failed. Continuing.",
                "warning",
                self.logger,
                self.app_settings,
            )

        log_provision(
            f"{self.symbols.get('sparkles', '✨')} Ran {attempted} step(s) with {error_count} optional failure(s).",
            "info",
            self.logger,
            self.app_settings,
        )
        return ExecutionResult(
            succeeded=True,
            error_count=error_count,
            log=self.audit_log.entries[start:],
            steps_attempted=attempted,
            profile=profile,
        )
