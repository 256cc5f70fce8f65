# provisioner/exceptions.py
# -*- coding: utf-8 -*-
"""
Error taxonomy for provisioning runs.

Platform and privilege errors are fatal before any step runs. Step errors
describe the outcome of a single step; the executor records them in the
audit log rather than letting them escape, and ExecutionResult can re-raise
the fatal one on request.
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning errors."""

    kind = "ProvisioningError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnsupportedPlatform(ProvisioningError):
    """The host identity does not match any known installation profile."""

    kind = "UnsupportedPlatform"

    def __init__(self, os_id: str, message: Optional[str] = None):
        self.os_id = os_id
        super().__init__(
            message
            or f"Unsupported operating system '{os_id}'. Supported families: Debian/Ubuntu, Alpine, Arch, openSUSE."
        )


class ExcludedPlatform(ProvisioningError):
    """The host belongs to a family this tool deliberately does not handle."""

    kind = "ExcludedPlatform"

    def __init__(self, os_id: str, family: str, message: Optional[str] = None):
        self.os_id = os_id
        self.family = family
        super().__init__(
            message
            or f"Operating system '{os_id}' belongs to the excluded '{family}' family. "
            "Use the vendor's own Docker installation instructions for this platform."
        )


class InsufficientPrivilege(ProvisioningError):
    """The process lacks administrative privilege."""

    kind = "InsufficientPrivilege"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Administrative privilege is required. Re-run this command as root, e.g. with sudo."
        )


class StepFailed(ProvisioningError):
    """Common base for step failures; carries the step name and its output."""

    def __init__(
        self,
        step_name: str,
        output: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.step_name = step_name
        self.output = output
        super().__init__(message or f"Step '{step_name}' failed.")


class RequiredStepFailed(StepFailed):
    """A required step failed; the sequence stopped at this step."""

    kind = "RequiredStepFailed"


class OptionalStepFailed(StepFailed):
    """An optional step failed; it was recorded and the sequence continued."""

    kind = "OptionalStepFailed"


class OperationCancelled(ProvisioningError):
    """The operator declined to continue."""

    kind = "OperationCancelled"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Operation cancelled by the operator.")
