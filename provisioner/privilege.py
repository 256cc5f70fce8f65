# provisioner/privilege.py
# -*- coding: utf-8 -*-
"""
Privileged-action guard.

Provisioning steps change the package database, /etc and the service
manager, so they only run when the process already has administrative
privilege. The guard never re-executes the process under sudo; elevating
is left to whoever invoked the tool.
"""

from typing import Callable, Optional

from common.system_utils import is_running_as_root
from provisioner.exceptions import InsufficientPrivilege


def ensure_privileged(
    is_privileged: Optional[Callable[[], bool]] = None,
) -> None:
    """
    Raise InsufficientPrivilege unless the privilege check passes.

    Args:
        is_privileged: Zero-argument check. Defaults to an effective-uid-0 test.
    """
    check = is_privileged if is_privileged is not None else is_running_as_root
    if not check():
        raise InsufficientPrivilege()
