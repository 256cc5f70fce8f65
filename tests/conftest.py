# tests/conftest.py
import logging
import os
from unittest.mock import MagicMock

import pytest

from provisioner.audit_log import AUDIT_LOGGER_NAME
from provisioner.config_models import AppSettings
from provisioner.os_resolver import OsIdentity

UBUNTU_OS_RELEASE = """\
PRETTY_NAME="Ubuntu 24.04.1 LTS"
NAME="Ubuntu"
VERSION_ID="24.04"
VERSION="24.04.1 LTS (Noble Numbat)"
VERSION_CODENAME=noble
ID=ubuntu
ID_LIKE=debian
HOME_URL="https://www.ubuntu.com/"
UBUNTU_CODENAME=noble
"""

FEDORA_OS_RELEASE = """\
NAME="Fedora Linux"
VERSION="40 (Workstation Edition)"
ID=fedora
VERSION_ID=40
PRETTY_NAME="Fedora Linux 40 (Workstation Edition)"
"""


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep DOCKPROV_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("DOCKPROV_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_audit_logger():
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    saved_handlers = list(audit_logger.handlers)
    saved_level = audit_logger.level
    yield
    for handler in list(audit_logger.handlers):
        if handler not in saved_handlers:
            audit_logger.removeHandler(handler)
    audit_logger.setLevel(saved_level)


@pytest.fixture
def app_settings():
    """AppSettings with no log file and plain symbols."""
    return AppSettings(
        log_file=None,
        log_prefix="test_prefix",
        symbols={
            "warning": "!",
            "gear": "⚙️",
            "error": "❌",
            "info": "i",
            "success": "ok",
        },
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def ubuntu_identity():
    return OsIdentity(
        id="ubuntu",
        id_like=["debian"],
        version_id="24.04",
        version_codename="noble",
        pretty_name="Ubuntu 24.04.1 LTS",
    )


@pytest.fixture
def ubuntu_os_release(tmp_path):
    path = tmp_path / "os-release"
    path.write_text(UBUNTU_OS_RELEASE, encoding="utf-8")
    return path


@pytest.fixture
def fedora_os_release(tmp_path):
    path = tmp_path / "os-release"
    path.write_text(FEDORA_OS_RELEASE, encoding="utf-8")
    return path
