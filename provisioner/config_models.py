# provisioner/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for the provisioner,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

import json
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
OS_RELEASE_PATH_DEFAULT: str = "/etc/os-release"
LOG_FILE_DEFAULT: str = "/tmp/docker-provision.log"
LOG_PREFIX_DEFAULT: str = "[DOCKER-PROVISION]"

DATA_ROOT_DEFAULT: str = "/opt/docker-data"
DOCKER_USER_DEFAULT: str = "docker"
DOCKER_GROUP_DEFAULT: str = "docker"
DEFAULT_USER_SHELL_DEFAULT: str = "/usr/sbin/nologin"
CUSTOM_USER_SHELL_DEFAULT: str = "/bin/bash"

DOCKER_REPO_BASE_URL_DEFAULT: str = "https://download.docker.com/linux"
KEYRING_PATH_DEFAULT: str = "/etc/apt/keyrings/docker.gpg"
REPOSITORY_FILE_DEFAULT: str = "/etc/apt/sources.list.d/docker.list"
DAEMON_CONFIG_PATH_DEFAULT: str = "/etc/docker/daemon.json"

USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]{0,31}\$?$")


def normalize_data_root(value: str) -> str:
    """Strip trailing slashes; reject relative paths and the filesystem root."""
    value = value.strip()
    if not value.startswith("/"):
        raise ValueError(f"data root must be an absolute path, got '{value}'")
    normalized = value.rstrip("/")
    if not normalized:
        raise ValueError("data root cannot be the filesystem root")
    return normalized


def normalize_username(value: Optional[str]) -> Optional[str]:
    """Blank means no user; anything else must be a valid login name."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not USERNAME_PATTERN.match(value):
        raise ValueError(f"'{value}' is not a valid user name")
    return value


SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}


class DaemonSettings(BaseSettings):
    """Settings rendered into the Docker daemon configuration file."""

    model_config = SettingsConfigDict(
        env_prefix="DOCKPROV_DAEMON_", extra="ignore"
    )

    log_driver: str = Field(
        default="json-file", description="Default container log driver."
    )
    log_max_size: str = Field(
        default="10m", description="Maximum size of a container log file."
    )
    log_max_file: str = Field(
        default="3", description="Number of rotated container log files kept."
    )
    extra: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional daemon.json keys merged over the generated ones.",
    )


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_prefix="DOCKPROV_", extra="ignore")

    os_release_path: str = Field(
        default=OS_RELEASE_PATH_DEFAULT,
        description="Host identity file read by the OS resolver.",
    )
    log_file: Optional[str] = Field(
        default=LOG_FILE_DEFAULT,
        description="Text log file. Set to null to log to the console only.",
    )
    audit_file: Optional[str] = Field(
        default=None,
        description="Optional JSON-lines file receiving one record per audit entry.",
    )
    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT,
        description="Prefix for console and file log lines.",
    )

    data_root: str = Field(
        default=DATA_ROOT_DEFAULT,
        description="Docker data-root directory written to daemon.json.",
    )
    docker_user: Optional[str] = Field(
        default=DOCKER_USER_DEFAULT,
        description="User added to the docker group. Null skips the user steps.",
    )
    docker_group: str = Field(
        default=DOCKER_GROUP_DEFAULT,
        description="Group granting access to the Docker socket.",
    )
    default_user_shell: str = Field(
        default=DEFAULT_USER_SHELL_DEFAULT,
        description="Login shell for the default service user when it is created.",
    )
    custom_user_shell: str = Field(
        default=CUSTOM_USER_SHELL_DEFAULT,
        description="Login shell for a named user created on request.",
    )

    step_timeout: Optional[float] = Field(
        default=None,
        description="Seconds after which a command step is killed and reported as failed.",
    )

    docker_repo_base_url: str = Field(
        default=DOCKER_REPO_BASE_URL_DEFAULT,
        description="Base URL of the Docker package repository.",
    )
    keyring_path: str = Field(
        default=KEYRING_PATH_DEFAULT,
        description="Where the dearmored repository signing key is stored.",
    )
    repository_file: str = Field(
        default=REPOSITORY_FILE_DEFAULT,
        description="APT source list file for the Docker repository.",
    )
    daemon_config_path: str = Field(
        default=DAEMON_CONFIG_PATH_DEFAULT,
        description="Path of the generated Docker daemon configuration.",
    )

    daemon: DaemonSettings = Field(default_factory=DaemonSettings)

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )

    @field_validator("step_timeout")
    @classmethod
    def _positive_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("step_timeout must be a positive number of seconds")
        return value

    @field_validator("data_root")
    @classmethod
    def _absolute_data_root(cls, value: str) -> str:
        return normalize_data_root(value)

    @field_validator("docker_user")
    @classmethod
    def _valid_docker_user(cls, value: Optional[str]) -> Optional[str]:
        return normalize_username(value)


class OperatorDecisions(BaseModel):
    """
    Already-validated answers gathered from the operator before a run.

    The executor never prompts; the CLI collects these through a prompter
    and hands them to the plan builder as plain values.
    """

    data_root: str = DATA_ROOT_DEFAULT
    target_user: Optional[str] = None
    create_user_if_missing: bool = True
    user_shell: str = DEFAULT_USER_SHELL_DEFAULT
    remove_data: bool = False

    @field_validator("data_root")
    @classmethod
    def _absolute_data_root(cls, value: str) -> str:
        return normalize_data_root(value)

    @field_validator("target_user")
    @classmethod
    def _valid_username(cls, value: Optional[str]) -> Optional[str]:
        return normalize_username(value)


def daemon_json(app_settings: AppSettings, data_root: str) -> str:
    """Render the daemon.json content for the given data root."""
    config: Dict[str, Any] = {
        "data-root": data_root,
        "log-driver": app_settings.daemon.log_driver,
        "log-opts": {
            "max-size": app_settings.daemon.log_max_size,
            "max-file": app_settings.daemon.log_max_file,
        },
    }
    config.update(app_settings.daemon.extra)
    return json.dumps(config, indent=2) + "\n"
