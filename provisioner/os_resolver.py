# provisioner/os_resolver.py
# -*- coding: utf-8 -*-
"""
Maps host identity data to exactly one InstallationProfile.

resolve_profile() is a pure function of its arguments: no file, network or
process access. Reading /etc/os-release happens separately in
load_host_identity(), so resolution can be tested without a real host.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field

from common.system_utils import read_os_release
from provisioner.config_models import AppSettings
from provisioner.exceptions import ExcludedPlatform, UnsupportedPlatform
from provisioner.profiles import (
    EXCLUDED_FAMILIES,
    PROFILES_BY_ID,
    PROFILES_BY_LIKE,
    InstallationProfile,
)

module_logger = logging.getLogger(__name__)


class OsIdentity(BaseModel):
    """The subset of os-release fields the resolver and plan builder use."""

    id: str
    id_like: List[str] = Field(default_factory=list)
    version_id: Optional[str] = None
    version_codename: Optional[str] = None
    pretty_name: Optional[str] = None

    @classmethod
    def from_os_release(cls, data: Dict[str, str]) -> "OsIdentity":
        # Ubuntu derivatives (Mint, Pop!_OS) carry the upstream codename here,
        # and that is the one the Docker repository knows about.
        codename = data.get("UBUNTU_CODENAME") or data.get("VERSION_CODENAME")
        return cls(
            id=data.get("ID", "linux"),
            id_like=data.get("ID_LIKE", "").split(),
            version_id=data.get("VERSION_ID") or None,
            version_codename=codename or None,
            pretty_name=data.get("PRETTY_NAME") or None,
        )


def _normalize(value: str) -> str:
    return value.strip().lower()


def _like_tokens(id_like: Union[str, Iterable[str], None]) -> List[str]:
    if not id_like:
        return []
    if isinstance(id_like, str):
        id_like = id_like.split()
    return [_normalize(token) for token in id_like if token.strip()]


def resolve_profile(
    os_id: str, id_like: Union[str, Iterable[str], None] = None
) -> InstallationProfile:
    """
    Select the installation profile for an OS identifier.

    Matching is case-insensitive. A direct identifier match wins over the
    ID_LIKE hint; hint tokens are tried in the order given.

    Raises:
        ExcludedPlatform: The identifier, or the first recognized hint,
            belongs to a deliberately excluded family.
        UnsupportedPlatform: Nothing matched.
    """
    normalized_id = _normalize(os_id or "")

    if normalized_id in PROFILES_BY_ID:
        return PROFILES_BY_ID[normalized_id]
    if normalized_id in EXCLUDED_FAMILIES:
        raise ExcludedPlatform(normalized_id, EXCLUDED_FAMILIES[normalized_id])

    for token in _like_tokens(id_like):
        if token in PROFILES_BY_LIKE:
            return PROFILES_BY_LIKE[token]
        if token in EXCLUDED_FAMILIES:
            raise ExcludedPlatform(normalized_id, EXCLUDED_FAMILIES[token])

    raise UnsupportedPlatform(normalized_id or "unknown")


def resolve_identity(identity: OsIdentity) -> InstallationProfile:
    """resolve_profile() for a parsed OsIdentity."""
    return resolve_profile(identity.id, identity.id_like)


def load_host_identity(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> OsIdentity:
    """Read the identity file named in the settings."""
    logger_to_use = current_logger if current_logger else module_logger
    data = read_os_release(
        app_settings.os_release_path,
        app_settings=app_settings,
        current_logger=logger_to_use,
    )
    identity = OsIdentity.from_os_release(data)
    logger_to_use.info(
        f"Detected OS={identity.id} version={identity.version_id or '?'} codename={identity.version_codename or '?'}"
    )
    return identity
