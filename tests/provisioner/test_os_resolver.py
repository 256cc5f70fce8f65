# tests/provisioner/test_os_resolver.py
# -*- coding: utf-8 -*-
"""
Tests for OS identity parsing and profile resolution.
"""

import pytest

from provisioner.config_models import AppSettings
from provisioner.exceptions import ExcludedPlatform, UnsupportedPlatform
from provisioner.os_resolver import (
    OsIdentity,
    load_host_identity,
    resolve_identity,
    resolve_profile,
)
from provisioner.profiles import (
    ALPINE_PROFILE,
    ARCH_PROFILE,
    DEBIAN_PROFILE,
    OPENSUSE_PROFILE,
    UBUNTU_PROFILE,
)


class TestResolveProfile:
    """Tests for resolve_profile()."""

    @pytest.mark.parametrize(
        "os_id, expected",
        [
            ("ubuntu", UBUNTU_PROFILE),
            ("debian", DEBIAN_PROFILE),
            ("alpine", ALPINE_PROFILE),
            ("arch", ARCH_PROFILE),
        ],
    )
    def test_exact_id(self, os_id, expected):
        assert resolve_profile(os_id) == expected

    def test_case_insensitive(self):
        assert resolve_profile("  UBUNTU ") == UBUNTU_PROFILE
        assert resolve_profile("LinuxMint", "UBUNTU Debian") == UBUNTU_PROFILE

    def test_exact_id_wins_over_like(self):
        assert resolve_profile("debian", "ubuntu") == DEBIAN_PROFILE

    def test_like_tokens_tried_in_order(self):
        assert resolve_profile("linuxmint", "ubuntu debian") == UBUNTU_PROFILE
        assert resolve_profile("kali", ["debian"]) == DEBIAN_PROFILE
        assert resolve_profile("manjaro", "arch") == ARCH_PROFILE
        assert resolve_profile("opensuse-microos", "suse opensuse") == OPENSUSE_PROFILE

    @pytest.mark.parametrize("os_id", ["fedora", "rhel", "centos", "rocky", "almalinux"])
    def test_red_hat_family_is_excluded(self, os_id):
        with pytest.raises(ExcludedPlatform) as excinfo:
            resolve_profile(os_id)
        assert excinfo.value.family == "redhat"
        assert excinfo.value.kind == "ExcludedPlatform"

    def test_excluded_through_like(self):
        with pytest.raises(ExcludedPlatform) as excinfo:
            resolve_profile("nobara", "fedora")
        assert excinfo.value.os_id == "nobara"

    def test_unknown_is_unsupported(self):
        with pytest.raises(UnsupportedPlatform) as excinfo:
            resolve_profile("gentoo")
        assert excinfo.value.os_id == "gentoo"
        assert not isinstance(excinfo.value, ExcludedPlatform)

    def test_empty_id_is_unsupported(self):
        with pytest.raises(UnsupportedPlatform):
            resolve_profile("")

    def test_excluded_and_unsupported_messages_differ(self):
        with pytest.raises(ExcludedPlatform) as excluded:
            resolve_profile("fedora")
        with pytest.raises(UnsupportedPlatform) as unsupported:
            resolve_profile("gentoo")
        assert str(excluded.value) != str(unsupported.value)

    def test_same_input_same_outcome(self):
        results = {resolve_profile("linuxmint", "ubuntu").os_id for _ in range(5)}
        assert results == {"ubuntu"}
        for _ in range(3):
            with pytest.raises(ExcludedPlatform):
                resolve_profile("centos", "rhel fedora")


class TestOsIdentity:
    """Tests for building and loading the host identity."""

    def test_from_os_release_prefers_ubuntu_codename(self):
        identity = OsIdentity.from_os_release(
            {
                "ID": "linuxmint",
                "ID_LIKE": "ubuntu debian",
                "VERSION_CODENAME": "wilma",
                "UBUNTU_CODENAME": "noble",
            }
        )
        assert identity.id_like == ["ubuntu", "debian"]
        assert identity.version_codename == "noble"
        assert resolve_identity(identity) == UBUNTU_PROFILE

    def test_from_os_release_defaults(self):
        identity = OsIdentity.from_os_release({})
        assert identity.id == "linux"
        assert identity.id_like == []
        assert identity.version_codename is None

    def test_load_host_identity(self, ubuntu_os_release, mock_logger):
        settings = AppSettings(os_release_path=str(ubuntu_os_release), log_file=None)

        identity = load_host_identity(settings, current_logger=mock_logger)

        assert identity.id == "ubuntu"
        assert identity.version_id == "24.04"
        assert identity.pretty_name == "Ubuntu 24.04.1 LTS"
        mock_logger.info.assert_called_once()

    def test_load_host_identity_missing_file(self, tmp_path, mock_logger):
        settings = AppSettings(os_release_path=str(tmp_path / "absent"), log_file=None)

        with pytest.raises(FileNotFoundError):
            load_host_identity(settings, current_logger=mock_logger)
