# tests/provisioner/test_docker_plan.py
# -*- coding: utf-8 -*-
"""
Tests for the Docker install and uninstall plans.
"""

import json
from unittest.mock import MagicMock

import pytest

from provisioner.config_models import OperatorDecisions
from provisioner.docker_plan import (
    TemplateContext,
    build_install_steps,
    build_uninstall_steps,
    host_fact_resolvers,
)
from provisioner.os_resolver import OsIdentity
from provisioner.profiles import ALPINE_PROFILE, UBUNTU_PROFILE


@pytest.fixture
def mock_run(mocker):
    mock = mocker.patch("provisioner.docker_plan.run_elevated_command")
    mocker.patch("provisioner.step.run_elevated_command", mock)
    return mock


@pytest.fixture
def resolvers():
    return {"arch": MagicMock(return_value="amd64"), "codename": MagicMock(return_value="noble")}


def _names(steps):
    return [step.name for step in steps]


def _step(steps, name):
    return next(step for step in steps if step.name == name)


class TestTemplateContext:
    def test_resolver_is_called_once(self):
        resolver = MagicMock(return_value="arm64")
        context = TemplateContext({"os_id": "debian"}, {"arch": resolver})

        assert "{os_id}/{arch}/{arch}".format_map(context) == "debian/arm64/arm64"
        resolver.assert_called_once_with()

    def test_unknown_key_raises(self):
        with pytest.raises(KeyError):
            TemplateContext({})["missing"]


class TestHostFactResolvers:
    def test_codename_comes_from_identity(self, mocker, app_settings):
        lookup = mocker.patch("provisioner.docker_plan.get_debian_codename")
        identity = OsIdentity(id="ubuntu", version_codename="jammy")

        assert host_fact_resolvers(identity, app_settings)["codename"]() == "jammy"
        lookup.assert_not_called()

    def test_codename_falls_back_to_lsb_release(self, mocker, app_settings):
        mocker.patch("provisioner.docker_plan.get_debian_codename", return_value="bookworm")
        identity = OsIdentity(id="debian")

        assert host_fact_resolvers(identity, app_settings)["codename"]() == "bookworm"

    def test_unknown_architecture_raises(self, mocker, app_settings):
        mocker.patch("provisioner.docker_plan.get_dpkg_architecture", return_value=None)
        identity = OsIdentity(id="debian")

        with pytest.raises(EnvironmentError):
            host_fact_resolvers(identity, app_settings)["arch"]()


class TestBuildInstallSteps:
    """Tests for build_install_steps()."""

    def test_debian_plan_order(self, app_settings, ubuntu_identity, resolvers):
        decisions = OperatorDecisions(target_user="docker")

        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, decisions, app_settings, resolvers=resolvers
        )
        names = _names(steps)

        assert names[0] == "apt update"
        assert names.index("add Docker repository") < names.index(
            "install docker packages (docker-ce docker-ce-cli containerd.io docker-buildx-plugin docker-compose-plugin)"
        )
        assert names.index("create data-root /opt/docker-data") < names.index("write /etc/docker/daemon.json")
        assert names.index("write /etc/docker/daemon.json") < names.index("start docker service")
        assert names[-3:] == ["create user docker", "add docker to docker group", "check docker health"]
        assert "create keyring directory /etc/apt/keyrings" in names

    def test_building_has_no_side_effects(self, app_settings, ubuntu_identity, resolvers, mock_run):
        build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, OperatorDecisions(), app_settings, resolvers=resolvers
        )

        mock_run.assert_not_called()
        resolvers["arch"].assert_not_called()
        resolvers["codename"].assert_not_called()

    def test_repository_step_renders_source_line(self, app_settings, ubuntu_identity, resolvers, mock_run):
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, OperatorDecisions(), app_settings, resolvers=resolvers
        )

        _step(steps, "add Docker repository").action()

        args, kwargs = mock_run.call_args
        assert args[0] == ["tee", "/etc/apt/sources.list.d/docker.list"]
        assert kwargs["cmd_input"] == (
            "deb [arch=amd64 signed-by=/etc/apt/keyrings/docker.gpg] "
            "https://download.docker.com/linux/ubuntu noble stable\n"
        )
        assert kwargs["check"] is True

    def test_key_download_uses_os_id(self, app_settings, ubuntu_identity, resolvers, mock_run):
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, OperatorDecisions(), app_settings, resolvers=resolvers
        )

        _step(steps, "download Docker GPG key").action()

        argv = mock_run.call_args[0][0]
        assert argv[:3] == ["curl", "-fsSL", "https://download.docker.com/linux/ubuntu/gpg"]

    def test_timeout_reaches_commands(self, app_settings, ubuntu_identity, resolvers, mock_run):
        settings = app_settings.model_copy(update={"step_timeout": 42.0})
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, OperatorDecisions(), settings, resolvers=resolvers
        )

        steps[0].action()

        assert mock_run.call_args[1]["timeout"] == 42.0

    def test_data_root_commands(self, app_settings, ubuntu_identity, resolvers, mock_run):
        decisions = OperatorDecisions(data_root="/srv/docker/")
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, decisions, app_settings, resolvers=resolvers
        )

        _step(steps, "create data-root /srv/docker").action()

        assert [c[0][0] for c in mock_run.call_args_list] == [
            ["mkdir", "-p", "/srv/docker"],
            ["chown", "root:root", "/srv/docker"],
            ["chmod", "711", "/srv/docker"],
        ]

    def test_daemon_config_content(self, app_settings, ubuntu_identity, resolvers, mock_run):
        decisions = OperatorDecisions(data_root="/srv/docker")
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, decisions, app_settings, resolvers=resolvers
        )

        _step(steps, "write /etc/docker/daemon.json").action()

        mkdir_call, tee_call = mock_run.call_args_list
        assert mkdir_call[0][0] == ["mkdir", "-p", "/etc/docker"]
        assert tee_call[0][0] == ["tee", "/etc/docker/daemon.json"]
        written = json.loads(tee_call[1]["cmd_input"])
        assert written["data-root"] == "/srv/docker"
        assert written["log-opts"] == {"max-size": "10m", "max-file": "3"}

    def test_no_user_steps_without_target(self, app_settings, ubuntu_identity, resolvers):
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, OperatorDecisions(target_user=None), app_settings, resolvers=resolvers
        )
        assert not any("user" in name for name in _names(steps))

    def test_existing_user_is_not_created(self, app_settings, ubuntu_identity, resolvers):
        decisions = OperatorDecisions(target_user="alice", create_user_if_missing=False)
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, decisions, app_settings, resolvers=resolvers
        )
        names = _names(steps)
        assert "create user alice" not in names
        assert "add alice to docker group" in names

    def test_create_user_skips_existing_account(self, mocker, app_settings, ubuntu_identity, resolvers, mock_run):
        mocker.patch("provisioner.docker_plan.user_exists", return_value=True)
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, OperatorDecisions(target_user="docker"), app_settings, resolvers=resolvers
        )

        _step(steps, "create user docker").action()

        mock_run.assert_not_called()

    def test_create_user_joins_existing_group(self, mocker, app_settings, ubuntu_identity, resolvers, mock_run):
        mocker.patch("provisioner.docker_plan.user_exists", return_value=False)
        mocker.patch("provisioner.docker_plan._group_exists", return_value=True)
        decisions = OperatorDecisions(target_user="docker", user_shell="/usr/sbin/nologin")
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, decisions, app_settings, resolvers=resolvers
        )

        _step(steps, "create user docker").action()

        assert mock_run.call_args[0][0] == [
            "useradd", "-m", "-s", "/usr/sbin/nologin", "-g", "docker", "docker",
        ]

    def test_alpine_plan_needs_no_repository(self, app_settings):
        identity = OsIdentity(id="alpine")
        steps = build_install_steps(
            ALPINE_PROFILE, identity, OperatorDecisions(), app_settings, resolvers={}
        )
        names = _names(steps)
        assert names[:2] == ["apk update", "install docker packages (docker docker-cli-compose)"]
        assert "add Docker repository" not in names


    def test_alpine_user_steps_use_busybox_tools(self, mocker, app_settings, mock_run):
        mocker.patch("provisioner.docker_plan.user_exists", return_value=False)
        mocker.patch("provisioner.docker_plan._group_exists", return_value=True)
        step_run = mocker.patch("provisioner.step.run_elevated_command")
        decisions = OperatorDecisions(target_user="docker", user_shell="/sbin/nologin")
        steps = build_install_steps(
            ALPINE_PROFILE, OsIdentity(id="alpine"), decisions, app_settings, resolvers={}
        )

        _step(steps, "create user docker").action()
        _step(steps, "add docker to docker group").action()

        assert mock_run.call_args[0][0] == ["adduser", "-D", "-s", "/sbin/nologin", "-G", "docker", "docker"]
        assert step_run.call_args[0][0] == ["addgroup", "docker", "docker"]

    def test_debian_group_step_uses_usermod(self, mocker, app_settings, ubuntu_identity, resolvers):
        step_run = mocker.patch("provisioner.step.run_elevated_command")
        decisions = OperatorDecisions(target_user="alice", create_user_if_missing=False)
        steps = build_install_steps(
            UBUNTU_PROFILE, ubuntu_identity, decisions, app_settings, resolvers=resolvers
        )

        _step(steps, "add alice to docker group").action()

        assert step_run.call_args[0][0] == ["usermod", "-aG", "docker", "alice"]


class TestBuildUninstallSteps:
    """Tests for build_uninstall_steps()."""

    def test_keeps_data_by_default(self, app_settings):
        steps = build_uninstall_steps(UBUNTU_PROFILE, OperatorDecisions(), app_settings)
        names = _names(steps)

        assert names[0] == "stop docker service"
        assert any(name.startswith("purge docker packages") for name in names)
        assert "remove /var/lib/docker" not in names

    def test_remove_data(self, app_settings, mock_run):
        decisions = OperatorDecisions(data_root="/srv/docker", remove_data=True)
        steps = build_uninstall_steps(UBUNTU_PROFILE, decisions, app_settings)
        names = _names(steps)

        assert names[-3:] == ["remove /srv/docker", "remove /var/lib/docker", "remove /var/lib/containerd"]
        _step(steps, "remove /srv/docker").action()
        assert mock_run.call_args[0][0] == ["rm", "-rf", "/srv/docker"]

    def test_only_package_removal_is_required(self, app_settings):
        steps = build_uninstall_steps(UBUNTU_PROFILE, OperatorDecisions(remove_data=True), app_settings)
        required = [step.name for step in steps if step.required]
        assert len(required) == 1
        assert required[0].startswith("purge docker packages")
