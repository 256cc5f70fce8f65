# provisioner/profiles.py
# -*- coding: utf-8 -*-
"""
Installation profiles: the per-distribution command templates used to
install and remove Docker Engine.

Each template is an argv list whose items may contain ``str.format``
placeholders. The special item ``{packages}`` expands in place to the
profile's package list. Profiles are immutable and shared; the OS resolver
hands out exactly one of them per run.
"""

from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

PACKAGES_PLACEHOLDER = "{packages}"


class CommandTemplate(BaseModel):
    """One external command of a profile, before placeholders are filled in."""

    model_config = ConfigDict(frozen=True)

    name: str
    argv: Tuple[str, ...]
    required: bool = True
    stdin: Optional[str] = None

    def render(
        self, context: Mapping[str, str], packages: List[str]
    ) -> Tuple[List[str], Optional[str]]:
        """Return the concrete argv and stdin for the given context."""
        argv: List[str] = []
        for item in self.argv:
            if item == PACKAGES_PLACEHOLDER:
                argv.extend(packages)
            else:
                argv.append(item.format_map(context))
        stdin = self.stdin.format_map(context) if self.stdin else None
        return argv, stdin

    def render_name(self, context: Mapping[str, str]) -> str:
        return self.name.format_map(context)


class InstallationProfile(BaseModel):
    """The OS-family specific recipe selected for one run."""

    model_config = ConfigDict(frozen=True)

    os_id: str
    family: str
    display_name: str
    package_manager: str
    packages: Tuple[str, ...]
    needs_repository: bool = False
    # "shadow" (useradd/usermod) or "busybox" (adduser/addgroup)
    user_tools: str = "shadow"
    install_commands: Tuple[CommandTemplate, ...] = ()
    service_commands: Tuple[CommandTemplate, ...] = ()
    service_stop_commands: Tuple[CommandTemplate, ...] = ()
    uninstall_commands: Tuple[CommandTemplate, ...] = ()


def _cmd(name: str, *argv: str, required: bool = True, stdin: Optional[str] = None) -> CommandTemplate:
    return CommandTemplate(name=name, argv=tuple(argv), required=required, stdin=stdin)


SYSTEMD_SERVICE_COMMANDS = (
    _cmd("reload systemd", "systemctl", "daemon-reload", required=False),
    _cmd("enable docker service", "systemctl", "enable", "docker", required=False),
    _cmd("start docker service", "systemctl", "restart", "docker", required=False),
)

SYSTEMD_STOP_COMMANDS = (
    _cmd("stop docker service", "systemctl", "stop", "docker.service", "docker.socket", required=False),
    _cmd("disable docker service", "systemctl", "disable", "docker.service", "docker.socket", required=False),
)

OPENRC_SERVICE_COMMANDS = (
    _cmd("enable docker service", "rc-update", "add", "docker", "default", required=False),
    _cmd("start docker service", "rc-service", "docker", "restart", required=False),
)

OPENRC_STOP_COMMANDS = (
    _cmd("stop docker service", "rc-service", "docker", "stop", required=False),
    _cmd("disable docker service", "rc-update", "del", "docker", "default", required=False),
)

DEBIAN_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)

DEBIAN_INSTALL_COMMANDS = (
    _cmd("apt update", "apt-get", "update", "-y"),
    _cmd(
        "install apt-transport-https ca-certificates curl gnupg lsb-release",
        "apt-get", "install", "-y",
        "apt-transport-https", "ca-certificates", "curl", "gnupg", "lsb-release",
    ),
    _cmd("create keyring directory {keyring_dir}", "install", "-m", "0755", "-d", "{keyring_dir}"),
    _cmd("download Docker GPG key", "curl", "-fsSL", "{repo_base_url}/{os_id}/gpg", "-o", "{key_download}"),
    _cmd("add Docker GPG key", "gpg", "--batch", "--yes", "--dearmor", "-o", "{keyring}", "{key_download}"),
    _cmd("make Docker GPG key readable", "chmod", "a+r", "{keyring}"),
    _cmd(
        "add Docker repository",
        "tee", "{repository_file}",
        stdin="deb [arch={arch} signed-by={keyring}] {repo_base_url}/{os_id} {codename} stable\n",
    ),
    _cmd("apt update (after adding repo)", "apt-get", "update", "-y"),
    _cmd("install docker packages ({package_list})", "apt-get", "install", "-y", PACKAGES_PLACEHOLDER),
)

DEBIAN_UNINSTALL_COMMANDS = (
    _cmd("purge docker packages ({package_list})", "apt-get", "purge", "-y", PACKAGES_PLACEHOLDER),
    _cmd("remove unused dependencies", "apt-get", "autoremove", "-y", required=False),
    _cmd("remove Docker repository", "rm", "-f", "{repository_file}", required=False),
    _cmd("remove Docker GPG key", "rm", "-f", "{keyring}", required=False),
    _cmd("apt update (after removing repo)", "apt-get", "update", "-y", required=False),
)


def _debian_profile(os_id: str, display_name: str) -> InstallationProfile:
    return InstallationProfile(
        os_id=os_id,
        family="debian",
        display_name=display_name,
        package_manager="apt-get",
        packages=DEBIAN_PACKAGES,
        needs_repository=True,
        install_commands=DEBIAN_INSTALL_COMMANDS,
        service_commands=SYSTEMD_SERVICE_COMMANDS,
        service_stop_commands=SYSTEMD_STOP_COMMANDS,
        uninstall_commands=DEBIAN_UNINSTALL_COMMANDS,
    )


UBUNTU_PROFILE = _debian_profile("ubuntu", "Ubuntu")
DEBIAN_PROFILE = _debian_profile("debian", "Debian")
RASPBIAN_PROFILE = _debian_profile("raspbian", "Raspberry Pi OS (32-bit)")

ALPINE_PROFILE = InstallationProfile(
    os_id="alpine",
    family="alpine",
    display_name="Alpine Linux",
    package_manager="apk",
    packages=("docker", "docker-cli-compose"),
    user_tools="busybox",
    install_commands=(
        _cmd("apk update", "apk", "update"),
        _cmd("install docker packages ({package_list})", "apk", "add", PACKAGES_PLACEHOLDER),
    ),
    service_commands=OPENRC_SERVICE_COMMANDS,
    service_stop_commands=OPENRC_STOP_COMMANDS,
    uninstall_commands=(
        _cmd("remove docker packages ({package_list})", "apk", "del", PACKAGES_PLACEHOLDER),
    ),
)

ARCH_PROFILE = InstallationProfile(
    os_id="arch",
    family="arch",
    display_name="Arch Linux",
    package_manager="pacman",
    packages=("docker", "docker-compose", "docker-buildx"),
    install_commands=(
        _cmd(
            "install docker packages ({package_list})",
            "pacman", "-Sy", "--noconfirm", "--needed", PACKAGES_PLACEHOLDER,
        ),
    ),
    service_commands=SYSTEMD_SERVICE_COMMANDS,
    service_stop_commands=SYSTEMD_STOP_COMMANDS,
    uninstall_commands=(
        _cmd("remove docker packages ({package_list})", "pacman", "-Rns", "--noconfirm", PACKAGES_PLACEHOLDER),
    ),
)


def _suse_profile(os_id: str, display_name: str) -> InstallationProfile:
    return InstallationProfile(
        os_id=os_id,
        family="suse",
        display_name=display_name,
        package_manager="zypper",
        packages=("docker", "docker-compose", "docker-buildx"),
        install_commands=(
            _cmd("refresh repositories", "zypper", "--non-interactive", "refresh"),
            _cmd(
                "install docker packages ({package_list})",
                "zypper", "--non-interactive", "install", PACKAGES_PLACEHOLDER,
            ),
        ),
        service_commands=SYSTEMD_SERVICE_COMMANDS,
        service_stop_commands=SYSTEMD_STOP_COMMANDS,
        uninstall_commands=(
            _cmd(
                "remove docker packages ({package_list})",
                "zypper", "--non-interactive", "remove", PACKAGES_PLACEHOLDER,
            ),
        ),
    )


OPENSUSE_PROFILE = _suse_profile("opensuse", "openSUSE")

# Exact ID matches.
PROFILES_BY_ID: Dict[str, InstallationProfile] = {
    "ubuntu": UBUNTU_PROFILE,
    "debian": DEBIAN_PROFILE,
    "raspbian": RASPBIAN_PROFILE,
    "alpine": ALPINE_PROFILE,
    "arch": ARCH_PROFILE,
    "opensuse-leap": _suse_profile("opensuse-leap", "openSUSE Leap"),
    "opensuse-tumbleweed": _suse_profile("opensuse-tumbleweed", "openSUSE Tumbleweed"),
    "sles": _suse_profile("sles", "SUSE Linux Enterprise Server"),
}

# ID_LIKE tokens. Derivatives install from their parent's repository.
PROFILES_BY_LIKE: Dict[str, InstallationProfile] = {
    "ubuntu": UBUNTU_PROFILE,
    "debian": DEBIAN_PROFILE,
    "arch": ARCH_PROFILE,
    "suse": OPENSUSE_PROFILE,
    "opensuse": OPENSUSE_PROFILE,
}

# Families deliberately left to their vendor's own tooling.
EXCLUDED_FAMILIES: Dict[str, str] = {
    "fedora": "redhat",
    "rhel": "redhat",
    "centos": "redhat",
    "rocky": "redhat",
    "almalinux": "redhat",
    "ol": "redhat",
    "amzn": "redhat",
}


def supported_ids() -> List[str]:
    return sorted(PROFILES_BY_ID)


def render_context(
    profile: InstallationProfile,
    values: Mapping[str, str],
) -> Dict[str, str]:
    """Merge run-time values with the profile-derived placeholders."""
    context: Dict[str, str] = {"os_id": profile.os_id}
    context.update(values)
    context["package_list"] = " ".join(profile.packages)
    return context

