from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional
import logging
import shlex

from ..config import DeploymentConfig
from ..errors import ProvisionError
from ..remote import RemoteSession, RemoteStep
from .base import Provider

log = logging.getLogger(__name__)

OS_RELEASE = "/etc/os-release"
SERVICES = ("docker", "nginx")


class OsFamily(str, Enum):
    DEBIAN = "debian"
    RHEL = "rhel"
    FEDORA = "fedora"
    ARCH = "arch"
    UNSUPPORTED = "unsupported"


_FAMILIES = {
    "ubuntu": OsFamily.DEBIAN,
    "debian": OsFamily.DEBIAN,
    "centos": OsFamily.RHEL,
    "rhel": OsFamily.RHEL,
    "rocky": OsFamily.RHEL,
    "almalinux": OsFamily.RHEL,
    "fedora": OsFamily.FEDORA,
    "arch": OsFamily.ARCH,
    "archlinux": OsFamily.ARCH,
}


@dataclass(frozen=True)
class HostOS:
    os_id: str
    version_major: Optional[int] = None

    @property
    def family(self) -> OsFamily:
        return _FAMILIES.get(self.os_id, OsFamily.UNSUPPORTED)

    def __str__(self) -> str:
        return f"{self.os_id} {self.version_major if self.version_major is not None else ''}".strip()


def parse_os_release(text: str) -> HostOS:
    fields: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key.strip()] = value.strip().strip("\"'")

    os_id = fields.get("ID", "").lower()
    if not os_id:
        raise ProvisionError("Cannot determine OS.", context=f"no ID in {OS_RELEASE}")

    major = fields.get("VERSION_ID", "").split(".", 1)[0]
    return HostOS(os_id=os_id, version_major=int(major) if major.isdigit() else None)


class PackageInstaller(ABC):
    family: OsFamily
    packages = ("nginx", "docker", "curl", "docker-compose")

    @abstractmethod
    def steps(self, host: HostOS) -> List[RemoteStep]: ...

    def _pkgs(self) -> str:
        return " ".join(self.packages)


class AptInstaller(PackageInstaller):
    family = OsFamily.DEBIAN
    packages = ("nginx", "docker.io", "curl", "docker-compose")

    def steps(self, host: HostOS) -> List[RemoteStep]:
        return [
            RemoteStep("Using apt (Debian-based): updating package index", "sudo apt update -y"),
            RemoteStep("Installing packages with apt", f"sudo apt install -y {self._pkgs()}"),
        ]


class RhelInstaller(PackageInstaller):
    family = OsFamily.RHEL
    dnf_since = 8

    def steps(self, host: HostOS) -> List[RemoteStep]:
        if host.version_major is not None and host.version_major >= self.dnf_since:
            return [RemoteStep("Using dnf (RHEL 8+)", f"sudo dnf install -y {self._pkgs()}")]
        return [
            RemoteStep("Using yum (RHEL/CentOS 7): enabling EPEL", "sudo yum install -y epel-release"),
            RemoteStep("Installing packages with yum", f"sudo yum install -y {self._pkgs()}"),
        ]


class FedoraInstaller(PackageInstaller):
    family = OsFamily.FEDORA

    def steps(self, host: HostOS) -> List[RemoteStep]:
        return [RemoteStep("Using dnf (Fedora)", f"sudo dnf install -y {self._pkgs()}")]


class PacmanInstaller(PackageInstaller):
    family = OsFamily.ARCH

    def steps(self, host: HostOS) -> List[RemoteStep]:
        return [RemoteStep("Using pacman (Arch)", f"sudo pacman -Syu --noconfirm {self._pkgs()}")]


INSTALLERS: Dict[OsFamily, PackageInstaller] = {
    i.family: i for i in (AptInstaller(), RhelInstaller(), FedoraInstaller(), PacmanInstaller())
}


def installer_for(host: HostOS) -> PackageInstaller:
    try:
        return INSTALLERS[host.family]
    except KeyError:
        raise ProvisionError(f"Unsupported OS: {host.os_id}") from None


def service_steps(cfg: DeploymentConfig) -> List[RemoteStep]:
    services = " ".join(SERVICES)
    user = shlex.quote(cfg.remote_user)
    return [
        RemoteStep("Enabling docker and nginx", f"sudo systemctl enable {services}"),
        RemoteStep("Starting docker and nginx", f"sudo systemctl start {services}"),
        # group membership only applies to new sessions; docker calls below use sudo
        RemoteStep(f"Adding user '{cfg.remote_user}' to docker group", f"sudo usermod -aG docker {user}"),
    ]


def banner_steps() -> List[RemoteStep]:
    return [
        RemoteStep("nginx version", "nginx -v 2>&1", check=False),
        RemoteStep("docker version", "docker --version", check=False),
        RemoteStep("curl version", "curl --version | head -n1", check=False),
        RemoteStep("docker-compose version", "docker-compose --version", check=False),
    ]


def workdir_step(cfg: DeploymentConfig) -> RemoteStep:
    return RemoteStep(f"Creating {cfg.remote_dir} on remote host", f"mkdir -p {shlex.quote(cfg.remote_dir)}")


class RemoteProvisioner(Provider):
    def __init__(self, cfg: DeploymentConfig, session: RemoteSession):
        self.cfg = cfg
        self.session = session

    def plan(self) -> str:
        return (
            f"Would detect OS on {self.cfg.destination}, install nginx/docker/curl/docker-compose, "
            f"enable services and create {self.cfg.remote_dir}"
        )

    def detect(self) -> HostOS:
        r = self.session.execute(
            RemoteStep("Detecting OS and version", f"cat {OS_RELEASE}", check=False),
            ProvisionError,
        )
        if not r.ok:
            raise ProvisionError("Cannot determine OS.", context=r.detail)
        host = parse_os_release(r.stdout)
        log.info("Detected OS: %s", host)
        return host

    def apply(self) -> HostOS:
        host = self.detect()
        installer = installer_for(host)
        self.session.execute_all(installer.steps(host), ProvisionError)
        log.info("Installation complete")
        self.session.execute_all(service_steps(self.cfg), ProvisionError)
        self.session.execute_all(banner_steps(), ProvisionError)
        self.session.execute(workdir_step(self.cfg), ProvisionError)
        return host
