from __future__ import annotations
from typing import List, Optional
import logging
import shlex

from ..config import DeploymentConfig
from ..errors import LaunchError
from ..remote import RemoteSession, RemoteStep
from .base import Provider
from .repository import Manifest, ManifestKind

log = logging.getLogger(__name__)

LIST_CONTAINERS = "sudo docker ps -a --format '{{.Names}}'"


def in_dir(cfg: DeploymentConfig, command: str) -> str:
    return f"cd {shlex.quote(cfg.remote_dir)} && {command}"


def compose(cfg: DeploymentConfig, manifest: Manifest, args: str) -> str:
    return in_dir(cfg, f"sudo docker-compose -f {shlex.quote(manifest.filename)} {args}")


def launch_steps(cfg: DeploymentConfig, manifest: Optional[Manifest]) -> List[RemoteStep]:
    if manifest is None:
        raise LaunchError("Neither a compose file nor a Dockerfile was found; nothing to launch")
    if manifest.kind is ManifestKind.COMPOSE:
        return [
            RemoteStep(
                f"Building and running containers with docker-compose ({manifest.filename})",
                compose(cfg, manifest, "up -d --build"),
            )
        ]
    image = shlex.quote(cfg.image_name)
    name = shlex.quote(cfg.container_name)
    port = int(cfg.app_port)
    return [
        RemoteStep(f"Building image {cfg.image_name}", in_dir(cfg, f"sudo docker build -t {image} .")),
        RemoteStep(
            f"Running container {cfg.container_name} on port {port}",
            f"sudo docker run -d --name {name} -p {port}:{port} {image}",
        ),
    ]


class RemoteLauncher(Provider):
    def __init__(self, cfg: DeploymentConfig, session: RemoteSession, manifest: Optional[Manifest]):
        self.cfg = cfg
        self.session = session
        self.manifest = manifest

    def plan(self) -> str:
        if self.manifest is None:
            return "Nothing to launch: no manifest"
        if self.manifest.kind is ManifestKind.COMPOSE:
            return f"Would run docker-compose -f {self.manifest.filename} up -d --build on {self.cfg.destination}"
        return (
            f"Would build {self.cfg.image_name} and run {self.cfg.container_name} "
            f"-p {self.cfg.app_port}:{self.cfg.app_port} on {self.cfg.destination}"
        )

    def teardown(self) -> List[str]:
        """Stop whatever a previous run left behind; returns what was removed."""
        removed: List[str] = []

        r = self.session.execute(RemoteStep("Checking for old containers", LIST_CONTAINERS), LaunchError)
        names = {n.strip() for n in r.stdout.splitlines()}
        if self.cfg.container_name in names:
            name = shlex.quote(self.cfg.container_name)
            self.session.execute_all(
                [
                    RemoteStep(f"Stopping {self.cfg.container_name}", f"sudo docker stop {name}"),
                    RemoteStep(f"Removing {self.cfg.container_name}", f"sudo docker rm {name}"),
                ],
                LaunchError,
            )
            removed.append(self.cfg.container_name)
        else:
            log.info("No previous %s container", self.cfg.container_name)

        if self.manifest is not None and self.manifest.kind is ManifestKind.COMPOSE:
            ps = self.session.execute(
                RemoteStep("Checking for old docker-compose services", compose(self.cfg, self.manifest, "ps -q")),
                LaunchError,
            )
            if ps.stdout.strip():
                self.session.execute(
                    RemoteStep("Stopping old docker-compose services", compose(self.cfg, self.manifest, "down")),
                    LaunchError,
                )
                removed.append("compose")
            else:
                log.info("No running docker-compose services")
        return removed

    def apply(self) -> str:
        steps = launch_steps(self.cfg, self.manifest)
        self.teardown()
        self.session.execute_all(steps, LaunchError)
        r = self.session.execute(RemoteStep("Containers running", "sudo docker ps"), LaunchError)
        return r.stdout
