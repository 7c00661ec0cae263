from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Type
import logging

from .config import HostConfig
from .errors import DockshipError
from .logging import log_output
from .shell import CommandResult, Shell

log = logging.getLogger(__name__)

SSH_UNREACHABLE = 255


@dataclass(frozen=True)
class RemoteStep:
    """One command to run on the remote host.

    `check=False` marks informational steps whose failure is logged but
    never aborts the run.
    """

    description: str
    command: str
    input: Optional[str] = None
    check: bool = True


class RemoteSession:
    """Non-interactive ssh/scp against the configured host."""

    def __init__(self, cfg: HostConfig, shell: Shell):
        self.cfg = cfg
        self.shell = shell

    def _options(self) -> List[str]:
        return [
            "-i",
            self.cfg.key_path,
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            f"ConnectTimeout={int(self.cfg.connect_timeout)}",
        ]

    def ssh_argv(self, command: str) -> List[str]:
        return ["ssh", *self._options(), self.cfg.destination, command]

    def scp_argv(self, sources: Sequence[Path], remote_dir: str) -> List[str]:
        dest = f"{self.cfg.destination}:{remote_dir.rstrip('/')}/"
        return ["scp", *self._options(), "-r", *[str(s) for s in sources], dest]

    def run(self, command: str, input: Optional[str] = None) -> CommandResult:
        log.debug("ssh %s: %s", self.cfg.destination, command)
        return self.shell.run(self.ssh_argv(command), input=input)

    def execute(self, step: RemoteStep, error: Type[DockshipError]) -> CommandResult:
        log.info("%s", step.description)
        r = self.run(step.command, input=step.input)
        log_output(log, r.stdout)
        if r.ok:
            log_output(log, r.stderr)
            return r
        log_output(log, r.stderr, logging.WARNING)
        if r.returncode == SSH_UNREACHABLE:
            raise error(
                f"Cannot reach {self.cfg.destination} over ssh. Check key, network or remote firewall",
                context=r.detail,
            )
        if step.check:
            raise error(f"{step.description} failed (exit {r.returncode})", context=r.detail)
        log.info("%s exited with %d; continuing", step.description, r.returncode)
        return r

    def execute_all(self, steps: Sequence[RemoteStep], error: Type[DockshipError]) -> List[CommandResult]:
        return [self.execute(s, error) for s in steps]

    def copy(self, sources: Sequence[Path], remote_dir: str) -> CommandResult:
        argv = self.scp_argv(sources, remote_dir)
        log.debug("scp %d entries to %s:%s", len(sources), self.cfg.destination, remote_dir)
        return self.shell.run(argv)
