from __future__ import annotations
from pathlib import Path
from typing import List
import logging

from ..config import DeploymentConfig
from ..errors import TransferError
from ..logging import log_output
from ..remote import RemoteSession
from .base import Provider

log = logging.getLogger(__name__)


def transfer_entries(root: Path) -> List[Path]:
    """Top-level, non-hidden entries of the checkout (the `repo/*` glob)."""
    return sorted(p for p in root.iterdir() if not p.name.startswith("."))


class ArtifactTransporter(Provider):
    def __init__(self, cfg: DeploymentConfig, session: RemoteSession, source: Path):
        self.cfg = cfg
        self.session = session
        self.source = source

    def plan(self) -> str:
        return f"Would scp -r {self.source}/* to {self.cfg.destination}:{self.cfg.remote_dir}/"

    def apply(self) -> List[Path]:
        entries = transfer_entries(self.source)
        if not entries:
            raise TransferError(f"Nothing to transfer: {self.source} is empty")

        log.info("Copying %d entries to %s:%s", len(entries), self.cfg.destination, self.cfg.remote_dir)
        r = self.session.copy(entries, self.cfg.remote_dir)
        log_output(log, r.stdout)
        if not r.ok:
            log_output(log, r.stderr, logging.WARNING)
            raise TransferError(f"Transfer to {self.cfg.destination} failed (exit {r.returncode})", context=r.detail)
        log.info("Transfer complete")
        return entries
