from __future__ import annotations
from pathlib import Path
from typing import Any, Optional

from .config import DefaultsFile, load_defaults
from .lock import LOCK_NAME, RunLock
from .logging import echo, echo_json
from .shell import LocalShell, Shell


class Ctx:
    def __init__(
        self,
        config: str,
        workdir: str,
        json_out: bool = False,
        shell: Optional[Shell] = None,
    ):
        self.config = config
        self.workdir = Path(workdir)
        self.json_out = json_out
        self.shell = shell or LocalShell()

    def echo(self, *objects: Any) -> None:
        echo(*objects)

    def echo_json(self, text: str) -> None:
        echo_json(text)

    def defaults(self) -> DefaultsFile:
        return load_defaults(Path(self.config))

    def lock(self) -> RunLock:
        return RunLock(self.workdir / LOCK_NAME)
