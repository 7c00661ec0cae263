from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional
import fcntl
import os

from .errors import LockError

LOCK_NAME = ".dockship.lock"


@dataclass
class RunLock:
    """Advisory exclusive lock so two runs never share a workdir."""

    path: Path
    _fh: Optional[IO[str]] = None

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(self.path, "a+")
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fh.close()
            raise LockError("Another dockship run is in progress", context=str(self.path)) from None
        fh.seek(0)
        fh.truncate()
        fh.write(f"{os.getpid()}\n")
        fh.flush()
        self._fh = fh

    def close(self) -> None:
        if self._fh:
            fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "RunLock":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
