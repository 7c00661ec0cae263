from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
import os
import subprocess


@dataclass
class CommandResult:
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def detail(self) -> str:
        return self.stderr.strip() or self.stdout.strip()


class Shell(ABC):
    """Runs an argv and captures its exit status and output."""

    @abstractmethod
    def run(
        self,
        argv: List[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        input: Optional[str] = None,
    ) -> CommandResult: ...


class LocalShell(Shell):
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        argv: List[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        input: Optional[str] = None,
    ) -> CommandResult:
        full_env = None
        if env:
            full_env = {**os.environ, **env}
        try:
            p = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return CommandResult(argv, 127, "", f"{argv[0]} not found in PATH")
        except subprocess.TimeoutExpired:
            return CommandResult(argv, 124, "", f"{argv[0]} timed out after {self.timeout}s")
        return CommandResult(argv, p.returncode, p.stdout or "", p.stderr or "")
