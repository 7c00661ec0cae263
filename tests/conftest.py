from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from dockship.config import DeploymentConfig
from dockship.shell import CommandResult, Shell


class FakeShell(Shell):
    """Records every argv and answers from rules matched on the joined command line.

    The most recently added matching rule wins; unmatched commands succeed
    with empty output.
    """

    def __init__(self) -> None:
        self.calls: List[Dict] = []
        self._rules: List[tuple] = []

    def on(
        self,
        needle: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Optional[Callable[[List[str]], None]] = None,
    ) -> "FakeShell":
        self._rules.append((needle, returncode, stdout, stderr, effect))
        return self

    def run(self, argv, *, cwd=None, env=None, input=None) -> CommandResult:
        self.calls.append({"argv": list(argv), "cwd": cwd, "env": env, "input": input})
        joined = " ".join(argv)
        for needle, rc, out, err, effect in reversed(self._rules):
            if needle in joined:
                if effect:
                    effect(list(argv))
                return CommandResult(list(argv), rc, out, err)
        return CommandResult(list(argv), 0, "", "")

    @property
    def argvs(self) -> List[List[str]]:
        return [c["argv"] for c in self.calls]

    @property
    def remote_commands(self) -> List[str]:
        return [c["argv"][-1] for c in self.calls if c["argv"][0] == "ssh"]

    def ran(self, needle: str) -> bool:
        return any(needle in " ".join(a) for a in self.argvs)


UBUNTU_OS_RELEASE = 'NAME="Ubuntu"\nVERSION_ID="22.04"\nID=ubuntu\nID_LIKE=debian\n'


@pytest.fixture
def shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
def cfg(tmp_path: Path) -> DeploymentConfig:
    return DeploymentConfig(
        repo_url="https://github.com/acme/app",
        token="ghp_x",
        branch="",
        remote_user="deploy",
        remote_host="203.0.113.10",
        key_path="/keys/id_ed25519",
        app_port="8080",
        local_dir=tmp_path / "repo",
    )


def fake_clone(files: List[str]) -> Callable[[List[str]], None]:
    """Effect for `git clone`: materialise a checkout with the given files."""

    def effect(argv: List[str]) -> None:
        dest = Path(argv[-1])
        (dest / ".git").mkdir(parents=True, exist_ok=True)
        for name in files:
            (dest / name).write_text("x\n")

    return effect


@pytest.fixture
def clone_with():
    return fake_clone
