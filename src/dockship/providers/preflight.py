from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional
import shutil
import time

from ..config import HostConfig
from ..remote import RemoteSession

LOCAL_TOOLS = ("git", "ssh", "scp")


@dataclass
class CheckResult:
    name: str
    ok: bool
    latency_ms: Optional[float]
    detail: str


def check_tools(which: Callable[[str], Optional[str]] = shutil.which) -> List[CheckResult]:
    out: List[CheckResult] = []
    for tool in LOCAL_TOOLS:
        path = which(tool)
        out.append(CheckResult(tool, path is not None, None, path or f"{tool} not found in PATH"))
    return out


def check_ssh(session: RemoteSession) -> CheckResult:
    cfg: HostConfig = session.cfg
    start = time.time()
    r = session.run("true")
    ms = (time.time() - start) * 1000.0
    if r.ok:
        return CheckResult(f"ssh {cfg.destination}", True, ms, "ok")
    return CheckResult(f"ssh {cfg.destination}", False, None, r.detail or f"exit {r.returncode}")
