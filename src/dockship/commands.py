from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import json
import logging

from rich import box
from rich.table import Table

from .config import DeploymentConfig, HostConfig, RepositoryConfig
from .context import Ctx
from .providers.launcher import RemoteLauncher
from .providers.preflight import CheckResult, check_ssh, check_tools
from .providers.provisioner import HostOS, RemoteProvisioner
from .providers.proxy import ProxyConfigurator, ProxyResult
from .providers.repository import RepositorySynchronizer, SyncResult, detect_manifest
from .providers.transport import ArtifactTransporter
from .remote import RemoteSession

log = logging.getLogger(__name__)


@dataclass
class DeployReport:
    sync: SyncResult
    host: HostOS
    transferred: int
    containers: str
    proxy: ProxyResult


def sync(c: Ctx, cfg: RepositoryConfig, plan_only: bool = False) -> Optional[SyncResult]:
    """Clone or pull the repository and verify it has a build manifest."""
    syncer = RepositorySynchronizer(cfg, c.shell, c.workdir)
    if plan_only:
        c.echo(f"[info]plan:[/] {syncer.plan()}")
        return None
    with c.lock():
        result = syncer.apply()
    c.echo(f"[info]{result.action}[/] {result.path} ({result.manifest.filename})")
    return result


def deploy(c: Ctx, cfg: DeploymentConfig, plan_only: bool = False) -> Optional[DeployReport]:
    """Run every stage in order; any stage failure aborts the run."""
    syncer = RepositorySynchronizer(cfg, c.shell, c.workdir)
    session = RemoteSession(cfg, c.shell)

    if plan_only:
        manifest = detect_manifest(syncer.path) if syncer.exists else None
        stages = [
            syncer,
            RemoteProvisioner(cfg, session),
            ArtifactTransporter(cfg, session, syncer.path),
            RemoteLauncher(cfg, session, manifest),
            ProxyConfigurator(cfg, session),
        ]
        for s in stages:
            c.echo(f"[info]plan:[/] {s.plan()}")
        return None

    with c.lock():
        synced = syncer.apply()
        host = RemoteProvisioner(cfg, session).apply()
        entries = ArtifactTransporter(cfg, session, synced.path).apply()
        containers = RemoteLauncher(cfg, session, synced.manifest).apply()
        proxy = ProxyConfigurator(cfg, session).apply()

    log.info("Deployment to %s complete", cfg.destination)
    report = DeployReport(synced, host, len(entries), containers, proxy)
    _print_report(c, cfg, report)
    return report


def _print_report(c: Ctx, cfg: DeploymentConfig, r: DeployReport) -> None:
    if c.json_out:
        c.echo_json(
            json.dumps(
                {
                    "repository": {"action": r.sync.action, "manifest": r.sync.manifest.filename},
                    "host": {"os": r.host.os_id, "version": r.host.version_major, "family": r.host.family.value},
                    "transferred": r.transferred,
                    "containers": r.containers.splitlines(),
                    "proxy": {
                        "created": r.proxy.created,
                        "certGenerated": r.proxy.cert_generated,
                        "smoke": r.proxy.smoke,
                    },
                },
                indent=2,
            )
        )
        return
    table = Table(title=f"Deployed to {cfg.destination}", box=box.SIMPLE)
    table.add_column("Stage", style="bold")
    table.add_column("Result")
    table.add_row("Repository", f"{r.sync.action} ({r.sync.manifest.filename})")
    table.add_row("Host", f"{r.host} ({r.host.family.value})")
    table.add_row("Transfer", f"{r.transferred} entries")
    table.add_row("Proxy", f"localhost:{cfg.app_port} ({'new' if r.proxy.created else 'updated'} config)")
    for label, code in r.proxy.smoke.items():
        table.add_row(f"{label} smoke", code or "-")
    c.echo(table)


def check(c: Ctx, cfg: HostConfig) -> List[CheckResult]:
    """Local tool preflight plus an ssh reachability probe."""
    results = check_tools()
    results.append(check_ssh(RemoteSession(cfg, c.shell)))

    if c.json_out:
        c.echo_json(
            json.dumps(
                {
                    "checks": [
                        {"name": r.name, "ok": r.ok, "latency_ms": r.latency_ms, "detail": r.detail}
                        for r in results
                    ]
                },
                indent=2,
            )
        )
        return results

    table = Table(title="Preflight", box=box.SIMPLE)
    table.add_column("Check", style="bold")
    table.add_column("OK")
    table.add_column("Latency ms")
    table.add_column("Detail")
    for r in results:
        table.add_row(
            r.name,
            "✅" if r.ok else "❌",
            f"{r.latency_ms:.1f}" if r.latency_ms is not None else "-",
            r.detail,
        )
    c.echo(table)
    return results
