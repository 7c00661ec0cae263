from __future__ import annotations
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import logging
import os

import typer

from . import commands
from .collector import ParameterCollector
from .config import HostConfig, RepositoryConfig
from .context import Ctx
from .errors import DockshipError
from .logging import log_file_for, setup_logging

log = logging.getLogger(__name__)

TOKEN_ENV = "DOCKSHIP_TOKEN"

app = typer.Typer(add_completion=False, help="Deploy a git repository as a container behind Nginx over ssh")


@app.callback()
def main(
    ctx: typer.Context,
    config: str = typer.Option("./dockship.yaml", help="Path to YAML defaults file"),
    workdir: str = typer.Option(".", help="Directory holding the local checkout and lock file"),
    log_dir: str = typer.Option(".", help="Directory for deploy_YYYYMMDD.log"),
    json_out: bool = typer.Option(False, "--json", help="JSON output where supported"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Global options & setup."""
    log_file = log_file_for(Path(log_dir))
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    ctx.obj = Ctx(config, workdir, json_out=json_out)


def _run(fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except DockshipError as e:
        log.error("%s", e.format_message())
        raise typer.Exit(code=e.exit_code) from e


def _collector(no_input: bool, reprompt: int) -> ParameterCollector:
    return ParameterCollector(interactive=not no_input, attempts=reprompt)


def _overrides(**values: Any) -> Dict[str, Any]:
    # the token only ever comes from the environment or the hidden prompt
    values["token"] = os.environ.get(TOKEN_ENV)
    return values


@app.command()
def deploy(
    ctx: typer.Context,
    repo_url: Optional[str] = typer.Option(None, envvar="DOCKSHIP_REPO_URL", help="https://github.com/owner/repo"),
    branch: Optional[str] = typer.Option(None, envvar="DOCKSHIP_BRANCH", help="Branch to deploy (default main)"),
    remote_user: Optional[str] = typer.Option(None, envvar="DOCKSHIP_REMOTE_USER", help="ssh username"),
    remote_host: Optional[str] = typer.Option(None, envvar="DOCKSHIP_REMOTE_HOST", help="Remote server address"),
    key_path: Optional[str] = typer.Option(None, envvar="DOCKSHIP_KEY_PATH", help="ssh private key"),
    app_port: Optional[str] = typer.Option(None, envvar="DOCKSHIP_APP_PORT", help="Application container port"),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt; missing values are errors"),
    reprompt: int = typer.Option(1, min=1, help="Attempts per interactive answer before giving up"),
    plan: bool = typer.Option(False, "--plan", help="Validate input and print what each stage would do"),
):
    """Sync the repository, provision the host, launch the app and configure the proxy."""
    c: Ctx = ctx.obj

    def go():
        cfg = _collector(no_input, reprompt).build(
            _overrides(
                repo_url=repo_url,
                branch=branch,
                remote_user=remote_user,
                remote_host=remote_host,
                key_path=key_path,
                app_port=app_port,
            ),
            c.defaults(),
        )
        return commands.deploy(c, cfg, plan_only=plan)

    _run(go)


@app.command()
def sync(
    ctx: typer.Context,
    repo_url: Optional[str] = typer.Option(None, envvar="DOCKSHIP_REPO_URL", help="https://github.com/owner/repo"),
    branch: Optional[str] = typer.Option(None, envvar="DOCKSHIP_BRANCH", help="Branch to check out (default main)"),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt; missing values are errors"),
    plan: bool = typer.Option(False, "--plan", help="Print whether a clone or a pull would run"),
):
    """Clone or pull the repository and verify it has a Dockerfile or compose file."""
    c: Ctx = ctx.obj

    def go():
        values = _collector(no_input, 1).collect(
            _overrides(repo_url=repo_url, branch=branch),
            c.defaults(),
            only={"repo_url", "token", "branch"},
        )
        return commands.sync(c, RepositoryConfig(**values), plan_only=plan)

    _run(go)


@app.command()
def check(
    ctx: typer.Context,
    remote_user: Optional[str] = typer.Option(None, envvar="DOCKSHIP_REMOTE_USER", help="ssh username"),
    remote_host: Optional[str] = typer.Option(None, envvar="DOCKSHIP_REMOTE_HOST", help="Remote server address"),
    key_path: Optional[str] = typer.Option(None, envvar="DOCKSHIP_KEY_PATH", help="ssh private key"),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt; missing values are errors"),
):
    """Check local tools and ssh reachability of the target host."""
    c: Ctx = ctx.obj

    def go():
        values = _collector(no_input, 1).collect(
            {"remote_user": remote_user, "remote_host": remote_host, "key_path": key_path},
            c.defaults(),
            only={"remote_user", "remote_host", "key_path"},
        )
        results = commands.check(c, HostConfig(**values))
        if not all(r.ok for r in results):
            raise typer.Exit(code=1)

    _run(go)


if __name__ == "__main__":
    app()
