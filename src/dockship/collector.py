"""Parameter collection.

Values are resolved per field from explicit overrides (CLI flags and their
environment variables), then the YAML defaults file, then an interactive
prompt. Validation runs as each value is resolved so a bad entry stops the
run before anything touches git or the network.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging

import typer

from .config import (
    DefaultsFile,
    DeploymentConfig,
    validate_app_port,
    validate_branch,
    validate_key_path,
    validate_remote_host,
    validate_remote_user,
    validate_repo_url,
    validate_token,
)
from .errors import InputError
from .logging import record

log = logging.getLogger(__name__)

PromptFn = Callable[[str, bool], str]


@dataclass(frozen=True)
class Param:
    name: str
    label: str
    validate: Callable[[Any], Any]
    secret: bool = False
    from_file: bool = True


PARAMS = [
    Param("repo_url", "Repository URL", validate_repo_url),
    Param("token", "Personal Access Token (input hidden)", validate_token, secret=True, from_file=False),
    Param("branch", "Branch [main]", validate_branch),
    Param("remote_user", "Remote username", validate_remote_user),
    Param("remote_host", "Remote ip", validate_remote_host),
    Param("key_path", "ssh key path", validate_key_path),
    Param("app_port", "App port", validate_app_port),
]

# settings that are never prompted for, only taken from overrides or the file
EXTRA_SETTINGS = ("local_dir", "remote_dir", "image_name", "container_name", "connect_timeout")


def typer_prompt(label: str, secret: bool) -> str:
    answer = typer.prompt(label, default="", show_default=False, hide_input=secret)
    record(f"{label}: {'***' if secret and answer else answer}")
    return answer


class ParameterCollector:
    def __init__(
        self,
        prompt: Optional[PromptFn] = None,
        interactive: bool = True,
        attempts: int = 1,
    ):
        self.prompt = prompt or typer_prompt
        self.interactive = interactive
        self.attempts = max(1, attempts)

    def collect(
        self,
        overrides: Optional[Dict[str, Any]] = None,
        defaults: Optional[DefaultsFile] = None,
        only: Optional[set[str]] = None,
    ) -> Dict[str, Any]:
        """Resolve and validate parameters in prompt order.

        `only` restricts collection to a subset of field names; the result is
        a plain dict so callers that need a subset (sync) can use it directly.
        """
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        defaults = defaults or DefaultsFile()
        values: Dict[str, Any] = {}

        for p in PARAMS:
            if only is not None and p.name not in only:
                continue
            values[p.name] = self._resolve(p, overrides, defaults)

        for name in EXTRA_SETTINGS:
            v = overrides.get(name, getattr(defaults, name))
            if v is not None:
                values[name] = v
        return values

    def build(
        self,
        overrides: Optional[Dict[str, Any]] = None,
        defaults: Optional[DefaultsFile] = None,
    ) -> DeploymentConfig:
        cfg = DeploymentConfig(**self.collect(overrides, defaults))
        log.info(
            "Deploying %s (branch %s) to %s, app port %d",
            cfg.repo_url,
            cfg.branch,
            cfg.destination,
            cfg.app_port,
        )
        return cfg

    def _resolve(self, p: Param, overrides: Dict[str, Any], defaults: DefaultsFile) -> Any:
        if p.name in overrides:
            return p.validate(overrides[p.name])
        if p.from_file and getattr(defaults, p.name) is not None:
            return p.validate(getattr(defaults, p.name))
        if not self.interactive:
            return p.validate(None)

        attempt = 1
        while True:
            raw = self.prompt(p.label, p.secret)
            try:
                return p.validate(raw)
            except InputError as e:
                if attempt >= self.attempts:
                    raise
                log.warning("%s (attempt %d of %d)", e.message, attempt, self.attempts)
                attempt += 1
