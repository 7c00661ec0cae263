from __future__ import annotations
from pathlib import Path
from typing import Optional
import re

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from .errors import InputError

DEFAULT_BRANCH = "main"
DEFAULT_CONFIG_PATH = Path("dockship.yaml")

# host -> username paired with the access token for HTTP basic auth
KNOWN_HOSTS = {
    "github.com": "x-access-token",
    "gitlab.com": "oauth2",
    "bitbucket.org": "x-token-auth",
}

_URL_RE = re.compile(
    r"^https://(?P<host>%s)/(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
    % "|".join(re.escape(h) for h in KNOWN_HOSTS)
)


def require(value: Optional[str], label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InputError(f"{label} cannot be empty")
    return value


def validate_repo_url(value: Optional[str]) -> str:
    url = require(value, "URL")
    if not _URL_RE.match(url):
        raise InputError(
            "Invalid repository URL format (expected https://github.com/owner/repo)",
            context=f"got {url!r}",
        )
    return url


def repo_host(url: str) -> str:
    m = _URL_RE.match(url)
    if not m:
        raise InputError("Invalid repository URL format (expected https://github.com/owner/repo)")
    return m.group("host")


def validate_token(value: Optional[str]) -> str:
    return require(value, "Personal Access Token")


def validate_branch(value: Optional[str]) -> str:
    return (value or "").strip() or DEFAULT_BRANCH


def validate_remote_user(value: Optional[str]) -> str:
    return require(value, "Remote username")


def validate_remote_host(value: Optional[str]) -> str:
    return require(value, "Remote server ip")


def validate_key_path(value: Optional[str]) -> str:
    return require(value, "ssh key path")


def validate_app_port(value: Optional[object]) -> int:
    raw = require(None if value is None else str(value), "docker application port")
    try:
        port = int(raw)
    except ValueError:
        raise InputError("docker application port must be a number", context=f"got {raw!r}") from None
    if not 1 <= port <= 65535:
        raise InputError("docker application port must be between 1 and 65535", context=f"got {port}")
    return port


class RepositoryConfig(BaseModel):
    """Source repository half of a run; enough for `sync`."""

    model_config = ConfigDict(frozen=True)

    repo_url: str
    token: SecretStr
    branch: str = DEFAULT_BRANCH
    local_dir: Path = Path("repo")

    @field_validator("repo_url", mode="before")
    @classmethod
    def _url(cls, v):
        return validate_repo_url(v)

    @field_validator("token", mode="before")
    @classmethod
    def _token(cls, v):
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        return validate_token(v)

    @field_validator("branch", mode="before")
    @classmethod
    def _branch(cls, v):
        return validate_branch(v)

    @property
    def repo_host(self) -> str:
        return repo_host(self.repo_url)


class HostConfig(BaseModel):
    """ssh coordinates of the target host; enough for `check`."""

    model_config = ConfigDict(frozen=True)

    remote_user: str
    remote_host: str
    key_path: str
    connect_timeout: int = 10

    @field_validator("remote_user", mode="before")
    @classmethod
    def _user(cls, v):
        return validate_remote_user(v)

    @field_validator("remote_host", mode="before")
    @classmethod
    def _host(cls, v):
        return validate_remote_host(v)

    @field_validator("key_path", mode="before")
    @classmethod
    def _key(cls, v):
        return str(Path(validate_key_path(v)).expanduser())

    @property
    def destination(self) -> str:
        return f"{self.remote_user}@{self.remote_host}"


class DeploymentConfig(RepositoryConfig, HostConfig):
    """Everything one run needs; built once and handed to each provider."""

    model_config = ConfigDict(frozen=True)

    app_port: int
    remote_dir: str = "repo"
    image_name: str = "hngapp"
    container_name: str = "hngapp_container"

    @field_validator("app_port", mode="before")
    @classmethod
    def _port(cls, v):
        return validate_app_port(v)


class DefaultsFile(BaseModel):
    """Optional dockship.yaml; never holds the token."""

    model_config = ConfigDict(extra="forbid")

    repo_url: Optional[str] = None
    branch: Optional[str] = None
    remote_user: Optional[str] = None
    remote_host: Optional[str] = None
    key_path: Optional[str] = None
    app_port: Optional[int] = None
    local_dir: Optional[str] = None
    remote_dir: Optional[str] = None
    image_name: Optional[str] = None
    container_name: Optional[str] = None
    connect_timeout: Optional[int] = Field(default=None, ge=1)


def load_defaults(path: Optional[Path] = None) -> DefaultsFile:
    p = path or DEFAULT_CONFIG_PATH
    if not p.exists():
        return DefaultsFile()
    data = yaml.safe_load(p.read_text()) or {}
    if not isinstance(data, dict):
        raise InputError(f"{p} must contain a mapping")
    try:
        return DefaultsFile.model_validate(data)
    except ValidationError as e:
        raise InputError(f"Invalid defaults file {p}", context=str(e)) from e
