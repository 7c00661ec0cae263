import base64
from pathlib import Path

import pytest

from dockship.errors import SyncError
from dockship.providers.repository import (
    ManifestKind,
    RepositorySynchronizer,
    auth_header,
    detect_manifest,
    git_auth_env,
)


def test_detect_manifest_prefers_compose(tmp_path: Path):
    (tmp_path / "Dockerfile").write_text("FROM alpine\n")
    assert detect_manifest(tmp_path).kind is ManifestKind.DOCKERFILE
    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    m = detect_manifest(tmp_path)
    assert m.kind is ManifestKind.COMPOSE
    assert m.filename == "docker-compose.yml"


def test_detect_manifest_none(tmp_path: Path):
    (tmp_path / "README.md").write_text("hi\n")
    assert detect_manifest(tmp_path) is None


def test_auth_header_uses_host_username():
    header = auth_header("github.com", "ghp_x")
    raw = base64.b64decode(header.split()[-1]).decode()
    assert raw == "x-access-token:ghp_x"
    raw = base64.b64decode(auth_header("gitlab.com", "glpat").split()[-1]).decode()
    assert raw == "oauth2:glpat"


def test_git_auth_env_scopes_header_to_host(cfg):
    env = git_auth_env(cfg)
    assert env["GIT_CONFIG_KEY_0"] == "http.https://github.com/.extraheader"
    assert env["GIT_CONFIG_VALUE_0"].startswith("Authorization: Basic ")
    assert env["GIT_TERMINAL_PROMPT"] == "0"


def test_clone_path_when_no_checkout(cfg, shell, clone_with):
    shell.on("git clone", effect=clone_with(["Dockerfile"]))
    result = RepositorySynchronizer(cfg, shell).apply()

    assert result.action == "clone"
    assert result.manifest.kind is ManifestKind.DOCKERFILE
    assert shell.argvs[0][:3] == ["git", "clone", "https://github.com/acme/app"]
    assert shell.argvs[1] == ["git", "checkout", "main"]
    assert not shell.ran("git pull")


def test_pull_path_when_checkout_exists(cfg, shell):
    (cfg.local_dir / ".git").mkdir(parents=True)
    (cfg.local_dir / "docker-compose.yml").write_text("services: {}\n")

    result = RepositorySynchronizer(cfg, shell).apply()

    assert result.action == "pull"
    assert result.manifest.kind is ManifestKind.COMPOSE
    assert shell.argvs == [
        ["git", "remote", "set-url", "origin", "https://github.com/acme/app"],
        ["git", "fetch", "origin", "main"],
        ["git", "checkout", "main"],
        ["git", "pull", "origin", "main"],
    ]
    assert not shell.ran("git clone")


def test_token_never_in_argv(cfg, shell, clone_with):
    shell.on("git clone", effect=clone_with(["Dockerfile"]))
    RepositorySynchronizer(cfg, shell).apply()
    for call in shell.calls:
        assert not any("ghp_x" in a for a in call["argv"])
        assert call["env"]["GIT_CONFIG_VALUE_0"] == auth_header("github.com", "ghp_x")


def test_clone_creates_parent_directory(cfg, shell, clone_with, tmp_path):
    deep = cfg.model_copy(update={"local_dir": tmp_path / "a" / "b" / "repo"})
    shell.on("git clone", effect=clone_with(["Dockerfile"]))
    RepositorySynchronizer(deep, shell).apply()
    assert (tmp_path / "a" / "b").is_dir()


def test_clone_failure_is_fatal(cfg, shell):
    shell.on("git clone", returncode=128, stderr="fatal: Authentication failed")
    with pytest.raises(SyncError, match="Initial clone failed") as exc:
        RepositorySynchronizer(cfg, shell).apply()
    assert "Authentication failed" in str(exc.value)
    assert not shell.ran("git checkout")


def test_pull_failure_is_fatal(cfg, shell):
    (cfg.local_dir / ".git").mkdir(parents=True)
    shell.on("git pull", returncode=1, stderr="conflict")
    with pytest.raises(SyncError, match="Failed to pull changes"):
        RepositorySynchronizer(cfg, shell).apply()


def test_missing_manifest_is_fatal(cfg, shell, clone_with):
    shell.on("git clone", effect=clone_with(["README.md"]))
    with pytest.raises(SyncError, match="Docker file missing"):
        RepositorySynchronizer(cfg, shell).apply()


def test_relative_local_dir_resolves_against_workdir(cfg, shell, tmp_path):
    rel = cfg.model_copy(update={"local_dir": Path("checkout")})
    syncer = RepositorySynchronizer(rel, shell, workdir=tmp_path)
    assert syncer.path == tmp_path / "checkout"
    assert "clone" in syncer.plan()
