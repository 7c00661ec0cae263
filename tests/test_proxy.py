import re

import pytest

from dockship.errors import ProxyError
from dockship.providers.proxy import (
    CERT_PATH,
    KEY_PATH,
    NGINX_CONF,
    ProxyConfigurator,
    cert_command,
    render_nginx_config,
)
from dockship.remote import RemoteSession


def proxy(cfg, shell):
    return ProxyConfigurator(cfg, RemoteSession(cfg, shell))


def server_blocks(conf):
    return [b for b in conf.split("server {")[1:]]


def test_both_blocks_forward_app_port():
    conf = render_nginx_config(8080)
    http, https = server_blocks(conf)
    assert "listen 80;" in http
    assert "listen 443 ssl;" in https
    for block in (http, https):
        assert re.findall(r"proxy_pass (\S+);", block) == ["http://localhost:8080"]
        assert "proxy_set_header Host $host;" in block
        assert "proxy_set_header X-Real-IP $remote_addr;" in block
        assert "proxy_set_header X-Forwarded-Proto $scheme;" in block
    assert "X-Forwarded-For" not in http
    assert "proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;" in https
    assert f"ssl_certificate {CERT_PATH};" in https


def test_cert_command_uses_host_as_common_name():
    cmd = cert_command("203.0.113.10")
    assert "rsa:2048" in cmd
    assert "-days 365" in cmd
    assert "-subj /CN=203.0.113.10" in cmd


def test_write_config_sends_rendered_config_on_stdin(cfg, shell):
    created = proxy(cfg, shell).write_config()
    writes = [c for c in shell.calls if c["argv"][-1] == f"sudo tee {NGINX_CONF} > /dev/null"]
    assert len(writes) == 1
    assert writes[0]["input"] == render_nginx_config(8080)
    # `sudo test -f` succeeds by default, so the config already existed
    assert created is False


def test_existing_certificate_is_not_regenerated(cfg, shell):
    generated = proxy(cfg, shell).ensure_certificate()
    assert generated is False
    assert not any("openssl" in c for c in shell.remote_commands)


def test_missing_certificate_is_generated(cfg, shell):
    shell.on(f"sudo test -f {CERT_PATH}", returncode=1)
    generated = proxy(cfg, shell).ensure_certificate()
    assert generated is True
    assert cert_command("203.0.113.10") in shell.remote_commands


def test_missing_key_regenerates_pair(cfg, shell):
    shell.on(f"-f {KEY_PATH}", returncode=1)
    generated = proxy(cfg, shell).ensure_certificate()
    assert generated is True
    assert f"sudo test -f {CERT_PATH} -a -f {KEY_PATH}" in shell.remote_commands
    assert cert_command("203.0.113.10") in shell.remote_commands


def test_invalid_config_blocks_reload(cfg, shell):
    shell.on("sudo nginx -t", returncode=1, stderr="nginx: [emerg] unexpected }")
    with pytest.raises(ProxyError, match="validation failed") as exc:
        proxy(cfg, shell).activate()
    assert "emerg" in str(exc.value)
    assert "sudo systemctl reload nginx" not in shell.remote_commands


def test_activate_links_validates_then_reloads(cfg, shell):
    proxy(cfg, shell).activate()
    assert shell.remote_commands == [
        f"sudo ln -sf {NGINX_CONF} /etc/nginx/sites-enabled/",
        "sudo nginx -t",
        "sudo systemctl reload nginx",
    ]


def test_smoke_tests_report_but_never_fail(cfg, shell):
    shell.on("http://localhost", returncode=7, stdout="000")
    shell.on("https://localhost", stdout="200")
    out = proxy(cfg, shell).smoke_test()
    assert out == {"HTTP": "000", "HTTPS": "200"}


def test_apply_order(cfg, shell):
    shell.on(f"sudo test -f {NGINX_CONF}", returncode=1)
    shell.on(f"sudo test -f {CERT_PATH}", returncode=1)
    result = proxy(cfg, shell).apply()
    assert result.created is True
    assert result.cert_generated is True
    cmds = shell.remote_commands
    assert cmds.index(f"sudo tee {NGINX_CONF} > /dev/null") < cmds.index("sudo nginx -t")
    assert cmds.index(cert_command("203.0.113.10")) < cmds.index("sudo systemctl reload nginx")
