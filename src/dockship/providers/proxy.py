from __future__ import annotations
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Dict, Optional
import logging
import re
import shlex

from ..config import DeploymentConfig
from ..errors import ProxyError
from ..remote import RemoteSession, RemoteStep
from .base import Provider

log = logging.getLogger(__name__)

NGINX_CONF = "/etc/nginx/sites-available/hngapp.conf"
NGINX_ENABLED = "/etc/nginx/sites-enabled/"
CERT_DIR = "/etc/ssl/hngapp"
CERT_PATH = f"{CERT_DIR}/hngapp.crt"
KEY_PATH = f"{CERT_DIR}/hngapp.key"


def render_nginx_config(port: int, cert_path: str = CERT_PATH, key_path: str = KEY_PATH) -> str:
    return dedent(
        f"""\
        server {{
            listen 80;
            server_name _;

            location / {{
                proxy_pass http://localhost:{port};
                proxy_set_header Host $host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-Proto $scheme;
            }}
        }}

        server {{
            listen 443 ssl;
            server_name _;

            ssl_certificate {cert_path};
            ssl_certificate_key {key_path};

            location / {{
                proxy_pass http://localhost:{port};
                proxy_set_header Host $host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
                proxy_set_header X-Forwarded-Proto $scheme;
            }}
        }}
        """
    )


def cert_command(common_name: str) -> str:
    return (
        "sudo openssl req -x509 -newkey rsa:2048 -nodes "
        f"-keyout {KEY_PATH} -out {CERT_PATH} -days 365 "
        f"-subj {shlex.quote('/CN=' + common_name)}"
    )


SMOKE_TESTS = {
    "HTTP": "curl -s -o /dev/null -w '%{http_code}' http://localhost",
    "HTTPS": "curl -s -k -o /dev/null -w '%{http_code}' https://localhost",
}

_CODE_RE = re.compile(r"\b(\d{3})\b")


@dataclass
class ProxyResult:
    created: bool
    cert_generated: bool
    smoke: Dict[str, Optional[str]] = field(default_factory=dict)


class ProxyConfigurator(Provider):
    def __init__(self, cfg: DeploymentConfig, session: RemoteSession):
        self.cfg = cfg
        self.session = session

    def plan(self) -> str:
        return (
            f"Would write {NGINX_CONF} proxying :80 and :443 to localhost:{self.cfg.app_port}, "
            f"ensure a self-signed cert for {self.cfg.remote_host} and reload nginx"
        )

    def _exists(self, *paths: str) -> bool:
        test = " -a ".join(f"-f {shlex.quote(p)}" for p in paths)
        r = self.session.execute(
            RemoteStep(f"Checking {', '.join(paths)}", f"sudo test {test}", check=False),
            ProxyError,
        )
        return r.ok

    def write_config(self) -> bool:
        created = not self._exists(NGINX_CONF)
        log.info("%s Nginx config", "Creating new" if created else "Updating existing")
        self.session.execute(
            RemoteStep(
                f"Writing {NGINX_CONF}",
                f"sudo tee {NGINX_CONF} > /dev/null",
                input=render_nginx_config(self.cfg.app_port),
            ),
            ProxyError,
        )
        return created

    def ensure_certificate(self) -> bool:
        """Generate the self-signed pair unless both the certificate and key exist."""
        self.session.execute(RemoteStep(f"Ensuring {CERT_DIR}", f"sudo mkdir -p {CERT_DIR}"), ProxyError)
        if self._exists(CERT_PATH, KEY_PATH):
            log.info("SSL cert already exists")
            return False
        self.session.execute(
            RemoteStep("Generating self-signed SSL cert", cert_command(self.cfg.remote_host)),
            ProxyError,
        )
        return True

    def activate(self) -> None:
        self.session.execute(
            RemoteStep("Enabling site", f"sudo ln -sf {NGINX_CONF} {NGINX_ENABLED}"),
            ProxyError,
        )
        r = self.session.execute(RemoteStep("Validating nginx config", "sudo nginx -t", check=False), ProxyError)
        if not r.ok:
            raise ProxyError("nginx config validation failed; not reloading", context=r.detail)
        self.session.execute(RemoteStep("Reloading nginx", "sudo systemctl reload nginx"), ProxyError)
        log.info("Reverse proxy and SSL setup complete")

    def smoke_test(self) -> Dict[str, Optional[str]]:
        """Report local status codes; informational only."""
        out: Dict[str, Optional[str]] = {}
        for label, command in SMOKE_TESTS.items():
            r = self.session.execute(RemoteStep(f"{label} smoke test", command, check=False), ProxyError)
            m = _CODE_RE.search(r.stdout)
            out[label] = m.group(1) if m else None
            log.info("%s code (local): %s", label, out[label] or "no response")
        return out

    def apply(self) -> ProxyResult:
        created = self.write_config()
        generated = self.ensure_certificate()
        self.activate()
        return ProxyResult(created=created, cert_generated=generated, smoke=self.smoke_test())

