"""
Nginx site management for the Jitsi deployment.

Renders the site configuration for the meeting domain into
sites-available, links it into sites-enabled and reloads nginx. The
rendered file is a fixed template with three placeholders, so rendering
is pure and the same parameters always produce the same bytes.

Reloading is gated on `nginx -t`: a configuration nginx rejects is never
loaded into the running server.
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

from .config import Config
from .errors import ConfigWriteError, MissingDependency, ReloadError
from .models import Outcome, OutcomeStatus
from .tools import Toolbox

logger = logging.getLogger(__name__)

PLACEHOLDERS = ("__DOMAIN__", "__WEB_LOCAL_PORT__", "__COLIBRI_HOST_PORT__")

VHOST_TEMPLATE = """\
server {
    listen 80;
    listen [::]:80;
    server_name __DOMAIN__;

    location ^~ /.well-known/acme-challenge/ {
        root __WEBROOT__;
        default_type "text/plain";
    }

    return 301 https://$host$request_uri;
}

server {
    listen 443 ssl http2;
    listen [::]:443 ssl http2;
    server_name __DOMAIN__;

    # Expect certs here (real or self-signed)
    ssl_certificate     __CERT_DIR__/fullchain.pem;
    ssl_certificate_key __CERT_DIR__/privkey.pem;
    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_ciphers ECDHE-ECDSA-AES128-GCM-SHA256:ECDHE-RSA-AES128-GCM-SHA256:ECDHE-ECDSA-AES256-GCM-SHA384:ECDHE-RSA-AES256-GCM-SHA384;
    ssl_prefer_server_ciphers off;
    ssl_session_cache shared:SSL:10m;
    ssl_session_timeout 1d;

    add_header Strict-Transport-Security "max-age=31536000" always;
    add_header X-Content-Type-Options nosniff;
    add_header Referrer-Policy no-referrer;
    server_tokens off;

    proxy_buffering off;
    proxy_request_buffering off;
    client_max_body_size 0;

    location / {
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto https;
        proxy_pass http://127.0.0.1:__WEB_LOCAL_PORT__;
    }

    # XMPP WebSocket
    location /xmpp-websocket {
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
        proxy_read_timeout 3600s;
        proxy_set_header Host $host;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto https;
        proxy_pass http://127.0.0.1:__WEB_LOCAL_PORT__;
    }

    # BOSH (long-polling fallback)
    location /http-bind {
        proxy_read_timeout 3600s;
        proxy_set_header Host $host;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto https;
        proxy_pass http://127.0.0.1:__WEB_LOCAL_PORT__;
    }

    # Colibri WebSocket (videobridge)
    location ^~ /colibri-ws/ {
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
        proxy_read_timeout 3600s;
        proxy_set_header Host $host;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto https;
        proxy_pass http://127.0.0.1:__COLIBRI_HOST_PORT__/colibri-ws/;
    }
}
"""


def render_vhost(
    domain: str,
    web_local_port: int,
    colibri_host_port: int,
    webroot: str = "/var/www/certbot",
    cert_dir: str = None,
) -> str:
    """Substitute the deployment parameters into the site template."""
    if cert_dir is None:
        cert_dir = f"/etc/letsencrypt/live/{domain}"
    return (
        VHOST_TEMPLATE
        .replace("__WEBROOT__", str(webroot))
        .replace("__CERT_DIR__", str(cert_dir))
        .replace("__DOMAIN__", domain)
        .replace("__WEB_LOCAL_PORT__", str(web_local_port))
        .replace("__COLIBRI_HOST_PORT__", str(colibri_host_port))
    )


def render_for(config: Config) -> str:
    return render_vhost(
        config.domain,
        config.params.web_local_port,
        config.params.colibri_host_port,
        webroot=config.certbot_webroot,
        cert_dir=config.cert_dir,
    )


def backup_path_for(path: Path, now: datetime = None) -> Path:
    """Pick an unused `<path>.bak-<YYYYMMDDHHMMSS>` name."""
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    candidate = path.with_name(f"{path.name}.bak-{stamp}")
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.bak-{stamp}-{counter}")
        counter += 1
    return candidate


def atomic_write(path: Path, content: str, mode: int = 0o644):
    """Write content via a temp file in the same directory and rename it into place."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def render_config(config: Config, tools: Toolbox) -> Outcome:
    """
    Write the nginx site file for the configured domain.

    An existing file is copied to a timestamped backup before being
    replaced. Backups are never removed.

    Raises:
        MissingDependency: nginx is not installed
        ConfigWriteError: the webroot, backup or site file cannot be written
    """
    if not tools.nginx.installed():
        raise MissingDependency("nginx")

    target = config.vhost_file
    outcome = Outcome(name="render-config", details={"path": str(target)})

    try:
        config.certbot_webroot.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigWriteError(f"Cannot create certbot webroot {config.certbot_webroot}: {e}") from e

    try:
        if target.exists():
            backup = backup_path_for(target)
            shutil.copy2(target, backup)
            outcome.details["backup"] = str(backup)
            logger.info(f"Existing vhost backed up to {backup}")

        atomic_write(target, render_for(config))
    except OSError as e:
        raise ConfigWriteError(f"Cannot write {target}: {e}") from e

    outcome.message = f"Vhost written: {target}"
    logger.info(outcome.message)
    return outcome


def activate_config(config: Config) -> Outcome:
    """
    Link the site file into sites-enabled, replacing any same-named entry.

    Never raises: a failure comes back as a warning on the Outcome.
    """
    link = config.enabled_link
    outcome = Outcome(name="activate", details={"link": str(link)})

    try:
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(config.vhost_file)
    except OSError as e:
        message = f"Could not enable site {link}: {e}"
        logger.warning(message)
        outcome.message = "Site not enabled"
        return outcome.warn(message)

    outcome.message = "Site enabled (symlink created)."
    logger.info(outcome.message)
    return outcome


def reload_proxy(config: Config, tools: Toolbox) -> Outcome:
    """
    Validate the nginx configuration and reload the running server.

    Raises:
        MissingDependency: nginx is not installed
        ReloadError: `nginx -t` failed (reload is not attempted) or the
            reload itself failed
    """
    if not tools.nginx.installed():
        raise MissingDependency("nginx")

    check = tools.nginx.test_config()
    if not check.ok:
        detail = check.stderr.strip() or f"exit status {check.returncode}"
        logger.error(f"nginx -t rejected the configuration: {detail}")
        raise ReloadError(f"Nginx configuration test failed: {detail}")

    tools.nginx.reload()
    logger.info("Nginx reloaded.")
    return Outcome(name="reload", status=OutcomeStatus.OK, message="Nginx reloaded.")
