"""
Configuration for the meetsite tool.

Loads settings from environment variables (and a .env file) with sensible
defaults. The resulting Config is immutable and passed explicitly to every
component; nothing reads the environment after startup.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

DOMAIN_DEFAULT = "meet.funnelskingdom.com"
WEB_LOCAL_PORT_DEFAULT = 8445  # Jitsi web container exposed localhost port
COLIBRI_HOST_PORT_DEFAULT = 9091  # Host port mapped to JVB internal 8080 (colibri ws)

_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9.-]+$")


@dataclass(frozen=True)
class DeploymentParameters:
    """The three values an operator may override per deployment."""

    domain: str = DOMAIN_DEFAULT
    web_local_port: int = WEB_LOCAL_PORT_DEFAULT
    colibri_host_port: int = COLIBRI_HOST_PORT_DEFAULT

    def __post_init__(self):
        if not self.domain or not _HOSTNAME_RE.match(self.domain):
            raise ConfigError(f"Invalid domain name: {self.domain!r}")
        for name in ("web_local_port", "colibri_host_port"):
            port = getattr(self, name)
            if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
                raise ConfigError(f"Invalid {name}: {port!r} (expected 1-65535)")


@dataclass(frozen=True)
class Config:
    """meetsite configuration."""

    params: DeploymentParameters = field(default_factory=DeploymentParameters)

    # Nginx / certbot
    certbot_webroot: Path = Path("/var/www/certbot")
    sites_available: Path = Path("/etc/nginx/sites-available")
    sites_enabled: Path = Path("/etc/nginx/sites-enabled")
    letsencrypt_live_dir: Path = Path("/etc/letsencrypt/live")

    # Systemd / docker stack
    systemd_unit_path: Path = Path("/etc/systemd/system/jitsi-stack.service")
    jitsi_dir: Path = Path("/opt/apps/jitsi")
    container_name_filter: str = "jitsi"

    # Prosody
    prosody_container: str = "jitsi-prosody-1"
    prosody_data_dir: Path = Path.home() / ".jitsi-meet-cfg" / "prosody" / "config" / "data"

    # Logging
    data_dir: Path = Path.home() / ".meetsite"
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB
    log_backup_count: int = 5

    # Collaborator commands; None waits for them to finish
    command_timeout: Optional[int] = None

    @property
    def domain(self) -> str:
        return self.params.domain

    @property
    def vhost_file(self) -> Path:
        return self.sites_available / self.domain

    @property
    def enabled_link(self) -> Path:
        return self.sites_enabled / self.domain

    @property
    def cert_dir(self) -> Path:
        return self.letsencrypt_live_dir / self.domain

    @property
    def fullchain(self) -> Path:
        return self.cert_dir / "fullchain.pem"

    @property
    def privkey(self) -> Path:
        return self.cert_dir / "privkey.pem"

    @property
    def unit_name(self) -> str:
        return self.systemd_unit_path.stem

    @property
    def log_file(self) -> Path:
        return self.data_dir / "meetsite.log"


def _int_env(env: dict, name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _path_env(env: dict, name: str, default: Path) -> Path:
    raw = env.get(name)
    return Path(raw).expanduser() if raw else default


def load_config(env: dict = None, dotenv: bool = True) -> Config:
    """
    Build the Config from the environment.

    Args:
        env: Mapping to read instead of os.environ (used by tests)
        dotenv: Whether to load a .env file into os.environ first
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    defaults = Config.__dataclass_fields__
    params = DeploymentParameters(
        domain=env.get("DOMAIN") or DOMAIN_DEFAULT,
        web_local_port=_int_env(env, "WEB_LOCAL_PORT", WEB_LOCAL_PORT_DEFAULT),
        colibri_host_port=_int_env(env, "COLIBRI_HOST_PORT", COLIBRI_HOST_PORT_DEFAULT),
    )

    timeout = _int_env(env, "COMMAND_TIMEOUT", defaults["command_timeout"].default)
    if timeout is not None and timeout <= 0:
        raise ConfigError(f"COMMAND_TIMEOUT must be positive, got {timeout}")

    return Config(
        params=params,
        certbot_webroot=_path_env(env, "CERTBOT_WEBROOT", defaults["certbot_webroot"].default),
        sites_available=_path_env(env, "NGINX_SITES_AVAILABLE", defaults["sites_available"].default),
        sites_enabled=_path_env(env, "NGINX_SITES_ENABLED", defaults["sites_enabled"].default),
        letsencrypt_live_dir=_path_env(env, "LETSENCRYPT_LIVE_DIR", defaults["letsencrypt_live_dir"].default),
        systemd_unit_path=_path_env(env, "SYSTEMD_UNIT_PATH", defaults["systemd_unit_path"].default),
        jitsi_dir=_path_env(env, "JITSI_DIR", defaults["jitsi_dir"].default),
        container_name_filter=env.get("CONTAINER_NAME_FILTER") or defaults["container_name_filter"].default,
        prosody_container=env.get("PROSODY_CONTAINER") or defaults["prosody_container"].default,
        prosody_data_dir=_path_env(env, "PROSODY_DATA_DIR", defaults["prosody_data_dir"].default),
        data_dir=_path_env(env, "MEETSITE_DATA_DIR", defaults["data_dir"].default),
        log_max_bytes=_int_env(env, "LOG_MAX_BYTES", defaults["log_max_bytes"].default),
        log_backup_count=_int_env(env, "LOG_BACKUP_COUNT", defaults["log_backup_count"].default),
        command_timeout=timeout,
    )
