"""
Read-only status report for the deployment.

Static facts (parameters, files, certificate) are always reported. Live
checks (listening sockets, the local web upstream, running containers)
are best effort: a check that fails leaves its field empty and adds a
warning instead of failing the report.
"""

import logging

import httpx
import psutil

from .certs import read_certificate
from .config import Config
from .errors import MeetSiteError
from .models import Outcome, StatusReport
from .tools import Toolbox

logger = logging.getLogger(__name__)


def listening_ports(ports: set[int]) -> list[int]:
    """Return which of the given TCP ports have a listening socket."""
    found = set()
    for conn in psutil.net_connections(kind="tcp"):
        if conn.status == psutil.CONN_LISTEN and conn.laddr and conn.laddr.port in ports:
            found.add(conn.laddr.port)
    return sorted(found)


def check_upstream(port: int, timeout: float = 3.0) -> int:
    """HTTP status code of the local web container."""
    response = httpx.get(f"http://127.0.0.1:{port}/", timeout=timeout)
    return response.status_code


def status_report(config: Config, tools: Toolbox) -> Outcome:
    """Collect a StatusReport; the report is stored in details["report"]."""
    params = config.params
    outcome = Outcome(name="status")

    report = StatusReport(
        domain=params.domain,
        web_local_port=params.web_local_port,
        colibri_host_port=params.colibri_host_port,
        vhost_file=str(config.vhost_file),
        vhost_exists=config.vhost_file.is_file(),
        enabled_link=str(config.enabled_link),
        enabled_exists=config.enabled_link.exists(),
        cert_dir=str(config.cert_dir),
        unit_path=str(config.systemd_unit_path),
        unit_installed=config.systemd_unit_path.exists(),
    )

    try:
        report.certificate = read_certificate(config)
    except (OSError, ValueError) as e:
        outcome.warn(f"Could not read certificate {config.fullchain}: {e}")

    wanted = {80, 443, params.web_local_port, params.colibri_host_port}
    try:
        report.listening_ports = listening_ports(wanted)
    except (psutil.Error, OSError) as e:
        outcome.warn(f"Could not list listening sockets: {e}")

    try:
        report.upstream_status = check_upstream(params.web_local_port)
    except httpx.HTTPError as e:
        outcome.warn(f"Web upstream on port {params.web_local_port} unreachable: {e}")

    try:
        report.containers = tools.docker.containers(config.container_name_filter)
    except MeetSiteError as e:
        outcome.warn(f"Could not list containers: {e}")

    for warning in outcome.warnings:
        logger.warning(warning)

    outcome.details["report"] = report
    outcome.message = "\n".join(report.lines())
    return outcome
