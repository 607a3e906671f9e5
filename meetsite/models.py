"""
Result types shared by meetsite operations.

Every operation returns an Outcome. Best-effort steps that fail do not
raise; they record a warning on the Outcome so callers and tests can see
exactly what was tolerated.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class OutcomeStatus(Enum):
    OK = "ok"
    SKIPPED = "skipped"
    WARNING = "warning"


class CertificateSource(Enum):
    EXISTING = "existing"
    ISSUED = "issued"
    SELF_SIGNED = "self_signed"


@dataclass
class Outcome:
    """Result of one operation, with any tolerated failures."""

    name: str
    status: OutcomeStatus = OutcomeStatus.OK
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def warn(self, message: str) -> "Outcome":
        """Record a tolerated failure and downgrade an OK status."""
        self.warnings.append(message)
        if self.status == OutcomeStatus.OK:
            self.status = OutcomeStatus.WARNING
        return self


@dataclass
class CertificateInfo:
    """What could be read from an installed certificate chain."""

    path: str
    subject: Optional[str] = None
    issuer: Optional[str] = None
    not_after: Optional[datetime] = None
    self_signed: bool = False


@dataclass
class StatusReport:
    """Read-only snapshot of the deployment."""

    domain: str
    web_local_port: int
    colibri_host_port: int
    vhost_file: str
    vhost_exists: bool
    enabled_link: str
    enabled_exists: bool
    cert_dir: str
    certificate: Optional[CertificateInfo] = None
    unit_path: str = ""
    unit_installed: bool = False
    listening_ports: list[int] = field(default_factory=list)
    upstream_status: Optional[int] = None
    containers: list[tuple[str, str]] = field(default_factory=list)

    def lines(self) -> list[str]:
        """Render the report as aligned text lines."""
        yes_no = {True: "yes", False: "no"}
        lines = [
            "--- STATUS ---",
            f"Domain:            {self.domain}",
            f"Vhost file:        {self.vhost_file} (exists: {yes_no[self.vhost_exists]})",
            f"Enabled symlink:   {self.enabled_link} (exists: {yes_no[self.enabled_exists]})",
            f"Cert live dir:     {self.cert_dir}",
        ]
        if self.certificate:
            kind = "self-signed" if self.certificate.self_signed else "issued"
            expires = self.certificate.not_after.isoformat() if self.certificate.not_after else "unknown"
            lines.append(f"Certificate:       {kind}, expires {expires}")
        else:
            lines.append("Certificate:       none")
        lines.extend([
            f"Web local port:    {self.web_local_port}",
            f"Colibri host port: {self.colibri_host_port}",
            f"Systemd unit:      {self.unit_path} (installed: {yes_no[self.unit_installed]})",
            "Listening: " + (", ".join(str(p) for p in self.listening_ports) or "none"),
            "Upstream HTTP:     " + (str(self.upstream_status) if self.upstream_status else "unreachable"),
            "Containers:",
        ])
        if self.containers:
            lines.extend(f"  {name}\t{status}" for name, status in self.containers)
        else:
            lines.append("  none")
        return lines
