"""
Wrappers around the external tools meetsite drives.

Each collaborator (nginx, certbot, systemctl, docker) gets a narrow class
with only the calls meetsite needs. They all share a CommandRunner, so
tests can swap in a fake runner or fake collaborators without touching
real system tools.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import CertificateAcquisitionFailure, CommandError, MissingDependency, ReloadError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured result of one external command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external commands, escalating with sudo when not root."""

    def __init__(self, timeout: Optional[int] = None, use_sudo: Optional[bool] = None):
        self.timeout = timeout
        if use_sudo is None:
            use_sudo = hasattr(os, "geteuid") and os.geteuid() != 0
        self.use_sudo = use_sudo

    def which(self, tool: str) -> bool:
        """Check whether a tool is on PATH."""
        return shutil.which(tool) is not None

    def run(
        self,
        argv: list[str],
        privileged: bool = False,
        check: bool = True,
    ) -> CommandResult:
        """
        Run a command to completion and capture its output.

        Args:
            argv: Command and arguments
            privileged: Prefix with sudo when not running as root
            check: Raise CommandError on a non-zero exit

        Returns:
            CommandResult with decoded stdout/stderr
        """
        cmd = list(argv)
        if privileged and self.use_sudo:
            cmd = ["sudo", *cmd]

        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise MissingDependency(cmd[0]) from None
        except subprocess.TimeoutExpired:
            result = CommandResult(cmd, -1, "", f"timed out after {self.timeout}s")
        else:
            result = CommandResult(cmd, proc.returncode, proc.stdout or "", proc.stderr or "")

        if check and not result.ok:
            raise CommandError(result.argv, result.returncode, result.stderr)
        return result


class NginxControl:
    """Nginx syntax check and reload."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def installed(self) -> bool:
        return self.runner.which("nginx")

    def test_config(self) -> CommandResult:
        """Run `nginx -t`; never raises on a bad config."""
        return self.runner.run(["nginx", "-t"], privileged=True, check=False)

    def reload(self):
        result = self.runner.run(["systemctl", "reload", "nginx"], privileged=True, check=False)
        if not result.ok:
            raise ReloadError(f"Nginx reload failed: {result.stderr.strip() or result.returncode}")


class CertbotClient:
    """Certbot in non-interactive webroot mode."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def available(self) -> bool:
        return self.runner.which("certbot")

    def certonly(self, webroot: Path, domain: str):
        """Request a certificate; raises CertificateAcquisitionFailure on error."""
        argv = [
            "certbot", "certonly",
            "--non-interactive",
            "--agree-tos",
            "--no-eff-email",
            "--register-unsafely-without-email",
            "--webroot", "-w", str(webroot),
            "-d", domain,
        ]
        try:
            self.runner.run(argv, privileged=True)
        except (CommandError, MissingDependency) as e:
            raise CertificateAcquisitionFailure(f"Certbot failed: {e}") from e


class SystemdControl:
    """The handful of systemctl verbs used for the stack unit."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def daemon_reload(self):
        self.runner.run(["systemctl", "daemon-reload"], privileged=True)

    def enable(self, unit: str):
        self.runner.run(["systemctl", "enable", unit], privileged=True)

    def disable_now(self, unit: str):
        self.runner.run(["systemctl", "disable", "--now", unit], privileged=True)


class DockerControl:
    """Read-only container queries plus `docker exec`."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def container_names(self) -> list[str]:
        result = self.runner.run(["docker", "ps", "--format", "{{.Names}}"])
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def containers(self, name_filter: str = "") -> list[tuple[str, str]]:
        """Return (name, status) for running containers whose name contains the filter."""
        result = self.runner.run(["docker", "ps", "--format", "{{.Names}}\t{{.Status}}"])
        rows = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, _, status = line.partition("\t")
            if name_filter in name:
                rows.append((name.strip(), status.strip()))
        return rows

    def exec(self, container: str, argv: list[str]) -> CommandResult:
        return self.runner.run(["docker", "exec", container, *argv], check=False)


@dataclass
class Toolbox:
    """The collaborators one run uses."""

    nginx: NginxControl
    certbot: CertbotClient
    systemd: SystemdControl
    docker: DockerControl

    @classmethod
    def from_runner(cls, runner: CommandRunner) -> "Toolbox":
        return cls(
            nginx=NginxControl(runner),
            certbot=CertbotClient(runner),
            systemd=SystemdControl(runner),
            docker=DockerControl(runner),
        )
