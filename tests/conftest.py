"""Shared fixtures: a Config rooted in tmp_path and a fake command runner."""

from pathlib import Path

import pytest

from meetsite import status as status_module
from meetsite.config import Config, DeploymentParameters
from meetsite.errors import CommandError
from meetsite.tools import CommandResult, CommandRunner, Toolbox


class FakeRunner(CommandRunner):
    """Records commands instead of running them.

    ``responses`` maps an argv prefix tuple to either a
    (returncode, stdout, stderr) tuple or a callable taking argv and
    returning a CommandResult. Unmatched commands succeed silently.
    """

    def __init__(self, available=("nginx", "certbot", "systemctl", "docker"), responses=None):
        super().__init__(timeout=5, use_sudo=False)
        self.available = set(available)
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []

    def which(self, tool: str) -> bool:
        return tool in self.available

    def run(self, argv, privileged=False, check=True):
        argv = list(argv)
        self.calls.append(argv)
        result = CommandResult(argv, 0)
        for prefix, response in self.responses.items():
            if tuple(argv[: len(prefix)]) == prefix:
                if callable(response):
                    result = response(argv)
                else:
                    result = CommandResult(argv, *response)
                break
        if check and not result.ok:
            raise CommandError(argv, result.returncode, result.stderr)
        return result

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    (tmp_path / "sites-available").mkdir()
    (tmp_path / "sites-enabled").mkdir()
    return Config(
        params=DeploymentParameters("meet.example.com", 8445, 9091),
        certbot_webroot=tmp_path / "www" / "certbot",
        sites_available=tmp_path / "sites-available",
        sites_enabled=tmp_path / "sites-enabled",
        letsencrypt_live_dir=tmp_path / "live",
        systemd_unit_path=tmp_path / "systemd" / "jitsi-stack.service",
        jitsi_dir=tmp_path / "jitsi",
        prosody_data_dir=tmp_path / "prosody" / "data",
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def tools(runner: FakeRunner) -> Toolbox:
    return Toolbox.from_runner(runner)


@pytest.fixture(autouse=True)
def quiet_network_checks(monkeypatch):
    """Keep status checks off the real network stack."""
    monkeypatch.setattr(status_module, "listening_ports", lambda ports: [443])
    monkeypatch.setattr(status_module, "check_upstream", lambda port, timeout=3.0: 200)
