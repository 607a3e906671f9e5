"""
Systemd unit for the Jitsi docker-compose stack.

The unit is a oneshot that brings the core services up, then Jibri on top
of them, and stays "active" afterwards so `systemctl stop` tears the whole
stack down. The unit file is only ever installed if absent or removed;
an existing file is never rewritten.
"""

import logging

from .config import Config
from .errors import CommandError, ConfigWriteError, MissingDependency
from .models import Outcome, OutcomeStatus
from .nginx import atomic_write
from .tools import Toolbox

logger = logging.getLogger(__name__)

CORE_SERVICES = ("web", "prosody", "jicofo", "jvb")
COMPOSE_FILES = ("docker-compose.yml", "jitsi.ports.override.yml")
JIBRI_OVERRIDE = "jibri.override.yml"
START_TIMEOUT = 600


def _compose(files: tuple[str, ...], *args: str) -> str:
    flags = " ".join(f"-f {name}" for name in files)
    return " ".join(["/usr/bin/docker compose", flags, *args])


def render_unit(config: Config) -> str:
    """Build the unit file text for the stack."""
    full = COMPOSE_FILES + (JIBRI_OVERRIDE,)
    return "\n".join([
        "[Unit]",
        "Description=Jitsi + Jibri (docker compose)",
        "After=docker.service network-online.target",
        "Wants=network-online.target",
        "Requires=docker.service",
        "",
        "[Service]",
        "Type=oneshot",
        f"WorkingDirectory={config.jitsi_dir}",
        "ExecStart=" + _compose(COMPOSE_FILES, "up", "-d", *CORE_SERVICES),
        "ExecStartPost=" + _compose(full, "up", "-d", "jibri"),
        "ExecStop=" + _compose(full, "down"),
        "RemainAfterExit=yes",
        f"TimeoutStartSec={START_TIMEOUT}",
        "",
        "[Install]",
        "WantedBy=multi-user.target",
        "",
    ])


def install_unit(config: Config, tools: Toolbox) -> Outcome:
    """
    Install and enable the stack unit unless it already exists.

    Raises:
        ConfigWriteError: the unit file cannot be written
        CommandError: systemctl daemon-reload or enable failed
    """
    path = config.systemd_unit_path
    outcome = Outcome(name="install-supervisor-unit", details={"path": str(path)})

    if path.exists():
        outcome.status = OutcomeStatus.SKIPPED
        outcome.message = f"Systemd unit already exists: {path}"
        logger.info(outcome.message)
        return outcome

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(path, render_unit(config))
    except OSError as e:
        raise ConfigWriteError(f"Cannot write systemd unit {path}: {e}") from e

    tools.systemd.daemon_reload()
    tools.systemd.enable(config.unit_name)

    outcome.message = "Systemd unit installed & enabled."
    logger.info(outcome.message)
    return outcome


def remove_unit(config: Config, tools: Toolbox) -> Outcome:
    """
    Stop, disable and delete the stack unit if it is installed.

    Failing to stop the unit does not prevent removal; it is recorded as a
    warning.

    Raises:
        ConfigWriteError: the unit file cannot be deleted
        CommandError: systemctl daemon-reload failed
    """
    path = config.systemd_unit_path
    outcome = Outcome(name="remove-supervisor-unit", details={"path": str(path)})

    if not path.exists():
        outcome.status = OutcomeStatus.SKIPPED
        outcome.message = "Systemd unit not present."
        logger.info(outcome.message)
        return outcome

    try:
        tools.systemd.disable_now(config.unit_name)
    except (CommandError, MissingDependency) as e:
        logger.warning(f"Could not stop {config.unit_name}: {e}")
        outcome.warn(f"Could not stop {config.unit_name}: {e}")

    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        raise ConfigWriteError(f"Cannot remove systemd unit {path}: {e}") from e

    tools.systemd.daemon_reload()

    outcome.message = "Systemd unit removed."
    logger.info(outcome.message)
    return outcome
