"""
Listing of registered Prosody (XMPP) accounts.

Accounts are collected from two places and merged: `prosodyctl list`
inside the running prosody container, and the per-account .dat files
Prosody keeps on the host volume. Both sources are best effort.
"""

import logging
import re
from pathlib import Path
from urllib.parse import unquote

from .config import Config
from .errors import MeetSiteError
from .models import Outcome
from .tools import Toolbox

logger = logging.getLogger(__name__)

# prosodyctl can print luarocks warnings; only keep user@domain lines
ACCOUNT_LINE_RE = re.compile(r"^[A-Za-z0-9_.+-]+@\S+$")

PROSODYCTL_LIST = ["prosodyctl", "--config", "/config/prosody.cfg.lua", "list"]


def parse_prosodyctl_output(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if ACCOUNT_LINE_RE.match(line.strip())]


def scan_account_files(data_dir: Path) -> list[str]:
    """Derive account identifiers from `<host>/accounts/<user>.dat` files."""
    accounts = []
    for path in sorted(data_dir.rglob("*.dat")):
        if path.parent.name != "accounts":
            continue
        user = unquote(path.stem)
        host_dir = path.parent.parent
        if host_dir == data_dir:
            accounts.append(user)
        else:
            accounts.append(f"{user}@{unquote(host_dir.name)}")
    return accounts


def list_xmpp_users(config: Config, tools: Toolbox) -> Outcome:
    """
    Collect registered accounts from the container and the host filesystem.

    Never raises; anything that could not be read is recorded as a warning.
    """
    outcome = Outcome(name="list-xmpp-users")
    found = set()

    logger.info("Attempting to list users via prosodyctl")
    try:
        if config.prosody_container in tools.docker.container_names():
            result = tools.docker.exec(config.prosody_container, PROSODYCTL_LIST)
            container_accounts = parse_prosodyctl_output(result.stdout)
            if not result.ok and not container_accounts:
                outcome.warn(f"prosodyctl list exited with {result.returncode}")
            found.update(container_accounts)
            outcome.details["container"] = container_accounts
        else:
            outcome.warn(f"Prosody container {config.prosody_container} not found; using filesystem scan")
    except MeetSiteError as e:
        outcome.warn(f"Could not query prosody container: {e}")

    logger.info(f"Scanning account files under {config.prosody_data_dir}")
    try:
        if config.prosody_data_dir.is_dir():
            file_accounts = scan_account_files(config.prosody_data_dir)
            found.update(file_accounts)
            outcome.details["filesystem"] = file_accounts
        else:
            outcome.warn(f"Prosody data directory not found: {config.prosody_data_dir}")
    except OSError as e:
        outcome.warn(f"Could not scan {config.prosody_data_dir}: {e}")

    for warning in outcome.warnings:
        logger.warning(warning)

    outcome.details["accounts"] = sorted(found)
    outcome.message = f"{len(found)} account(s) found"
    return outcome
