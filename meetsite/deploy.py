"""
The full deploy sequence.

render -> activate -> certificate (only when none exists) -> reload -> status

There are no retries and no rollback: a fatal error stops the sequence
where it happened, and re-running is safe because every step is
idempotent or only adds backups.
"""

import logging

from .certs import acquire_certificate, certificate_present
from .config import Config
from .models import Outcome
from .nginx import activate_config, reload_proxy, render_config
from .status import status_report
from .tools import Toolbox

logger = logging.getLogger(__name__)


def deploy(config: Config, tools: Toolbox) -> list[Outcome]:
    """
    Run the deploy sequence and return each step's Outcome in order.

    Raises:
        MissingDependency, ConfigWriteError, ReloadError: from the failing step
    """
    logger.info(f"Deploying {config.domain}")
    outcomes = [
        render_config(config, tools),
        activate_config(config),
    ]

    if certificate_present(config):
        logger.info("Certificate already exists; skipping issuance.")
    else:
        outcomes.append(acquire_certificate(config, tools))

    outcomes.append(reload_proxy(config, tools))
    outcomes.append(status_report(config, tools))

    warnings = sum(len(o.warnings) for o in outcomes)
    logger.info(f"Deploy finished with {warnings} warning(s)")
    return outcomes
