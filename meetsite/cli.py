"""
Command line interface for meetsite.

One subcommand per operation. Configuration comes from the environment
(DOMAIN, WEB_LOCAL_PORT, COLIBRI_HOST_PORT, ...). Fatal errors are logged
as a single line and exit with status 1; warnings never change the exit
status.
"""

import logging
from typing import Callable

import click
import typer
from typer.core import TyperGroup

from . import __version__
from .certs import generate_self_signed, obtain_certificate
from .config import Config, load_config
from .deploy import deploy
from .errors import MeetSiteError
from .logs import setup_logging
from .models import Outcome
from .nginx import activate_config, reload_proxy, render_config
from .status import status_report
from .systemd import install_unit, remove_unit
from .tools import CommandRunner, Toolbox
from .xmpp import list_xmpp_users

logger = logging.getLogger(__name__)


class UsageGroup(TyperGroup):
    """Prints the full usage, exit status 0, for an unknown subcommand."""

    def resolve_command(self, ctx: click.Context, args: list[str]):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError:
            typer.echo(ctx.get_help())
            ctx.exit(0)


app = typer.Typer(
    name="meetsite",
    cls=UsageGroup,
    help="Manage the nginx site, TLS certificate and systemd unit for a Jitsi Meet deployment.",
    invoke_without_command=True,
    add_completion=False,
)


def build_toolbox(config: Config) -> Toolbox:
    return Toolbox.from_runner(CommandRunner(timeout=config.command_timeout))


def _execute(ctx: typer.Context, action: Callable[[Config, Toolbox], object]):
    """Load config, run the action and turn fatal errors into exit status 1."""
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    try:
        config = load_config()
    except MeetSiteError as e:
        setup_logging(verbose)
        logger.error(str(e))
        raise typer.Exit(1)

    setup_logging(verbose, config)
    try:
        return action(config, build_toolbox(config))
    except MeetSiteError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def _echo_status(outcome: Outcome):
    typer.echo(outcome.message)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """Jitsi Meet site lifecycle tool."""
    if version:
        typer.echo(f"meetsite {__version__}")
        raise typer.Exit()
    ctx.obj = {"verbose": verbose}
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("render-config")
def render_config_cmd(ctx: typer.Context):
    """Write (or rewrite) the nginx site file, backing up the old one."""
    _execute(ctx, render_config)


@app.command("activate")
def activate_cmd(ctx: typer.Context):
    """Symlink the site into sites-enabled."""
    _execute(ctx, lambda config, tools: activate_config(config))


@app.command("obtain-certificate")
def obtain_certificate_cmd(ctx: typer.Context):
    """Obtain a certificate with certbot (webroot), then reload nginx."""
    def action(config, tools):
        obtain_certificate(config, tools)
        reload_proxy(config, tools)

    _execute(ctx, action)


@app.command("generate-self-signed")
def generate_self_signed_cmd(ctx: typer.Context):
    """Generate a temporary self-signed certificate, then reload nginx."""
    def action(config, tools):
        generate_self_signed(config)
        reload_proxy(config, tools)

    _execute(ctx, action)


@app.command("reload")
def reload_cmd(ctx: typer.Context):
    """Run `nginx -t` and reload nginx if it passes."""
    _execute(ctx, reload_proxy)


@app.command("status")
def status_cmd(ctx: typer.Context):
    """Show parameters, files, certificate, ports and containers."""
    _echo_status(_execute(ctx, status_report))


@app.command("install-supervisor-unit")
def install_unit_cmd(ctx: typer.Context):
    """Create and enable the jitsi-stack systemd unit."""
    _execute(ctx, install_unit)


@app.command("remove-supervisor-unit")
def remove_unit_cmd(ctx: typer.Context):
    """Stop, disable and delete the jitsi-stack systemd unit."""
    _execute(ctx, remove_unit)


@app.command("list-xmpp-users")
def list_xmpp_users_cmd(ctx: typer.Context):
    """List registered Prosody accounts."""
    outcome = _execute(ctx, list_xmpp_users)
    for account in outcome.details["accounts"]:
        typer.echo(account)


@app.command("deploy")
def deploy_cmd(ctx: typer.Context):
    """Write config, enable site, ensure a certificate, reload nginx, show status."""
    outcomes = _execute(ctx, deploy)
    _echo_status(outcomes[-1])


@app.command("help")
def help_cmd(ctx: typer.Context):
    """Show this message."""
    typer.echo(ctx.parent.get_help())


def run():
    app()


if __name__ == "__main__":
    run()
