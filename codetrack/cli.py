"""Command-line interface."""

import json
import sys

import click

from . import __version__
from .auth import CredentialResolver, DeviceAuthFlow
from .config import Config, setup_logging
from .errors import AuthenticationError
from .report import build_report
from .state import StateStore
from .sync import DiffMetricsCollector


@click.group(invoke_without_command=True)
@click.version_option(__version__)
@click.pass_context
def cli(ctx):
    """CodeTrack Sync - commit your coding activity to GitHub."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
def run():
    """Start the tray agent (default)."""
    from .main import main

    main()


@cli.command()
def login():
    """Sign in to GitHub and cache the credentials."""
    config = Config.load()
    setup_logging(config.debug_mode)

    def show_code(user_code: str, verification_uri: str) -> None:
        click.echo(f"Enter code {click.style(user_code, bold=True)} at {verification_uri}")

    flow = DeviceAuthFlow(config.oauth_client_id, on_user_code=show_code)
    resolver = CredentialResolver(config, auth_flow=flow)
    try:
        credentials = resolver.resolve()
    except AuthenticationError as e:
        click.echo(f"Sign-in failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"Signed in as {credentials.username}")


@cli.command()
def logout():
    """Remove cached GitHub credentials."""
    resolver = CredentialResolver(Config.load())
    if resolver.forget():
        click.echo("Cached credentials removed")
    else:
        click.echo("No cached credentials found")


@cli.command()
def report():
    """Print the coding metrics report."""
    config = Config.load()
    metrics = DiffMetricsCollector()
    click.echo(
        build_report(
            StateStore(),
            tracking_stats=metrics.diff_stats(config.local_repo_path),
            workspace_stats=metrics.diff_stats(config.workspace_root),
        )
    )


@cli.command("config")
@click.option("--interval", type=int, help="Minutes between commits.")
@click.option("--prefix", help="Text put in front of every commit message.")
@click.option("--time-zone", help="IANA time zone for timestamps (empty for system).")
@click.option(
    "--track-opens/--no-track-opens",
    default=None,
    help="Log file opens (reported by editor integrations only).",
)
@click.option("--workspace", type=click.Path(file_okay=False), help="Folder to watch.")
def config_cmd(interval, prefix, time_zone, track_opens, workspace):
    """Show the configuration, or update it with the given options."""
    config = Config.load()
    changes = {}
    if interval is not None:
        changes["commit_interval"] = interval
    if prefix is not None:
        changes["commit_message_prefix"] = prefix
    if time_zone is not None:
        changes["time_zone"] = time_zone or None
    if track_opens is not None:
        changes["track_file_opens"] = track_opens
    if workspace is not None:
        changes["workspace_path"] = workspace

    if changes:
        config = config.with_changes(**changes)
        config.save()

    click.echo(f"# {Config.get_config_file()}")
    click.echo(json.dumps(config.redacted(), indent=2))


if __name__ == "__main__":
    cli()
