"""CLI commands for inspecting and initializing configuration."""

import click
import yaml

from dlp_gate.core.errors import ConfigurationError
from dlp_gate.models.config import GateConfiguration
from dlp_gate.cli.context import CliContext


@click.group(name='config')
def config_group():
    """Show or initialize dlp-gate configuration."""
    pass


@config_group.command()
@click.pass_context
def show(ctx: click.Context):
    """Print the effective configuration as YAML."""
    obj: CliContext = ctx.obj
    try:
        config = obj.config
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    click.echo(f"# source: {obj.loader.config_file if obj.loader.config_file.exists() else 'environment defaults'}")
    click.echo(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False).rstrip())


@config_group.command()
@click.option('--force', is_flag=True, help='Overwrite an existing configuration file')
@click.pass_context
def init(ctx: click.Context, force: bool):
    """Write a configuration file with the default settings."""
    obj: CliContext = ctx.obj
    loader = obj.loader
    if loader.config_file.exists() and not force:
        raise click.ClickException(f"{loader.config_file} already exists (use --force to overwrite)")
    try:
        path = loader.save(GateConfiguration())
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    click.echo(f"✅ Wrote {path}")
