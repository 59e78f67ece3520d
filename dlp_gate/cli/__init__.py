"""Command-line interface for DLP Gate."""

from typing import Optional

import click

from dlp_gate import __version__
from dlp_gate.cli.context import CliContext
from dlp_gate.cli.config_commands import config_group
from dlp_gate.cli.gate_commands import check, commit, push, scan
from dlp_gate.cli.hook_commands import hooks_cli
from dlp_gate.utils.logging_config import setup_logging


@click.group()
@click.version_option(__version__, prog_name="dlp-gate")
@click.option('--repo', '-r', type=click.Path(exists=True, file_okay=False), default='.',
              help='Repository to operate on')
@click.option('--config', '-c', 'config_file', type=click.Path(dir_okay=False),
              help='Configuration file (default: <repo>/.dlp-gate.yaml)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx: click.Context, repo: str, config_file: Optional[str], verbose: bool):
    """DLP Gate - block git operations that would publish sensitive data."""
    setup_logging({"log_level": "DEBUG" if verbose else "WARNING"})
    ctx.obj = CliContext(repo_path=repo, config_file=config_file, verbose=verbose)


cli.add_command(scan)
cli.add_command(push)
cli.add_command(commit)
cli.add_command(check)
cli.add_command(hooks_cli)
cli.add_command(config_group)


if __name__ == '__main__':
    cli()
