"""CLI commands for managing git hooks."""

import logging

import click

from dlp_gate.core.errors import ConfigurationError
from dlp_gate.git_integration.git_hooks import GitHooks, HookStatus, HookType
from dlp_gate.cli.context import CliContext


logger = logging.getLogger(__name__)

HOOK_CHOICES = [h.value for h in HookType]


def _hooks(ctx: click.Context) -> GitHooks:
    obj: CliContext = ctx.obj
    try:
        return GitHooks(str(obj.repo_path))
    except ConfigurationError as e:
        raise click.ClickException(str(e))


def _selected(hook_names: tuple):
    return [HookType(name) for name in hook_names] or None


@click.group(name='hooks')
def hooks_cli():
    """Manage dlp-gate git hooks."""
    pass


@hooks_cli.command()
@click.option('--hook', '-k', 'hook_names', multiple=True, type=click.Choice(HOOK_CHOICES),
              help='Hook to install (default: all)')
@click.option('--force', is_flag=True, help='Overwrite hooks written by other tools')
@click.pass_context
def install(ctx: click.Context, hook_names: tuple, force: bool):
    """Install dlp-gate hooks into .git/hooks."""
    results = _hooks(ctx).install_hooks(_selected(hook_names), force=force)

    failed = [hook.value for hook, ok in results.items() if not ok]
    for hook, ok in results.items():
        if ok:
            click.echo(f"✅ Installed {hook.value}")
    if failed:
        click.echo(f"❌ Existing hooks left untouched: {', '.join(failed)} (use --force to replace)", err=True)
        ctx.exit(1)


@hooks_cli.command()
@click.option('--hook', '-k', 'hook_names', multiple=True, type=click.Choice(HOOK_CHOICES),
              help='Hook to remove (default: all)')
@click.pass_context
def uninstall(ctx: click.Context, hook_names: tuple):
    """Remove dlp-gate hooks."""
    results = _hooks(ctx).uninstall_hooks(_selected(hook_names))
    for hook, ok in results.items():
        if ok:
            click.echo(f"✅ Removed {hook.value}")
        else:
            click.echo(f"⚠️  {hook.value} is not managed by dlp-gate, left in place", err=True)


@hooks_cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show which hooks are installed."""
    symbols = {HookStatus.INSTALLED: "✅", HookStatus.FOREIGN: "⚠️ ", HookStatus.MISSING: "❌"}
    for hook, state in _hooks(ctx).get_hook_status().items():
        click.echo(f"{symbols[state]} {hook.value}: {state.value}")
