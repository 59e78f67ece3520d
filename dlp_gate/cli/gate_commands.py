"""CLI commands that scan and gate git operations."""

import logging
import os
from typing import Callable, List, Optional, TypeVar

import click

from dlp_gate.core.errors import GateError
from dlp_gate.git_integration.gate import SCANNED_ENV_VAR, GitOperation, detect_operation
from dlp_gate.git_integration.git_hooks import PushUpdate, parse_pre_push_input
from dlp_gate.models.scan import Decision, ScopeMode
from dlp_gate.cli.context import CliContext
from dlp_gate.cli.report import render_decision, render_failure, write_report
from dlp_gate.utils.logging_config import log_security_event


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_GATE_FAILURE = 1
EXIT_BLOCKED = 2

T = TypeVar("T")

PASSTHROUGH = {"ignore_unknown_options": True, "allow_extra_args": True}


def _guarded(operation: str, fn: Callable[[], T]) -> T:
    """Run fn, turning gate failures into a report and exit code 1."""
    try:
        return fn()
    except GateError as e:
        logger.debug("Gate failure", exc_info=True)
        log_security_event("gate_failure", str(e), severity="ERROR", operation=operation,
                           additional_data={"error_type": type(e).__name__})
        render_failure(e)
        click.get_current_context().exit(EXIT_GATE_FAILURE)


def _finish(decision: Decision, output_format: str = "text", report: Optional[str] = None) -> int:
    render_decision(decision, output_format)
    if report:
        path = write_report(decision, report)
        logger.info(f"Wrote report to {path}")
    return EXIT_OK if decision.should_proceed else EXIT_BLOCKED


@click.command()
@click.option('--mode', '-m', type=click.Choice([m.value for m in ScopeMode]), default=ScopeMode.STAGED.value,
              show_default=True, help='Which changes to scan')
@click.option('--base', help="Base revision for working-diff mode ('empty' for a fresh clone)")
@click.option('--format', '-f', 'output_format', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.option('--report', type=click.Path(dir_okay=False), help='Also write the decision as JSON')
@click.option('--skip-if-scanned', is_flag=True,
              help=f'Exit 0 without scanning when {SCANNED_ENV_VAR} is set by a gated push')
@click.option('--refs-from-stdin', is_flag=True,
              help='Range mode: scan the ref updates a pre-push hook receives on stdin')
@click.pass_context
def scan(ctx: click.Context, mode: str, base: Optional[str], output_format: str,
         report: Optional[str], skip_if_scanned: bool, refs_from_stdin: bool):
    """Scan changes for sensitive data and exit non-zero if any is found.

    Exit codes: 0 clean, 1 gate failure, 2 blocked by findings.
    """
    if skip_if_scanned and os.environ.get(SCANNED_ENV_VAR) == "1":
        logger.info("Changes already scanned by dlp-gate, skipping")
        ctx.exit(EXIT_OK)

    if refs_from_stdin and ScopeMode(mode) is not ScopeMode.RANGE:
        raise click.UsageError("--refs-from-stdin requires --mode range")

    obj: CliContext = ctx.obj
    if refs_from_stdin:
        stdin = click.get_text_stream("stdin").read()
        decision = _guarded(mode, lambda: _scan_push_updates(obj, parse_pre_push_input(stdin)))
    else:
        decision = _guarded(mode, lambda: obj.build_orchestrator().run(ScopeMode(mode), base=base))
    log_security_event(
        "scan_passed" if decision.should_proceed else "findings_present",
        decision.reason,
        severity="INFO" if decision.should_proceed else "WARNING",
        operation=mode,
        additional_data=decision.to_dict(),
    )
    ctx.exit(_finish(decision, output_format, report))


def _scan_push_updates(obj: CliContext, updates: List[PushUpdate]) -> Decision:
    """Scan each pushed ref from the remote tip it replaces. Deletions carry no content."""
    orchestrator = obj.build_orchestrator()
    decisions = []
    for update in updates:
        if update.is_delete:
            continue
        logger.info(f"Scanning push of {update.local_ref} to {update.remote_ref}")
        decisions.append(orchestrator.run(ScopeMode.RANGE, base=update.base, tip=update.local_sha))
    return Decision.combine(ScopeMode.RANGE, decisions)


def _gated_run(ctx: click.Context, operation: GitOperation, git_args: tuple) -> None:
    obj: CliContext = ctx.obj
    outcome = _guarded(operation.value, lambda: obj.build_gate().run(operation, git_args))
    code = _finish(outcome.decision)
    if outcome.performed:
        ctx.exit(outcome.returncode)
    ctx.exit(code)


@click.command(context_settings=PASSTHROUGH)
@click.argument('git_args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def push(ctx: click.Context, git_args: tuple):
    """Scan unpushed commits, then run git push with the scanned marker."""
    _gated_run(ctx, GitOperation.PUSH, git_args)


@click.command(context_settings=PASSTHROUGH)
@click.argument('git_args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def commit(ctx: click.Context, git_args: tuple):
    """Scan staged files, then run git commit."""
    _gated_run(ctx, GitOperation.COMMIT, git_args)


@click.command(context_settings=PASSTHROUGH)
@click.argument('args', nargs=-1, type=click.UNPROCESSED)
@click.option('--base', help='Override the base revision for pull/clone checks')
@click.option('--report', type=click.Path(dir_okay=False), help='Also write the decision as JSON')
@click.pass_context
def check(ctx: click.Context, args: tuple, base: Optional[str], report: Optional[str]):
    """Evaluate the gate for a git operation (push, pull, clone, commit) without running it.

    Example: dlp-gate check push origin main
    """
    operation = detect_operation(args)
    if operation is None:
        raise click.UsageError("expected one of: " + ", ".join(op.value for op in GitOperation))

    obj: CliContext = ctx.obj
    click.echo(f"🔍 Scanning for sensitive data for git {operation.value}...", err=True)
    decision = _guarded(operation.value, lambda: obj.build_gate().evaluate(operation, base=base))
    ctx.exit(_finish(decision, report=report))
