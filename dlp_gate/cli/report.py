"""Rendering of decisions and gate failures for the terminal."""

import json
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from dlp_gate.core.errors import GateError
from dlp_gate.models.scan import Decision


console = Console()
error_console = Console(stderr=True)


def render_decision(decision: Decision, output_format: str = "text") -> None:
    """Print a decision as text (rich) or JSON."""
    if output_format == "json":
        console.print_json(json.dumps(decision.to_dict()))
        return

    if decision.should_proceed:
        console.print(f"✅ {decision.reason} - {decision.files_scanned} file(s) scanned "
                      f"({decision.mode.value})")
        return

    console.print(f"❌ {decision.reason}. Operation blocked.", style="bold red")

    table = Table(title="Offending files")
    table.add_column("Path", style="cyan")
    table.add_column("Revision")
    table.add_column("Info types", style="magenta")
    table.add_column("Findings", justify="right")
    table.add_column("Flagged in")

    for item in decision.evidence:
        table.add_row(
            item.path,
            _short(item.revision),
            ", ".join(item.info_types),
            str(item.finding_count),
            ", ".join(_short(r) for r in item.flagged_in) or "-",
        )
    console.print(table)


def render_failure(error: GateError) -> None:
    """One-line cause plus the corrective hint when there is one."""
    error_console.print(f"❌ Gate failure: {error}", style="bold red", highlight=False, soft_wrap=True)
    hint: Optional[str] = getattr(error, "hint", None)
    if hint:
        error_console.print(f"   Try: {hint}", highlight=False, soft_wrap=True)


def write_report(decision: Decision, report_path: str) -> Path:
    """Write the decision as a JSON report file."""
    path = Path(report_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(decision.to_dict(), f, indent=2)
    return path


def _short(revision: str) -> str:
    if len(revision) == 40 and all(c in "0123456789abcdef" for c in revision):
        return revision[:8]
    return revision
