"""Operation gate: turns a scan decision into perform, skip or abort."""

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Sequence

from dlp_gate.engines.scan_orchestrator import ScanOrchestrator
from dlp_gate.git_integration.revision_source import EMPTY_TREE
from dlp_gate.git_integration.runner import GitOperationRunner
from dlp_gate.models.scan import Decision, ScopeMode
from dlp_gate.utils.logging_config import log_security_event


logger = logging.getLogger(__name__)

SCANNED_ENV_VAR = "DLP_GATE_SCANNED"


class GitOperation(Enum):
    PUSH = "push"
    COMMIT = "commit"
    PULL = "pull"
    CLONE = "clone"

    @property
    def scope_mode(self) -> ScopeMode:
        return _SCOPE_BY_OPERATION[self]

    @property
    def scope_base(self) -> Optional[str]:
        if self is GitOperation.PULL:
            return "ORIG_HEAD"
        if self is GitOperation.CLONE:
            return EMPTY_TREE
        return None

    @property
    def is_network_transfer(self) -> bool:
        return self is GitOperation.PUSH

    @property
    def is_runnable(self) -> bool:
        """Pull and clone are checked after the content is materialized."""
        return self in (GitOperation.PUSH, GitOperation.COMMIT)


_SCOPE_BY_OPERATION = {
    GitOperation.PUSH: ScopeMode.RANGE,
    GitOperation.COMMIT: ScopeMode.STAGED,
    GitOperation.PULL: ScopeMode.WORKING_DIFF,
    GitOperation.CLONE: ScopeMode.WORKING_DIFF,
}


def detect_operation(argv: Sequence[str]) -> Optional[GitOperation]:
    """Find the git operation named in an argument list, if any."""
    for arg in argv:
        if arg.startswith("-"):
            continue
        try:
            return GitOperation(arg)
        except ValueError:
            return None
    return None


class ScannedMarker:
    """Marks outbound git traffic as scanned for the duration of one operation.

    The header is passed to git as ``http.extraHeader`` through the
    ``GIT_CONFIG_COUNT``/``GIT_CONFIG_KEY_n``/``GIT_CONFIG_VALUE_n`` variables,
    appended after any entries already present. The previous environment is
    restored on every exit path.
    """

    def __init__(self, header: str = "DLP-Scanned: true", environ: Optional[Dict[str, str]] = None):
        self.header = header
        self.environ = os.environ if environ is None else environ

    def _variables(self) -> Dict[str, str]:
        try:
            index = int(self.environ.get("GIT_CONFIG_COUNT", "0"))
        except ValueError:
            index = 0
        return {
            "GIT_CONFIG_COUNT": str(index + 1),
            f"GIT_CONFIG_KEY_{index}": "http.extraHeader",
            f"GIT_CONFIG_VALUE_{index}": self.header,
            SCANNED_ENV_VAR: "1",
        }

    @contextmanager
    def applied(self) -> Iterator[Dict[str, str]]:
        variables = self._variables()
        previous = {name: self.environ.get(name) for name in variables}
        self.environ.update(variables)
        logger.debug(f"Scanned marker set: {self.header}")
        try:
            yield variables
        finally:
            for name, value in previous.items():
                if value is None:
                    self.environ.pop(name, None)
                else:
                    self.environ[name] = value
            logger.debug("Scanned marker cleared")


@dataclass(frozen=True)
class GateOutcome:
    """What the gate decided and, if it ran git, git's exit code."""
    operation: GitOperation
    decision: Decision
    returncode: Optional[int] = None

    @property
    def performed(self) -> bool:
        return self.returncode is not None


class OperationGate:
    """Asks the orchestrator for a decision and performs the operation if allowed."""

    def __init__(self,
                 orchestrator: ScanOrchestrator,
                 runner: Optional[GitOperationRunner] = None,
                 marker: Optional[ScannedMarker] = None):
        self.orchestrator = orchestrator
        self.runner = runner
        self.marker = marker or ScannedMarker()

    def evaluate(self, operation: GitOperation, base: Optional[str] = None) -> Decision:
        decision = self.orchestrator.run(operation.scope_mode, base=base or operation.scope_base)
        self._audit(operation, decision)
        return decision

    def run(self, operation: GitOperation, git_args: Sequence[str] = ()) -> GateOutcome:
        """Evaluate, then perform push/commit only when the decision is Proceed."""
        decision = self.evaluate(operation)

        if not decision.should_proceed:
            logger.error(f"Sensitive data detected. Blocking git {operation.value} operation.")
            return GateOutcome(operation, decision)

        if not operation.is_runnable or self.runner is None:
            return GateOutcome(operation, decision)

        if operation.is_network_transfer:
            with self.marker.applied():
                returncode = self.runner.push(git_args)
        else:
            returncode = self.runner.commit(git_args)
        return GateOutcome(operation, decision, returncode)

    def _audit(self, operation: GitOperation, decision: Decision) -> None:
        if decision.should_proceed:
            log_security_event("scan_passed", decision.reason, operation=operation.value,
                               additional_data={"files_scanned": decision.files_scanned})
        else:
            log_security_event("findings_present", decision.reason, severity="WARNING",
                               operation=operation.value, additional_data=decision.to_dict())


__all__ = [
    "GitOperation",
    "GateOutcome",
    "OperationGate",
    "ScannedMarker",
    "detect_operation",
]
