"""Scan data models: scopes, snapshots, verdicts and decisions."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from dlp_gate.core.interfaces import Finding


class ScopeMode(Enum):
    """How the set of files to scan is selected."""
    RANGE = "range"
    LAST_COMMIT = "last-commit"
    STAGED = "staged"
    WORKING_DIFF = "working-diff"

    @property
    def defers_decision(self) -> bool:
        """Range scans re-check flagged paths at the tip before deciding."""
        return self is ScopeMode.RANGE


@dataclass(frozen=True)
class ScanTarget:
    """A (revision, path) pair implied by a scope."""
    revision: str
    path: str


@dataclass(frozen=True)
class ChangeScope:
    """Everything a single gating decision has to evaluate."""
    mode: ScopeMode
    targets: Tuple[ScanTarget, ...]
    revisions: Tuple[str, ...] = ()
    final_revision: Optional[str] = None

    @property
    def paths(self) -> List[str]:
        seen = []
        for target in self.targets:
            if target.path not in seen:
                seen.append(target.path)
        return seen

    def __len__(self) -> int:
        return len(self.targets)


@dataclass(frozen=True)
class FileSnapshot:
    """Content of one path at one revision."""
    path: str
    revision: str
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class FileVerdict:
    """Inspection outcome for one snapshot. Findings present means blocked."""
    path: str
    revision: str
    findings: Tuple[Finding, ...] = ()

    @property
    def blocked(self) -> bool:
        return len(self.findings) > 0

    @property
    def info_types(self) -> Tuple[str, ...]:
        return tuple(sorted({f.info_type for f in self.findings}))


class FlaggedSet:
    """Paths flagged in some historical revision, pending a final-state check.

    Membership only ever grows. Safe to add to from worker threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._flagged: Dict[str, Set[str]] = {}

    def add(self, path: str, revision: str) -> None:
        with self._lock:
            self._flagged.setdefault(path, set()).add(revision)

    def revisions_for(self, path: str) -> Tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._flagged.get(path, ())))

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._flagged)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._flagged

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths())

    def __len__(self) -> int:
        with self._lock:
            return len(self._flagged)

    def __bool__(self) -> bool:
        return len(self) > 0


@dataclass(frozen=True)
class Evidence:
    """Why a path blocked the operation."""
    path: str
    revision: str
    info_types: Tuple[str, ...]
    finding_count: int
    flagged_in: Tuple[str, ...] = ()

    @classmethod
    def from_verdict(cls, verdict: FileVerdict, flagged_in: Tuple[str, ...] = ()) -> "Evidence":
        return cls(
            path=verdict.path,
            revision=verdict.revision,
            info_types=verdict.info_types,
            finding_count=len(verdict.findings),
            flagged_in=flagged_in,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "revision": self.revision,
            "info_types": list(self.info_types),
            "finding_count": self.finding_count,
            "flagged_in": list(self.flagged_in),
        }


class DecisionOutcome(Enum):
    PROCEED = "proceed"
    ABORT = "abort"


@dataclass(frozen=True)
class Decision:
    """Terminal output of a scan."""
    outcome: DecisionOutcome
    mode: ScopeMode
    reason: str
    evidence: Tuple[Evidence, ...] = ()
    files_scanned: int = 0
    flagged_paths: Tuple[str, ...] = ()
    decided_at: datetime = field(default_factory=datetime.now, compare=False)

    @classmethod
    def proceed(cls, mode: ScopeMode, files_scanned: int,
                flagged_paths: Tuple[str, ...] = ()) -> "Decision":
        if flagged_paths:
            reason = (f"{len(flagged_paths)} file(s) flagged in history are clean "
                      f"in their final state")
        else:
            reason = "No sensitive data found"
        return cls(
            outcome=DecisionOutcome.PROCEED,
            mode=mode,
            reason=reason,
            files_scanned=files_scanned,
            flagged_paths=flagged_paths,
        )

    @classmethod
    def abort(cls, mode: ScopeMode, evidence: List[Evidence], files_scanned: int,
              flagged_paths: Tuple[str, ...] = ()) -> "Decision":
        return cls(
            outcome=DecisionOutcome.ABORT,
            mode=mode,
            reason=f"Sensitive data found in {len(evidence)} file(s)",
            evidence=tuple(sorted(evidence, key=lambda e: (e.path, e.revision))),
            files_scanned=files_scanned,
            flagged_paths=flagged_paths,
        )

    @classmethod
    def combine(cls, mode: ScopeMode, decisions: List["Decision"]) -> "Decision":
        """Merge per-ref decisions of one push. Any abort blocks the whole push."""
        evidence = [item for decision in decisions for item in decision.evidence]
        files_scanned = sum(decision.files_scanned for decision in decisions)
        flagged_paths = tuple(sorted({p for decision in decisions for p in decision.flagged_paths}))
        if evidence:
            return cls.abort(mode, evidence, files_scanned=files_scanned, flagged_paths=flagged_paths)
        return cls.proceed(mode, files_scanned=files_scanned, flagged_paths=flagged_paths)

    @property
    def should_proceed(self) -> bool:
        return self.outcome is DecisionOutcome.PROCEED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "outcome": self.outcome.value,
            "mode": self.mode.value,
            "reason": self.reason,
            "files_scanned": self.files_scanned,
            "flagged_paths": list(self.flagged_paths),
            "evidence": [e.to_dict() for e in self.evidence],
            "decided_at": self.decided_at.isoformat(),
        }
