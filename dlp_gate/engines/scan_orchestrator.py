"""Scan orchestration: scope resolution, inspection and the gating decision.

One orchestrator serves every operation. Modes differ only in how the scope
is computed and when the decision is taken:

* ``range`` inspects every file touched by every unpushed commit, records the
  paths that produced findings, then re-inspects only those paths at the tip
  commit. A pre-push hook passes the pushed tip and the remote base instead.
  History may contain a secret that a later commit removed.
* ``last-commit``, ``staged`` and ``working-diff`` inspect each file once and
  abort if any file has findings. All files are still inspected so the report
  lists every offending path.
"""

import fnmatch
import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from dlp_gate.core.errors import ContentNotFoundError, GateError, ScopeResolutionError
from dlp_gate.core.interfaces import (
    HEAD,
    INDEX,
    WORKING_TREE,
    ContentInspector,
    Finding,
    InspectionPolicy,
    RevisionSource,
)
from dlp_gate.models.scan import (
    ChangeScope,
    Decision,
    Evidence,
    FileSnapshot,
    FileVerdict,
    FlaggedSet,
    ScanTarget,
    ScopeMode,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ScanState(Enum):
    IDLE = "idle"
    SCOPE_RESOLVED = "scope_resolved"
    SCANNING = "scanning"
    FLAGGED_PENDING = "flagged_pending"
    VERIFIED = "verified"
    DONE = "done"


class ScanOrchestrator:
    """Drives a revision source and a content inspector to a Decision."""

    def __init__(self,
                 source: RevisionSource,
                 inspector: ContentInspector,
                 policy: InspectionPolicy,
                 max_workers: int = 1,
                 exclude_patterns: Sequence[str] = ()):
        self.source = source
        self.inspector = inspector
        self.policy = policy
        self.max_workers = max(1, max_workers)
        self.exclude_patterns = list(exclude_patterns)
        self.state = ScanState.IDLE
        self._digest_lock = threading.Lock()
        self._findings_by_digest: Dict[str, Tuple[Finding, ...]] = {}

    def _transition(self, state: ScanState) -> None:
        logger.debug(f"Scan state {self.state.value} -> {state.value}")
        self.state = state

    def run(self, mode: ScopeMode, base: Optional[str] = None, tip: Optional[str] = None) -> Decision:
        """Resolve the scope for mode and scan it."""
        scope = self.resolve_scope(mode, base=base, tip=tip)
        return self.scan(scope)

    # Scope resolution

    def _is_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_patterns)

    def _targets(self, revision: str, paths: Sequence[str]) -> List[ScanTarget]:
        return [ScanTarget(revision, path) for path in paths if not self._is_excluded(path)]

    def resolve_scope(self, mode: ScopeMode, base: Optional[str] = None,
                      tip: Optional[str] = None) -> ChangeScope:
        """Compute the (revision, path) pairs a decision has to cover.

        In range mode, tip selects the commits reachable from tip but not from
        base instead of the unpushed commits of the current branch.
        """
        self._transition(ScanState.IDLE)
        try:
            if mode is ScopeMode.RANGE:
                if tip:
                    revisions = self.source.commits_in_range(tip, base)
                else:
                    revisions = self.source.upstream_commits()
                targets: List[ScanTarget] = []
                for revision in revisions:
                    targets.extend(self._targets(revision, self.source.files_changed_in(revision)))
                # pin the tip so evidence names a commit id
                final_revision = self.source.resolve_revision(tip or HEAD)
                scope = ChangeScope(mode, tuple(targets), tuple(revisions), final_revision=final_revision)
            elif mode is ScopeMode.LAST_COMMIT:
                scope = ChangeScope(mode, tuple(self._targets(HEAD, self.source.last_commit_files())), (HEAD,))
            elif mode is ScopeMode.STAGED:
                scope = ChangeScope(mode, tuple(self._targets(INDEX, self.source.staged_files())))
            elif mode is ScopeMode.WORKING_DIFF:
                paths = self.source.working_tree_changes(base or HEAD)
                scope = ChangeScope(mode, tuple(self._targets(WORKING_TREE, paths)))
            else:
                raise ValueError(f"Unsupported scope mode: {mode}")
        except GateError as e:
            raise ScopeResolutionError(f"Could not resolve {mode.value} scope: {e}", cause=e) from e

        logger.info(f"Resolved {mode.value} scope: {len(scope)} file(s) across "
                    f"{len(scope.revisions) or 1} revision(s)")
        self._transition(ScanState.SCOPE_RESOLVED)
        return scope

    # Inspection

    def _map(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        if self.max_workers == 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            return list(executor.map(fn, items))

    def _snapshot(self, target: ScanTarget) -> Optional[FileSnapshot]:
        try:
            content = self.source.read_at(target.revision, target.path)
        except ContentNotFoundError:
            logger.debug(f"Skipping {target.path}: not present at {target.revision}")
            return None
        return FileSnapshot(path=target.path, revision=target.revision, content=content)

    def _inspect(self, snapshot: FileSnapshot) -> FileVerdict:
        digest = hashlib.sha256(snapshot.content).hexdigest()
        with self._digest_lock:
            cached = self._findings_by_digest.get(digest)
        if cached is None:
            cached = tuple(self.inspector.inspect(snapshot.text, self.policy))
            with self._digest_lock:
                self._findings_by_digest[digest] = cached
        return FileVerdict(path=snapshot.path, revision=snapshot.revision, findings=cached)

    def _inspect_target(self, target: ScanTarget) -> Optional[FileVerdict]:
        snapshot = self._snapshot(target)
        if snapshot is None:
            return None
        verdict = self._inspect(snapshot)
        if verdict.blocked:
            logger.warning(f"Sensitive data ({', '.join(verdict.info_types)}) found in "
                           f"{verdict.path} at {verdict.revision}")
        return verdict

    # Decision

    def scan(self, scope: ChangeScope) -> Decision:
        """Inspect a resolved scope and return the decision."""
        with self._digest_lock:
            self._findings_by_digest.clear()
        self._transition(ScanState.SCANNING)

        if scope.mode.defers_decision:
            decision = self._scan_range(scope)
        else:
            decision = self._scan_single_pass(scope)

        self._transition(ScanState.DONE)
        logger.info(f"Decision for {scope.mode.value} scope: {decision.outcome.value} "
                    f"({decision.files_scanned} file(s) scanned)")
        return decision

    def _scan_single_pass(self, scope: ChangeScope) -> Decision:
        verdicts = [v for v in self._map(self._inspect_target, scope.targets) if v is not None]
        evidence = [Evidence.from_verdict(v) for v in verdicts if v.blocked]
        self._transition(ScanState.VERIFIED)
        if evidence:
            return Decision.abort(scope.mode, evidence, files_scanned=len(verdicts))
        return Decision.proceed(scope.mode, files_scanned=len(verdicts))

    def _scan_range(self, scope: ChangeScope) -> Decision:
        flagged = FlaggedSet()

        def scan_historical(target: ScanTarget) -> Optional[FileVerdict]:
            verdict = self._inspect_target(target)
            if verdict is not None and verdict.blocked:
                flagged.add(target.path, target.revision)
            return verdict

        for revision in scope.revisions:
            logger.info(f"Scanning commit: {revision}")
        verdicts = [v for v in self._map(scan_historical, scope.targets) if v is not None]
        self._transition(ScanState.FLAGGED_PENDING)

        flagged_paths = tuple(flagged.paths())
        if not flagged_paths:
            self._transition(ScanState.VERIFIED)
            return Decision.proceed(scope.mode, files_scanned=len(verdicts))

        logger.info(f"Performing final-state scan on {len(flagged_paths)} flagged file(s)")
        final_revision = scope.final_revision or HEAD
        final_targets = [ScanTarget(final_revision, path) for path in flagged_paths]
        evidence = [
            Evidence.from_verdict(v, flagged_in=flagged.revisions_for(v.path))
            for v in self._map(self._inspect_target, final_targets)
            if v is not None and v.blocked
        ]
        self._transition(ScanState.VERIFIED)

        if evidence:
            return Decision.abort(scope.mode, evidence, files_scanned=len(verdicts),
                                  flagged_paths=flagged_paths)
        return Decision.proceed(scope.mode, files_scanned=len(verdicts), flagged_paths=flagged_paths)
