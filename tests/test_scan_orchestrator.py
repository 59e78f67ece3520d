"""Tests for scan orchestration and the gating decision."""

import pytest

from dlp_gate.core.errors import (
    ContentReadError,
    InspectionUnavailableError,
    NoUpstreamError,
    ScopeResolutionError,
)
from dlp_gate.core.interfaces import HEAD, INDEX, WORKING_TREE, InspectionPolicy
from dlp_gate.engines.scan_orchestrator import ScanOrchestrator, ScanState
from dlp_gate.inspectors.pattern_inspector import PatternInspector
from dlp_gate.models.scan import DecisionOutcome, ScopeMode
from tests.fakes import FakeRevisionSource, ScriptedInspector


def make_orchestrator(source, inspector, policy, **kwargs):
    return ScanOrchestrator(source=source, inspector=inspector, policy=policy, **kwargs)


class TestStagedScope:
    """Staged files are read from the index and abort on any finding."""

    def test_staged_email_blocks_commit(self, policy):
        source = FakeRevisionSource(index={"notes.txt": "contact: a@b.com"})
        orchestrator = make_orchestrator(source, PatternInspector(), policy)

        decision = orchestrator.run(ScopeMode.STAGED)

        assert decision.outcome is DecisionOutcome.ABORT
        assert [(e.path, e.info_types) for e in decision.evidence] == [("notes.txt", ("EMAIL_ADDRESS",))]
        assert source.reads == [(INDEX, "notes.txt")]
        assert orchestrator.state is ScanState.DONE

    def test_all_offending_files_are_reported(self, policy, pii_inspector):
        source = FakeRevisionSource(index={
            "a.txt": "mail a@b.com",
            "b.txt": "clean",
            "c.txt": "ssn 123-45-6789",
        })
        orchestrator = make_orchestrator(source, pii_inspector, policy)

        decision = orchestrator.run(ScopeMode.STAGED)

        assert decision.outcome is DecisionOutcome.ABORT
        assert [e.path for e in decision.evidence] == ["a.txt", "c.txt"]
        assert decision.files_scanned == 3
        assert len(pii_inspector.calls) == 3

    def test_empty_scope_proceeds(self, policy, pii_inspector):
        decision = make_orchestrator(FakeRevisionSource(), pii_inspector, policy).run(ScopeMode.STAGED)

        assert decision.should_proceed
        assert decision.files_scanned == 0
        assert pii_inspector.calls == []


class TestLastCommitScope:

    def test_clean_last_commit_proceeds(self, policy):
        source = FakeRevisionSource(head={
            "src/app.py": "def handler():\n    return 42\n",
            "docs/guide.md": "Run the tests before pushing.\n",
        })

        decision = make_orchestrator(source, PatternInspector(), policy).run(ScopeMode.LAST_COMMIT)

        assert decision.outcome is DecisionOutcome.PROCEED
        assert decision.evidence == ()
        assert decision.files_scanned == 2
        assert {rev for rev, _ in source.reads} == {HEAD}


class TestWorkingDiffScope:

    def test_reads_working_tree_and_skips_deleted_files(self, policy, pii_inspector):
        source = FakeRevisionSource(
            working_tree={"kept.txt": "clean"},
            working_changes=["kept.txt", "removed.txt"],
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.WORKING_DIFF, base="ORIG_HEAD")

        assert decision.should_proceed
        assert decision.files_scanned == 1
        assert source.bases == ["ORIG_HEAD"]
        assert (WORKING_TREE, "removed.txt") in source.reads

    def test_base_defaults_to_head(self, policy, pii_inspector):
        source = FakeRevisionSource()
        make_orchestrator(source, pii_inspector, policy).run(ScopeMode.WORKING_DIFF)
        assert source.bases == [HEAD]


class TestRangeScope:
    """Commit ranges flag historical findings and decide on the final state."""

    def test_secret_fixed_by_later_commit_proceeds(self, policy):
        source = FakeRevisionSource(
            commits=["c1", "c2"],
            files={
                "c1": {"secrets.txt": "ssn: 123-45-6789"},
                "c2": {"secrets.txt": "ssn: REDACTED"},
            },
            head={"secrets.txt": "ssn: REDACTED"},
        )
        orchestrator = make_orchestrator(source, PatternInspector(), policy)

        decision = orchestrator.run(ScopeMode.RANGE)

        assert decision.outcome is DecisionOutcome.PROCEED
        assert decision.flagged_paths == ("secrets.txt",)
        assert decision.files_scanned == 2
        assert (HEAD, "secrets.txt") in source.reads

    def test_secret_never_fixed_aborts(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1", "c2"],
            files={
                "c1": {"secrets.txt": "ssn: 123-45-6789"},
                "c2": {"other.txt": "unrelated"},
            },
            head={"secrets.txt": "ssn: 123-45-6789", "other.txt": "unrelated"},
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE)

        assert decision.outcome is DecisionOutcome.ABORT
        assert len(decision.evidence) == 1
        evidence = decision.evidence[0]
        assert evidence.path == "secrets.txt"
        assert evidence.revision == HEAD
        assert evidence.info_types == ("US_SOCIAL_SECURITY_NUMBER",)
        assert evidence.flagged_in == ("c1",)

    def test_flagging_is_monotonic_across_commits(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1", "c2", "c3"],
            files={
                "c1": {"data.txt": "a@b.com"},
                "c2": {"data.txt": "clean"},
                "c3": {"data.txt": "a@b.com again"},
            },
            head={"data.txt": "a@b.com again"},
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE)

        assert decision.flagged_paths == ("data.txt",)
        assert decision.evidence[0].flagged_in == ("c1", "c3")

    def test_flagged_file_deleted_at_tip_proceeds(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1", "c2"],
            files={"c1": {"leak.txt": "a@b.com"}, "c2": {"leak.txt": None}},
            head={},
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE)

        assert decision.should_proceed
        assert decision.flagged_paths == ("leak.txt",)

    def test_clean_range_skips_final_pass(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1"],
            files={"c1": {"a.txt": "clean"}},
            head={"a.txt": "clean"},
        )
        orchestrator = make_orchestrator(source, pii_inspector, policy)

        decision = orchestrator.run(ScopeMode.RANGE)

        assert decision.should_proceed
        assert decision.flagged_paths == ()
        assert source.reads == [("c1", "a.txt")]

    def test_identical_content_is_inspected_once(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1", "c2"],
            files={"c1": {"a.txt": "same"}, "c2": {"b.txt": "same"}},
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE)

        assert decision.files_scanned == 2
        assert pii_inspector.calls == ["same"]

    def test_no_upstream_reads_and_inspects_nothing(self, policy, pii_inspector):
        source = FakeRevisionSource(commits=["c1"], files={"c1": {"a.txt": "a@b.com"}}, has_upstream=False)
        orchestrator = make_orchestrator(source, pii_inspector, policy)

        with pytest.raises(ScopeResolutionError) as exc_info:
            orchestrator.run(ScopeMode.RANGE)

        assert isinstance(exc_info.value.cause, NoUpstreamError)
        assert exc_info.value.is_configuration_error
        assert "set-upstream" in exc_info.value.hint
        assert source.reads == []
        assert pii_inspector.calls == []

    def test_unresolvable_revision_fails_scope(self, policy, pii_inspector):
        source = FakeRevisionSource(commits=["c1", "missing"], files={"c1": {"a.txt": "x"}})

        with pytest.raises(ScopeResolutionError) as exc_info:
            make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE)

        assert not exc_info.value.is_configuration_error


class TestFailClosed:

    @pytest.mark.parametrize("mode", [ScopeMode.STAGED, ScopeMode.RANGE])
    def test_inspection_failure_propagates(self, policy, mode):
        source = FakeRevisionSource(
            commits=["c1"],
            files={"c1": {"a.txt": "clean"}},
            index={"a.txt": "clean"},
        )
        orchestrator = make_orchestrator(source, ScriptedInspector(fail=True), policy)

        with pytest.raises(InspectionUnavailableError):
            orchestrator.run(mode)

        assert orchestrator.state is ScanState.SCANNING

    def test_read_error_is_fatal(self, policy, pii_inspector):
        class BrokenSource(FakeRevisionSource):
            def read_at(self, revision, path):
                raise ContentReadError("bad object", path=path, revision=revision)

        orchestrator = make_orchestrator(BrokenSource(index={"a.txt": "x"}), pii_inspector, policy)

        with pytest.raises(ContentReadError):
            orchestrator.run(ScopeMode.STAGED)


class TestScopeResolution:

    def test_exclude_patterns_filter_paths(self, policy, pii_inspector):
        source = FakeRevisionSource(index={"vendor/lib.js": "a@b.com", "app.py": "clean"})
        orchestrator = make_orchestrator(source, pii_inspector, policy, exclude_patterns=["vendor/*"])

        scope = orchestrator.resolve_scope(ScopeMode.STAGED)

        assert scope.paths == ["app.py"]
        assert orchestrator.state is ScanState.SCOPE_RESOLVED
        assert orchestrator.scan(scope).should_proceed

    def test_range_scope_keeps_commit_order(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1", "c2"],
            files={"c1": {"a.txt": "x"}, "c2": {"a.txt": "y", "b.txt": "z"}},
        )

        scope = make_orchestrator(source, pii_inspector, policy).resolve_scope(ScopeMode.RANGE)

        assert scope.revisions == ("c1", "c2")
        assert [(t.revision, t.path) for t in scope.targets] == [("c1", "a.txt"), ("c2", "a.txt"), ("c2", "b.txt")]
        assert scope.final_revision == HEAD

    def test_final_state_evidence_names_the_resolved_commit(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1"],
            files={"c1": {"leak.txt": "a@b.com"}},
            head={"leak.txt": "a@b.com"},
            head_sha="9f3c2a1",
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE)

        assert [e.revision for e in decision.evidence] == ["9f3c2a1"]
        assert ("9f3c2a1", "leak.txt") in source.reads


class TestPushedRefScope:
    """A pre-push hook scans from the remote tip to the pushed tip."""

    def test_new_branch_needs_no_upstream(self, policy, pii_inspector):
        source = FakeRevisionSource(
            has_upstream=False,
            ranges={"f2": ["f1", "f2"]},
            files={"f1": {"a.txt": "a@b.com"}, "f2": {"a.txt": "clean"}},
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE, tip="f2")

        assert decision.should_proceed
        assert decision.flagged_paths == ("a.txt",)
        assert source.range_requests == [("f2", None)]
        assert ("f2", "a.txt") in source.reads

    def test_secret_at_pushed_tip_aborts(self, policy, pii_inspector):
        source = FakeRevisionSource(
            ranges={"f1": ["f1"]},
            files={"f1": {"a.txt": "a@b.com"}},
        )

        decision = make_orchestrator(source, pii_inspector, policy).run(ScopeMode.RANGE, base="r0", tip="f1")

        assert not decision.should_proceed
        assert decision.evidence[0].revision == "f1"
        assert source.range_requests == [("f1", "r0")]


class TestDeterminism:

    def test_repeated_runs_yield_equal_decisions(self, policy, pii_inspector):
        source = FakeRevisionSource(
            commits=["c1", "c2"],
            files={"c1": {"a.txt": "a@b.com"}, "c2": {"b.txt": "clean"}},
            head={"a.txt": "a@b.com", "b.txt": "clean"},
        )
        orchestrator = make_orchestrator(source, pii_inspector, policy)

        assert orchestrator.run(ScopeMode.RANGE) == orchestrator.run(ScopeMode.RANGE)

    def test_worker_pool_matches_sequential(self, policy, pii_inspector):
        index = {f"file{i}.txt": ("a@b.com" if i % 3 == 0 else f"clean {i}") for i in range(12)}

        sequential = make_orchestrator(FakeRevisionSource(index=index), pii_inspector, policy).run(ScopeMode.STAGED)
        pooled = make_orchestrator(FakeRevisionSource(index=index), pii_inspector, policy,
                                   max_workers=4).run(ScopeMode.STAGED)

        assert sequential == pooled
        assert [e.path for e in pooled.evidence] == ["file0.txt", "file3.txt", "file6.txt", "file9.txt"]

    def test_disabled_detector_does_not_block(self, pii_inspector):
        source = FakeRevisionSource(index={"a.txt": "a@b.com"})
        policy = InspectionPolicy(info_types=("PHONE_NUMBER",))

        assert make_orchestrator(source, pii_inspector, policy).run(ScopeMode.STAGED).should_proceed
