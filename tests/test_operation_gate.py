"""Tests for the operation gate and the scanned marker."""

import logging
from unittest.mock import MagicMock

import pytest

from dlp_gate.core.errors import InspectionUnavailableError, ScopeResolutionError
from dlp_gate.engines.scan_orchestrator import ScanOrchestrator
from dlp_gate.git_integration.gate import (
    SCANNED_ENV_VAR,
    GitOperation,
    OperationGate,
    ScannedMarker,
    detect_operation,
)
from dlp_gate.git_integration.revision_source import EMPTY_TREE
from dlp_gate.models.scan import ScopeMode
from tests.fakes import FakeRevisionSource, ScriptedInspector


def make_gate(source, inspector, policy, environ=None, runner=None):
    orchestrator = ScanOrchestrator(source, inspector, policy)
    runner = runner or MagicMock()
    runner.push.return_value = 0
    runner.commit.return_value = 0
    marker = ScannedMarker("DLP-Scanned: true", environ={} if environ is None else environ)
    return OperationGate(orchestrator, runner=runner, marker=marker), runner


class TestScannedMarker:

    def test_sets_and_restores(self):
        environ = {"PATH": "/bin"}
        marker = ScannedMarker("X-Scanned: yes", environ=environ)

        with marker.applied():
            assert environ["GIT_CONFIG_COUNT"] == "1"
            assert environ["GIT_CONFIG_KEY_0"] == "http.extraHeader"
            assert environ["GIT_CONFIG_VALUE_0"] == "X-Scanned: yes"
            assert environ[SCANNED_ENV_VAR] == "1"

        assert environ == {"PATH": "/bin"}

    def test_appends_after_existing_config_entries(self):
        environ = {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "core.autocrlf",
            "GIT_CONFIG_VALUE_0": "false",
        }
        original = dict(environ)

        with ScannedMarker(environ=environ).applied():
            assert environ["GIT_CONFIG_COUNT"] == "2"
            assert environ["GIT_CONFIG_KEY_0"] == "core.autocrlf"
            assert environ["GIT_CONFIG_KEY_1"] == "http.extraHeader"

        assert environ == original

    def test_cleared_when_operation_raises(self):
        environ = {}
        with pytest.raises(RuntimeError):
            with ScannedMarker(environ=environ).applied():
                raise RuntimeError("push crashed")
        assert environ == {}


class TestOperationGate:

    def test_push_blocked_never_runs_git(self, pii_inspector, policy):
        source = FakeRevisionSource(
            commits=["c1"],
            files={"c1": {"leak.txt": "a@b.com"}},
            head={"leak.txt": "a@b.com"},
        )
        environ = {}
        gate, runner = make_gate(source, pii_inspector, policy, environ)

        outcome = gate.run(GitOperation.PUSH, ["origin", "main"])

        assert not outcome.decision.should_proceed
        assert not outcome.performed
        runner.push.assert_not_called()
        assert environ == {}

    def test_push_allowed_runs_with_marker(self, pii_inspector, policy):
        source = FakeRevisionSource(commits=["c1"], files={"c1": {"a.txt": "clean"}},
                                    head={"a.txt": "clean"})
        environ = {}
        gate, runner = make_gate(source, pii_inspector, policy, environ)
        seen = {}

        def push(args):
            seen.update(environ)
            return 0

        runner.push.side_effect = push

        outcome = gate.run(GitOperation.PUSH, ["--tags"])

        assert outcome.performed
        assert outcome.returncode == 0
        runner.push.assert_called_once_with(["--tags"])
        assert seen["GIT_CONFIG_VALUE_0"] == "DLP-Scanned: true"
        assert seen[SCANNED_ENV_VAR] == "1"
        assert environ == {}

    def test_push_failure_code_is_reported_and_marker_cleared(self, pii_inspector, policy):
        source = FakeRevisionSource(commits=[], has_upstream=True)
        environ = {}
        gate, runner = make_gate(source, pii_inspector, policy, environ)
        runner.push.return_value = 128

        outcome = gate.run(GitOperation.PUSH)

        assert outcome.returncode == 128
        assert environ == {}

    def test_commit_runs_without_marker(self, pii_inspector, policy):
        source = FakeRevisionSource(index={"a.txt": "clean"})
        environ = {}
        gate, runner = make_gate(source, pii_inspector, policy, environ)
        seen = {}
        runner.commit.side_effect = lambda args: seen.update(environ) or 0

        outcome = gate.run(GitOperation.COMMIT, ["-m", "msg"])

        assert outcome.decision.mode is ScopeMode.STAGED
        runner.commit.assert_called_once_with(["-m", "msg"])
        assert seen == {}

    def test_commit_blocked_on_staged_secret(self, pii_inspector, policy):
        source = FakeRevisionSource(index={"a.txt": "ssn 123-45-6789"})
        gate, runner = make_gate(source, pii_inspector, policy)

        outcome = gate.run(GitOperation.COMMIT, ["-m", "msg"])

        assert outcome.decision.evidence[0].info_types == ("US_SOCIAL_SECURITY_NUMBER",)
        runner.commit.assert_not_called()

    @pytest.mark.parametrize("operation,base", [
        (GitOperation.PULL, "ORIG_HEAD"),
        (GitOperation.CLONE, EMPTY_TREE),
    ])
    def test_pull_and_clone_are_evaluate_only(self, pii_inspector, policy, operation, base):
        source = FakeRevisionSource(working_changes=["a.txt"], working_tree={"a.txt": "a@b.com"})
        gate, runner = make_gate(source, pii_inspector, policy)

        outcome = gate.run(operation)

        assert source.bases == [base]
        assert outcome.decision.mode is ScopeMode.WORKING_DIFF
        assert not outcome.decision.should_proceed
        assert not outcome.performed
        runner.push.assert_not_called()
        runner.commit.assert_not_called()

    def test_explicit_base_wins(self, pii_inspector, policy):
        source = FakeRevisionSource()
        gate, _ = make_gate(source, pii_inspector, policy)

        gate.evaluate(GitOperation.PULL, base="abc123")

        assert source.bases == ["abc123"]

    def test_gate_failure_propagates_without_running(self, policy):
        source = FakeRevisionSource(index={"a.txt": "text"})
        gate, runner = make_gate(source, ScriptedInspector(fail=True), policy)

        with pytest.raises(InspectionUnavailableError):
            gate.run(GitOperation.COMMIT)
        runner.commit.assert_not_called()

    def test_no_upstream_propagates(self, pii_inspector, policy):
        gate, runner = make_gate(FakeRevisionSource(has_upstream=False), pii_inspector, policy)

        with pytest.raises(ScopeResolutionError) as excinfo:
            gate.run(GitOperation.PUSH)
        assert excinfo.value.is_configuration_error
        assert excinfo.value.hint == "git push --set-upstream origin main"
        runner.push.assert_not_called()

    def test_decision_is_audited(self, pii_inspector, policy, caplog):
        source = FakeRevisionSource(index={"a.txt": "a@b.com"})
        gate, _ = make_gate(source, pii_inspector, policy)

        with caplog.at_level(logging.INFO, logger="dlp_gate.security"):
            gate.evaluate(GitOperation.COMMIT)

        [record] = [r for r in caplog.records if getattr(r, "security_event", False)]
        assert record.event_type == "findings_present"
        assert record.operation == "commit"


@pytest.mark.parametrize("argv,expected", [
    (["push", "origin", "main"], GitOperation.PUSH),
    (["--verbose", "commit", "-m", "x"], GitOperation.COMMIT),
    (["pull"], GitOperation.PULL),
    (["clone", "url"], GitOperation.CLONE),
    (["status"], None),
    ([], None),
])
def test_detect_operation(argv, expected):
    assert detect_operation(argv) is expected
