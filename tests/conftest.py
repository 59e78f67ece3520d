"""Pytest configuration and fixtures for DLP Gate tests."""

import logging
import os
import subprocess

import pytest

from dlp_gate.core.interfaces import DEFAULT_INFO_TYPES, InspectionPolicy
from tests.fakes import ScriptedInspector
from tests.gitutil import git


@pytest.fixture
def policy():
    """Default policy: the four built-in info types."""
    return InspectionPolicy(info_types=DEFAULT_INFO_TYPES)


@pytest.fixture
def pii_inspector():
    """Scripted inspector that flags an email and an SSN marker."""
    return ScriptedInspector({
        "a@b.com": "EMAIL_ADDRESS",
        "123-45-6789": "US_SOCIAL_SECURITY_NUMBER",
    })


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep DLP_GATE_* and git config variables from leaking into tests."""
    for name in list(os.environ):
        if name.startswith("DLP_GATE_") or name.startswith("GIT_CONFIG_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def git_repo(tmp_path):
    """A repository whose main branch tracks a bare upstream with one pushed commit."""
    remote = tmp_path / "remote.git"
    repo = tmp_path / "work"
    subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
    subprocess.run(["git", "init", str(repo)], check=True, capture_output=True)
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "dev@example.invalid")
    git(repo, "config", "user.name", "Dev")
    git(repo, "config", "commit.gpgsign", "false")

    (repo / "README.md").write_text("project readme\n")
    git(repo, "add", "README.md")
    git(repo, "commit", "-m", "initial")
    git(repo, "remote", "add", "origin", str(remote))
    git(repo, "push", "--set-upstream", "origin", "main")
    return repo


@pytest.fixture(autouse=True)
def reset_gate_logging():
    """Drop handlers the CLI attaches so they never outlive a test's streams."""
    yield
    gate_logger = logging.getLogger("dlp_gate")
    for handler in list(gate_logger.handlers):
        gate_logger.removeHandler(handler)
        handler.close()
