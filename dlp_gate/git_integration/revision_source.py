"""Revision source backed by the git command line."""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from dlp_gate.core.errors import (
    ContentNotFoundError,
    ContentReadError,
    NoUpstreamError,
    RevisionReadError,
)
from dlp_gate.core.interfaces import HEAD, INDEX, WORKING_TREE, RevisionSource


logger = logging.getLogger(__name__)

# git's well-known empty tree object, used as the base for a fresh clone
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def _lines(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


class GitRevisionSource(RevisionSource):
    """Reads commits, changed paths and blobs through subprocess git calls."""

    def __init__(self, repo_path: str = "."):
        self.repo_path = Path(repo_path).resolve()

    def _git(self, args: Sequence[str], text: bool = True) -> subprocess.CompletedProcess:
        logger.debug(f"git {' '.join(args)}")
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                capture_output=True,
                text=text,
                check=False,
            )
        except OSError as e:
            raise RevisionReadError(f"Failed to run git: {e}") from e

    def _git_lines(self, args: Sequence[str], error: str) -> List[str]:
        result = self._git(args)
        if result.returncode != 0:
            raise RevisionReadError(f"{error}: {result.stderr.strip()}")
        return _lines(result.stdout)

    def current_branch_name(self) -> str:
        names = self._git_lines(["rev-parse", "--abbrev-ref", "HEAD"], "Failed to read current branch")
        if not names:
            raise RevisionReadError("Failed to read current branch: empty output")
        return names[0]

    def upstream_ref(self) -> str:
        result = self._git(["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"])
        if result.returncode != 0:
            branch = self._branch_for_hint()
            raise NoUpstreamError(
                "No upstream branch set for the current branch",
                hint=f"git push --set-upstream origin {branch}",
            )
        return result.stdout.strip()

    def _branch_for_hint(self) -> str:
        try:
            return self.current_branch_name()
        except RevisionReadError:
            return "<branch>"

    def upstream_commits(self) -> List[str]:
        self.upstream_ref()
        return self._git_lines(
            ["rev-list", "--reverse", "@{u}..HEAD"],
            "Failed to get unpushed commits",
        )

    def commits_in_range(self, tip: str, base: Optional[str] = None) -> List[str]:
        if base and self._git(["cat-file", "-e", f"{base}^{{commit}}"]).returncode == 0:
            exclude = [base]
        else:
            # new branch, or a remote tip this clone has not fetched
            exclude = ["--remotes"]
        return self._git_lines(
            ["rev-list", "--reverse", tip, "--not", *exclude],
            f"Failed to list commits of {tip}",
        )

    def resolve_revision(self, revision: str) -> str:
        names = self._git_lines(
            ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"],
            f"Cannot resolve {revision}",
        )
        if not names:
            raise RevisionReadError(f"Cannot resolve {revision}")
        return names[0]

    def files_changed_in(self, revision: str) -> List[str]:
        # -m diffs a merge against each parent, so content introduced while
        # resolving the merge is listed too
        paths = self._git_lines(
            ["diff-tree", "--root", "-m", "--no-commit-id", "--name-only", "-r", revision],
            f"Failed to get files for commit {revision}",
        )
        return list(dict.fromkeys(paths))

    def last_commit_files(self) -> List[str]:
        return self.files_changed_in(HEAD)

    def staged_files(self) -> List[str]:
        return self._git_lines(
            ["diff", "--cached", "--name-only", "--diff-filter=ACMR"],
            "Failed to get staged files",
        )

    def working_tree_changes(self, base: str = HEAD) -> List[str]:
        return self._git_lines(
            ["diff", "--name-only", resolve_base(base)],
            f"Failed to get changed files relative to {base}",
        )

    def read_at(self, revision: str, path: str) -> bytes:
        if revision == WORKING_TREE:
            return self._read_working_tree(path)

        spec = f":{path}" if revision == INDEX else f"{revision}:{path}"
        kind = self._git(["cat-file", "-t", spec])
        if kind.returncode != 0:
            raise ContentNotFoundError(
                f"{path} does not exist at {revision}", path=path, revision=revision
            )
        if kind.stdout.strip() != "blob":
            # submodule commits and trees carry no file content
            raise ContentNotFoundError(
                f"{path} at {revision} is not a file", path=path, revision=revision
            )

        result = self._git(["cat-file", "blob", spec], text=False)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ContentReadError(
                f"Failed to read {path} at {revision}: {stderr}", path=path, revision=revision
            )
        return result.stdout

    def _read_working_tree(self, path: str) -> bytes:
        full_path = self.repo_path / path
        try:
            return full_path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as e:
            raise ContentNotFoundError(
                f"{path} does not exist in the working tree", path=path, revision=WORKING_TREE
            ) from e
        except OSError as e:
            raise ContentReadError(
                f"Could not read {path}: {e}", path=path, revision=WORKING_TREE
            ) from e


def resolve_base(base: Optional[str]) -> str:
    """Map CLI base aliases onto revisions git understands."""
    if not base:
        return HEAD
    if base == "empty":
        return EMPTY_TREE
    return base
