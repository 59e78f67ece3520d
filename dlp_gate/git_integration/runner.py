"""Executes git operations once the gate has allowed them."""

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence


logger = logging.getLogger(__name__)


class GitOperationRunner:
    """Thin executor for push and commit. Output goes straight to the terminal."""

    def __init__(self, repo_path: str = "."):
        self.repo_path = Path(repo_path).resolve()

    def _run(self, command: str, args: Sequence[str]) -> int:
        argv: List[str] = ["git", command, *args]
        logger.info(f"Running {' '.join(argv)}")
        # Environment is inherited so the scanned marker reaches git
        result = subprocess.run(argv, cwd=self.repo_path, check=False)
        if result.returncode != 0:
            logger.error(f"git {command} exited with {result.returncode}")
        return result.returncode

    def push(self, args: Sequence[str] = ()) -> int:
        return self._run("push", args)

    def commit(self, args: Sequence[str] = ()) -> int:
        return self._run("commit", args)
