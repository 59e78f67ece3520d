"""Git hooks that run the gate before commit and push, and after pull and clone."""

import logging
import os
import shlex
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from dlp_gate.core.errors import ConfigurationError


logger = logging.getLogger(__name__)

MANAGED_MARKER = "# Managed by dlp-gate - do not edit manually"
NULL_SHA = "0" * 40


class HookType(Enum):
    """Types of Git hooks."""
    PRE_COMMIT = "pre-commit"
    PRE_PUSH = "pre-push"
    POST_MERGE = "post-merge"
    POST_CHECKOUT = "post-checkout"


DEFAULT_HOOKS = [HookType.PRE_COMMIT, HookType.PRE_PUSH, HookType.POST_MERGE, HookType.POST_CHECKOUT]


class HookStatus(Enum):
    INSTALLED = "installed"
    FOREIGN = "foreign"
    MISSING = "missing"


@dataclass(frozen=True)
class PushUpdate:
    """One ref update announced to a pre-push hook on stdin."""
    local_ref: str
    local_sha: str
    remote_ref: str
    remote_sha: str

    @property
    def is_delete(self) -> bool:
        return self.local_sha == NULL_SHA

    @property
    def base(self) -> Optional[str]:
        """Remote tip to scan from, or None when the remote ref is new."""
        return None if self.remote_sha == NULL_SHA else self.remote_sha


def parse_pre_push_input(text: str) -> List[PushUpdate]:
    """Parse ``<local ref> <local sha> <remote ref> <remote sha>`` lines."""
    updates = []
    for line in text.splitlines():
        fields = line.split()
        if not fields:
            continue
        if len(fields) != 4:
            raise ConfigurationError(f"Malformed pre-push input line: {line!r}")
        updates.append(PushUpdate(*fields))
    return updates


class GitHooks:
    """Installs, removes and reports dlp-gate hook scripts."""

    def __init__(self, repo_path: str = ".", python_executable: Optional[str] = None):
        self.repo_path = Path(repo_path).resolve()
        self.git_dir = self.repo_path / ".git"
        self.hooks_dir = self.git_dir / "hooks"
        self.python_executable = python_executable or sys.executable

        if not self.git_dir.is_dir():
            raise ConfigurationError(f"{self.repo_path} is not the root of a git repository")

    def _command(self, *args: str) -> str:
        gate = f"{shlex.quote(self.python_executable)} -m dlp_gate --repo {shlex.quote(str(self.repo_path))}"
        return f"{gate} {' '.join(args)}"

    def _hook_body(self, hook_type: HookType) -> str:
        if hook_type == HookType.PRE_COMMIT:
            return f'echo "Scanning staged files for sensitive data..."\n{self._command("scan", "--mode", "staged")}\n'

        if hook_type == HookType.PRE_PUSH:
            return (
                'echo "Scanning unpushed commits for sensitive data..."\n'
                f'{self._command("scan", "--mode", "range", "--skip-if-scanned", "--refs-from-stdin")}\n'
            )

        if hook_type == HookType.POST_MERGE:
            return (
                'echo "Scanning pulled changes for sensitive data..."\n'
                f'{self._command("scan", "--mode", "working-diff", "--base", "ORIG_HEAD")}\n'
            )

        if hook_type == HookType.POST_CHECKOUT:
            # Only a fresh clone checks out from the null revision
            return (
                f'if [ "$1" = "{NULL_SHA}" ]; then\n'
                '    echo "Scanning cloned files for sensitive data..."\n'
                f'    {self._command("scan", "--mode", "working-diff", "--base", "empty")}\n'
                'fi\n'
            )

        raise ValueError(f"Unsupported hook type: {hook_type}")

    def generate_hook_script(self, hook_type: HookType) -> str:
        """Generate hook script content."""
        return f"#!/bin/sh\n{MANAGED_MARKER}\nset -e\n\n{self._hook_body(hook_type)}"

    def _status_of(self, hook_path: Path) -> HookStatus:
        if not hook_path.exists():
            return HookStatus.MISSING
        try:
            content = hook_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return HookStatus.FOREIGN
        return HookStatus.INSTALLED if MANAGED_MARKER in content else HookStatus.FOREIGN

    def install_hooks(self, hook_types: Optional[List[HookType]] = None,
                      force: bool = False) -> Dict[HookType, bool]:
        """Install hooks. Hooks written by other tools are left alone unless forced."""
        if hook_types is None:
            hook_types = DEFAULT_HOOKS

        self.hooks_dir.mkdir(parents=True, exist_ok=True)
        results = {}

        for hook_type in hook_types:
            hook_path = self.hooks_dir / hook_type.value
            if self._status_of(hook_path) == HookStatus.FOREIGN and not force:
                logger.warning(f"Not overwriting existing {hook_type.value} hook at {hook_path}")
                results[hook_type] = False
                continue

            hook_path.write_text(self.generate_hook_script(hook_type), encoding="utf-8")
            os.chmod(hook_path, 0o755)
            results[hook_type] = True
            logger.info(f"Installed {hook_type.value} hook")

        return results

    def uninstall_hooks(self, hook_types: Optional[List[HookType]] = None) -> Dict[HookType, bool]:
        """Remove dlp-gate hooks. Foreign hooks are never removed."""
        if hook_types is None:
            hook_types = DEFAULT_HOOKS

        results = {}
        for hook_type in hook_types:
            hook_path = self.hooks_dir / hook_type.value
            status = self._status_of(hook_path)
            if status == HookStatus.INSTALLED:
                hook_path.unlink()
                logger.info(f"Uninstalled {hook_type.value} hook")
            results[hook_type] = status != HookStatus.FOREIGN

        return results

    def get_hook_status(self) -> Dict[HookType, HookStatus]:
        """Get installation status of hooks."""
        return {hook_type: self._status_of(self.hooks_dir / hook_type.value) for hook_type in HookType}
