"""Git integration: revision source, operation runner, gate and hooks."""

from .revision_source import GitRevisionSource
from .runner import GitOperationRunner
from .git_hooks import GitHooks, HookType, HookStatus

__all__ = [
    'GitRevisionSource',
    'GitOperationRunner',
    'GitHooks',
    'HookType',
    'HookStatus',
]
