"""Data models for DLP Gate."""

from .scan import (
    ScopeMode,
    ScanTarget,
    ChangeScope,
    FileSnapshot,
    FileVerdict,
    FlaggedSet,
    Evidence,
    DecisionOutcome,
    Decision,
)
from .config import GateConfiguration

__all__ = [
    "ScopeMode",
    "ScanTarget",
    "ChangeScope",
    "FileSnapshot",
    "FileVerdict",
    "FlaggedSet",
    "Evidence",
    "DecisionOutcome",
    "Decision",
    "GateConfiguration",
]
