"""
DLP Gate - sensitive-data gate for git workflows.

Scans the content a push, commit, pull or clone would transmit or
materialize, and blocks the operation when regulated data (emails, phone
numbers, national ID numbers, card numbers or custom tokens) is present.
"""

__version__ = "0.1.0"

from .core.interfaces import Finding, InspectionPolicy, Likelihood
from .models.scan import Decision, DecisionOutcome, ScopeMode

__all__ = [
    "__version__",
    "Finding",
    "InspectionPolicy",
    "Likelihood",
    "Decision",
    "DecisionOutcome",
    "ScopeMode",
]
