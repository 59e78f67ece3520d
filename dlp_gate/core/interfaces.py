"""
Core interfaces for the DLP Gate system.

The gate only talks to version control and to the content classifier through
the abstract classes defined here, so both can be replaced by deterministic
fakes in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


class Likelihood(Enum):
    """Confidence that a finding is real, ordered from weakest to strongest."""
    VERY_UNLIKELY = "very_unlikely"
    UNLIKELY = "unlikely"
    POSSIBLE = "possible"
    LIKELY = "likely"
    VERY_LIKELY = "very_likely"

    @property
    def rank(self) -> int:
        return _LIKELIHOOD_ORDER.index(self) + 1

    def __ge__(self, other: "Likelihood") -> bool:
        if not isinstance(other, Likelihood):
            return NotImplemented
        return self.rank >= other.rank

    def __lt__(self, other: "Likelihood") -> bool:
        if not isinstance(other, Likelihood):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def coerce(cls, value: Union["Likelihood", str, int, object]) -> "Likelihood":
        """Accept a Likelihood, a name ("LIKELY"/"likely"), a rank, or a DLP enum."""
        if isinstance(value, cls):
            return value
        name = getattr(value, "name", None)
        if isinstance(name, str):
            value = name
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                raise ValueError(f"Unknown likelihood: {value}")
        if isinstance(value, int):
            # DLP reserves 0 for LIKELIHOOD_UNSPECIFIED
            if 1 <= value <= len(_LIKELIHOOD_ORDER):
                return _LIKELIHOOD_ORDER[value - 1]
        raise ValueError(f"Unknown likelihood: {value!r}")


_LIKELIHOOD_ORDER = [
    Likelihood.VERY_UNLIKELY,
    Likelihood.UNLIKELY,
    Likelihood.POSSIBLE,
    Likelihood.LIKELY,
    Likelihood.VERY_LIKELY,
]


DEFAULT_INFO_TYPES = (
    "CREDIT_CARD_NUMBER",
    "EMAIL_ADDRESS",
    "PHONE_NUMBER",
    "US_SOCIAL_SECURITY_NUMBER",
)


@dataclass(frozen=True)
class Finding:
    """One instance of sensitive content reported by an inspector."""
    info_type: str
    likelihood: Likelihood = Likelihood.POSSIBLE
    quote: Optional[str] = None


@dataclass(frozen=True)
class CustomDetector:
    """Organization-specific regex detector, e.g. a prefixed account token."""
    name: str
    pattern: str
    likelihood: Likelihood = Likelihood.POSSIBLE


@dataclass(frozen=True)
class InspectionPolicy:
    """Which detectors run and how confident a finding must be to count."""
    info_types: Tuple[str, ...] = DEFAULT_INFO_TYPES
    min_likelihood: Likelihood = Likelihood.POSSIBLE
    custom_detectors: Tuple[CustomDetector, ...] = field(default_factory=tuple)
    include_quote: bool = True

    @property
    def detector_names(self) -> List[str]:
        return list(self.info_types) + [d.name for d in self.custom_detectors]


class _RevisionMarker(str):
    """A pseudo revision that is not a commit id."""


WORKING_TREE = _RevisionMarker("WORKING_TREE")
INDEX = _RevisionMarker("INDEX")
HEAD = "HEAD"


class ContentInspector(ABC):
    """Opaque classifier: text in, findings out."""

    @abstractmethod
    def inspect(self, text: str, policy: InspectionPolicy) -> List[Finding]:
        """Inspect text and return every finding at or above the policy threshold.

        Raises InspectionUnavailableError when the inspection cannot run.
        """
        pass


class RevisionSource(ABC):
    """Read-only view over version-control history."""

    @abstractmethod
    def upstream_commits(self) -> List[str]:
        """Commits between the upstream and HEAD, oldest first.

        Raises NoUpstreamError when the current branch has no upstream.
        """
        pass

    @abstractmethod
    def commits_in_range(self, tip: str, base: Optional[str] = None) -> List[str]:
        """Commits reachable from tip but not from base, oldest first.

        Without a base, commits already on a remote-tracking ref are excluded.
        """
        pass

    @abstractmethod
    def resolve_revision(self, revision: str) -> str:
        """Full commit id for a symbolic revision such as HEAD."""
        pass

    @abstractmethod
    def files_changed_in(self, revision: str) -> List[str]:
        """Paths touched by a commit. Raises RevisionReadError."""
        pass

    @abstractmethod
    def read_at(self, revision: str, path: str) -> bytes:
        """Content of path at revision, WORKING_TREE or INDEX.

        Raises ContentNotFoundError if the path does not exist there and
        ContentReadError for any other failure.
        """
        pass

    @abstractmethod
    def current_branch_name(self) -> str:
        pass

    @abstractmethod
    def last_commit_files(self) -> List[str]:
        """Paths changed in HEAD relative to its parent."""
        pass

    @abstractmethod
    def staged_files(self) -> List[str]:
        """Paths staged for the next commit, deletions excluded."""
        pass

    @abstractmethod
    def working_tree_changes(self, base: str = HEAD) -> List[str]:
        """Paths that differ between base and the working tree."""
        pass
