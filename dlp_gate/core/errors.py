"""Error taxonomy for the gate.

Findings are not errors: a gate that caught sensitive data returns an
``Abort`` decision. Everything here means the gate itself could not finish.
"""

from typing import Optional


class GateError(Exception):
    """Base class for failures of the gate itself."""


class ConfigurationError(GateError):
    """Misconfiguration that the user has to correct before retrying."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class NoUpstreamError(ConfigurationError):
    """The current branch has no upstream, so there is no push range."""


class RevisionReadError(GateError):
    """A revision could not be resolved or listed."""


class ContentReadError(GateError):
    """File content could not be read (I/O failure, corrupt object)."""

    def __init__(self, message: str, path: Optional[str] = None, revision: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.revision = revision


class ContentNotFoundError(ContentReadError):
    """The path does not exist at that revision. Not fatal to a scan."""


class InspectionUnavailableError(GateError):
    """The content inspector could not complete a request."""


class ScopeResolutionError(GateError):
    """The change scope could not be computed from the revision source."""

    def __init__(self, message: str, cause: Exception):
        super().__init__(message)
        self.cause = cause

    @property
    def is_configuration_error(self) -> bool:
        return isinstance(self.cause, ConfigurationError)

    @property
    def hint(self) -> Optional[str]:
        return getattr(self.cause, "hint", None)
