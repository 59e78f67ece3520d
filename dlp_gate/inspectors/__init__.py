"""Content inspector adapters."""

from dlp_gate.core.interfaces import ContentInspector
from dlp_gate.models.config import GateConfiguration
from .pattern_inspector import PatternInspector


def create_inspector(config: GateConfiguration) -> ContentInspector:
    """Build the inspector selected by the configuration."""
    if config.inspector == "dlp":
        from .dlp_inspector import CloudDlpInspector

        return CloudDlpInspector(
            project_id=config.project_id,
            location=config.location,
            timeout=config.inspection_timeout,
        )
    return PatternInspector()


__all__ = ["create_inspector", "PatternInspector"]
