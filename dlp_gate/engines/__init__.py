"""Scan engines for DLP Gate."""

from .scan_orchestrator import ScanOrchestrator, ScanState

__all__ = ["ScanOrchestrator", "ScanState"]
