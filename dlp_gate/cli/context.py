"""Shared CLI state: repository, configuration and component wiring."""

import logging
from pathlib import Path
from typing import Optional

from dlp_gate.engines.scan_orchestrator import ScanOrchestrator
from dlp_gate.git_integration.gate import OperationGate, ScannedMarker
from dlp_gate.git_integration.revision_source import GitRevisionSource
from dlp_gate.git_integration.runner import GitOperationRunner
from dlp_gate.inspectors import create_inspector
from dlp_gate.models.config import GateConfiguration
from dlp_gate.utils.config_loader import ConfigLoader
from dlp_gate.utils.logging_config import setup_logging


logger = logging.getLogger(__name__)


class CliContext:
    """Lazily loads configuration and builds the gate components."""

    def __init__(self, repo_path: str = ".", config_file: Optional[str] = None, verbose: bool = False):
        self.repo_path = Path(repo_path).resolve()
        self.config_file = Path(config_file) if config_file else None
        self.verbose = verbose
        self._config: Optional[GateConfiguration] = None

    @property
    def loader(self) -> ConfigLoader:
        return ConfigLoader(self.repo_path, self.config_file)

    @property
    def config(self) -> GateConfiguration:
        if self._config is None:
            self._config = self.loader.load()
            setup_logging({
                "log_level": "DEBUG" if self.verbose else self._config.log_level,
                "log_dir": self._config.log_dir,
            })
            logger.debug(f"Configuration: {self._config.to_dict()}")
        return self._config

    def build_orchestrator(self) -> ScanOrchestrator:
        config = self.config
        return ScanOrchestrator(
            source=GitRevisionSource(str(self.repo_path)),
            inspector=create_inspector(config),
            policy=config.inspection_policy(),
            max_workers=config.max_workers,
            exclude_patterns=config.exclude_patterns,
        )

    def build_gate(self) -> OperationGate:
        return OperationGate(
            orchestrator=self.build_orchestrator(),
            runner=GitOperationRunner(str(self.repo_path)),
            marker=ScannedMarker(self.config.scanned_header),
        )
