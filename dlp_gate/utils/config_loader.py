"""Configuration loading utilities."""

import logging
from pathlib import Path
from typing import Optional

import yaml

from dlp_gate.core.errors import ConfigurationError
from dlp_gate.models.config import GateConfiguration


logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".dlp-gate.yaml"


class ConfigLoader:
    """Loads gate configuration from YAML, falling back to environment defaults."""

    def __init__(self, repo_path: Optional[Path] = None, config_file: Optional[Path] = None):
        self.repo_path = Path(repo_path or Path.cwd())
        self.explicit = config_file is not None
        self.config_file = Path(config_file) if config_file else self.repo_path / CONFIG_FILE_NAME

    def load(self) -> GateConfiguration:
        """Load configuration. A missing default file means environment defaults."""
        if not self.config_file.exists():
            if self.explicit:
                raise ConfigurationError(f"Configuration file not found: {self.config_file}")
            logger.debug(f"No {CONFIG_FILE_NAME} in {self.repo_path}, using defaults")
            return GateConfiguration()

        try:
            with open(self.config_file, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read {self.config_file}: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"{self.config_file} must contain a mapping")

        logger.debug(f"Loaded configuration from {self.config_file}")
        return GateConfiguration.from_dict(config_data)

    def save(self, config: GateConfiguration) -> Path:
        """Save configuration to the YAML file."""
        with open(self.config_file, 'w') as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, indent=2, sort_keys=False)
        logger.info(f"Saved configuration to {self.config_file}")
        return self.config_file
