"""Configuration data models for the DLP Gate system."""

import os
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dlp_gate.core.errors import ConfigurationError
from dlp_gate.core.interfaces import (
    DEFAULT_INFO_TYPES,
    CustomDetector,
    InspectionPolicy,
    Likelihood,
)


ENV_PREFIX = "DLP_GATE_"
SUPPORTED_INSPECTORS = ("pattern", "dlp")

# field -> (accepted types, description used in validation errors)
FIELD_TYPES = {
    'inspector': (str, "a string"),
    'project_id': ((str, type(None)), "a string"),
    'location': (str, "a string"),
    'info_types': (list, "a list of info type names"),
    'min_likelihood': ((str, Likelihood), "a likelihood name"),
    'include_quote': (bool, "true or false"),
    'max_workers': (int, "an integer"),
    'exclude_patterns': (list, "a list of glob patterns"),
    'scanned_header': (str, "a string"),
    'inspection_timeout': ((int, float), "a number"),
    'log_level': (str, "a string"),
    'log_dir': ((str, type(None)), "a path"),
}


def _get_env_var(key: str, default: Any, var_type: type = str) -> Any:
    """Get environment variable with type conversion and default fallback."""
    env_key = f"{ENV_PREFIX}{key.upper()}"
    value = os.getenv(env_key)

    if value is None:
        return default

    try:
        if var_type == bool:
            return value.lower() in ('true', '1', 'yes', 'on')
        elif var_type == int:
            return int(value)
        elif var_type == float:
            return float(value)
        elif var_type == list:
            # Try to parse as JSON array, fallback to comma-separated
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return [item.strip() for item in value.split(',') if item.strip()]
        else:
            return value
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {env_key}: {value}. Error: {e}")


def _parse_custom_detectors(raw: Any) -> List[CustomDetector]:
    detectors = []
    if raw is None:
        return detectors
    if not isinstance(raw, (list, tuple)):
        raise ConfigurationError("custom_detectors must be a list of {name, pattern} mappings")
    for item in raw:
        if isinstance(item, CustomDetector):
            detectors.append(item)
            continue
        if not isinstance(item, dict) or "name" not in item or "pattern" not in item:
            raise ConfigurationError(
                f"Custom detector must be a mapping with 'name' and 'pattern': {item!r}"
            )
        try:
            likelihood = Likelihood.coerce(item.get("likelihood", "possible"))
        except ValueError as e:
            raise ConfigurationError(f"Custom detector {item['name']}: {e}")
        detectors.append(CustomDetector(
            name=str(item["name"]),
            pattern=str(item["pattern"]),
            likelihood=likelihood,
        ))
    return detectors


@dataclass
class GateConfiguration:
    """Gate settings. Defaults come from DLP_GATE_* environment variables."""
    inspector: str = field(default_factory=lambda: _get_env_var("inspector", "pattern"))
    project_id: Optional[str] = field(default_factory=lambda: _get_env_var("project_id", None))
    location: str = field(default_factory=lambda: _get_env_var("location", "global"))
    info_types: List[str] = field(default_factory=lambda: _get_env_var("info_types", list(DEFAULT_INFO_TYPES), list))
    min_likelihood: str = field(default_factory=lambda: _get_env_var("min_likelihood", "possible"))
    custom_detectors: List[Any] = field(default_factory=lambda: _get_env_var("custom_detectors", [], list))
    include_quote: bool = field(default_factory=lambda: _get_env_var("include_quote", True, bool))
    max_workers: int = field(default_factory=lambda: _get_env_var("max_workers", 4, int))
    exclude_patterns: List[str] = field(default_factory=lambda: _get_env_var("exclude_patterns", [], list))
    scanned_header: str = field(default_factory=lambda: _get_env_var("scanned_header", "DLP-Scanned: true"))
    inspection_timeout: float = field(default_factory=lambda: _get_env_var("inspection_timeout", 120.0, float))
    log_level: str = field(default_factory=lambda: _get_env_var("log_level", "WARNING"))
    log_dir: Optional[str] = field(default_factory=lambda: _get_env_var("log_dir", None))

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.custom_detectors = _parse_custom_detectors(self.custom_detectors)
        self._validate_configuration()

    def _validate_configuration(self) -> None:
        """Validate configuration values."""
        type_errors = self._type_errors()
        if type_errors:
            # value checks below assume well-typed fields
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(type_errors)}")

        errors = []

        if self.inspector not in SUPPORTED_INSPECTORS:
            errors.append(f"inspector must be one of {', '.join(SUPPORTED_INSPECTORS)}")

        if self.inspector == "dlp" and not self.project_id:
            errors.append("project_id is required when inspector is 'dlp'")

        if self.max_workers < 1:
            errors.append("max_workers must be at least 1")

        if self.inspection_timeout <= 0:
            errors.append("inspection_timeout must be positive")

        if not self.info_types and not self.custom_detectors:
            errors.append("at least one info type or custom detector must be configured")

        try:
            Likelihood.coerce(self.min_likelihood)
        except ValueError as e:
            errors.append(str(e))

        if ":" not in self.scanned_header:
            errors.append("scanned_header must look like 'Name: value'")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def _type_errors(self) -> List[str]:
        errors = []
        for name, (expected, description) in FIELD_TYPES.items():
            value = getattr(self, name)
            # bool is an int subclass
            if not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool):
                errors.append(f"{name} must be {description}, got {type(value).__name__} {value!r}")
            elif isinstance(value, list) and not all(isinstance(item, str) for item in value):
                errors.append(f"{name} must be {description}")
        return errors

    def inspection_policy(self) -> InspectionPolicy:
        """Build the inspection policy handed to the content inspector."""
        return InspectionPolicy(
            info_types=tuple(self.info_types),
            min_likelihood=Likelihood.coerce(self.min_likelihood),
            custom_detectors=tuple(self.custom_detectors),
            include_quote=self.include_quote,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'inspector': self.inspector,
            'project_id': self.project_id,
            'location': self.location,
            'info_types': list(self.info_types),
            'min_likelihood': Likelihood.coerce(self.min_likelihood).value,
            'custom_detectors': [
                {'name': d.name, 'pattern': d.pattern, 'likelihood': d.likelihood.value}
                for d in self.custom_detectors
            ],
            'include_quote': self.include_quote,
            'max_workers': self.max_workers,
            'exclude_patterns': list(self.exclude_patterns),
            'scanned_header': self.scanned_header,
            'inspection_timeout': self.inspection_timeout,
            'log_level': self.log_level,
            'log_dir': self.log_dir,
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'GateConfiguration':
        """Create configuration from dictionary, rejecting unknown keys."""
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**config_dict)
