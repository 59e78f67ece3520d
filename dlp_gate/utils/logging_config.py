"""Logging configuration for DLP Gate."""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class GateLogFormatter(logging.Formatter):
    """Structured JSON formatter for gate logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for attr in ("event_type", "operation", "file_path", "additional_data"):
            if hasattr(record, attr):
                log_entry[attr] = getattr(record, attr)

        return json.dumps(log_entry, default=str)


class AuditHandler(logging.Handler):
    """Writes gate decision events to a rotating audit log."""

    def __init__(self, audit_file: str):
        super().__init__()
        self.audit_file = Path(audit_file)
        self.audit_file.parent.mkdir(parents=True, exist_ok=True)

        self.file_handler = logging.handlers.RotatingFileHandler(
            self.audit_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        self.file_handler.setFormatter(GateLogFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, "security_event", False):
            self.file_handler.emit(record)

    def close(self) -> None:
        self.file_handler.close()
        super().close()


class LoggingConfig:
    """Centralized logging configuration for the gate process."""

    def __init__(self,
                 log_level: str = "WARNING",
                 log_dir: Optional[str] = None,
                 structured_logging: bool = False):
        self.log_level = getattr(logging, log_level.upper(), logging.WARNING)
        self.log_dir = Path(log_dir) if log_dir else None
        self.structured_logging = structured_logging

        self._setup_logging()

    def _setup_logging(self) -> None:
        root_logger = logging.getLogger("dlp_gate")
        root_logger.setLevel(logging.DEBUG if self.log_dir else self.log_level)

        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        # stdout carries reports; diagnostics go to stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(self.log_level)
        if self.structured_logging:
            console_handler.setFormatter(GateLogFormatter())
        else:
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
        root_logger.addHandler(console_handler)

        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / "dlp_gate.log",
                maxBytes=20 * 1024 * 1024,  # 20MB
                backupCount=10
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(GateLogFormatter())
            root_logger.addHandler(file_handler)

            audit_handler = AuditHandler(str(self.log_dir / "audit.log"))
            audit_handler.setLevel(logging.INFO)
            root_logger.addHandler(audit_handler)


_logging_config: Optional[LoggingConfig] = None


def setup_logging(config: Optional[Dict[str, Any]] = None) -> LoggingConfig:
    """Set up global logging configuration."""
    global _logging_config

    if config is None:
        config = {}

    _logging_config = LoggingConfig(**config)
    return _logging_config


def log_security_event(event_type: str,
                       description: str,
                       severity: str = "INFO",
                       operation: Optional[str] = None,
                       additional_data: Optional[Dict[str, Any]] = None) -> None:
    """Log a security event (decision, findings, gate failure)."""
    logger = logging.getLogger("dlp_gate.security")
    logger.log(
        getattr(logging, severity.upper()),
        f"Security Event: {event_type} - {description}",
        extra={
            "security_event": True,
            "event_type": event_type,
            "operation": operation,
            "additional_data": additional_data or {},
        },
    )
