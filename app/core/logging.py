"""Structured logging configuration."""

import logging
import sys
from typing import Any

from app.core.config import settings


class StructuredFormatter(logging.Formatter):
    """Key=value formatter used outside development."""

    def format(self, record: logging.LogRecord) -> str:
        """Render the record as space-separated key=value pairs."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Context passed through ``extra=`` by the services
        for field in ("request_id", "user_id", "instance_id", "action"):
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        # Tracebacks stay on the same line group as the message
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return " ".join(f"{k}={v}" for k, v in log_data.items())


def setup_logging() -> None:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Everything propagates to the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Reconfiguring must not stack duplicate handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    # Readable lines locally, key=value everywhere else
    if settings.is_dev:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = StructuredFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class AuditLogger:
    """Mirrors persisted audit events onto the ``audit`` logger."""

    def __init__(self) -> None:
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        actor_type: str,
        actor_id: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Write one audit line.

        Args:
            action: Event name, e.g. "child_assessment.submitted"
            actor_type: "user" or "system"
            actor_id: Platform user id, or "system"
            entity_type: Kind of record the event is about
            entity_id: Id of that record
            metadata: Extra context stored with the event
        """
        self.logger.info(
            f"AUDIT: action={action} actor={actor_type}:{actor_id} "
            f"entity={entity_type}:{entity_id} metadata={metadata or {}}"
        )


audit_logger = AuditLogger()
