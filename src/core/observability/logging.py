"""
Structured logging setup for the organization hierarchy service.
JSON format in production, human-readable in development.
"""

import logging
import sys
import json
from datetime import datetime, timezone

from src.app.config import get_settings

# Extra attributes copied into JSON log entries when present on a record
_CONTEXT_FIELDS = ("org_id", "new_parent_id", "error_code", "snapshot_size")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (Cloud Run / Cloud Logging)."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        for field_name in _CONTEXT_FIELDS:
            if hasattr(record, field_name):
                log_entry[field_name] = getattr(record, field_name)
        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """Configure logging based on environment."""
    settings = get_settings()

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Clear existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if settings.is_production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s %(name)s - %(message)s",
                datefmt="%H:%M:%S",
            )
        )

    root.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
