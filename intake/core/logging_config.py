"""Structured logging configuration.

Emits JSON log lines so retry attempts, chunk writes and reconciliation runs
can be filtered by their extra fields in a log aggregator.
"""

import json
import logging
from datetime import datetime, timezone

# Extra fields copied from logger.x(..., extra={...}) into the JSON line
_EXTRA_FIELDS = (
    "trace_id",
    "error_code",
    "service",
    "model",
    "duration_ms",
    "http_status",
    "attempt",
    "max_attempts",
    "delay_ms",
    "exception_type",
    "schema_version",
    "violations",
    "table",
    "chunk_index",
    "chunks_total",
    "records",
    "routine",
    "rows_affected",
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Example:
        >>> logger.warning("Attempt failed", extra={"attempt": 2, "delay_ms": 2000})
        # Output: {"timestamp": "2025-12-05T17:52:00+00:00", "level": "WARNING",
        #          "message": "Attempt failed", "attempt": 2, "delay_ms": 2000, ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.process:
            log_data["process_id"] = record.process

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_structured_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure root logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatter (True) or plain text (False)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler()

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def configure_logging_from_settings() -> None:
    """Configure logging from ``AppSettings``."""
    from intake.core.settings import app_settings

    configure_structured_logging(
        level=app_settings.LOG_LEVEL,
        json_format=app_settings.LOG_JSON,
    )
