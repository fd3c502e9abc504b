"""
Structured Logging Configuration.

Supports two modes:
- text: Human-readable format for interactive use
- json: Structured JSON lines, one object per record

Set LOG_FORMAT to "json" to get machine-readable output.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from cidash.config import settings
from cidash.core.tracing import TracingContext


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings with tracing context.

    Automatically includes correlation_id, repo_id, registry_id and operation
    from TracingContext so related lines can be grouped.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = TracingContext.get()

        log_record: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "correlation_id": ctx.get("correlation_id", ""),
            "repo_id": ctx.get("repo_id", ""),
            "registry_id": ctx.get("registry_id", ""),
            "operation": ctx.get("operation", ""),
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(log_format: Optional[str] = None, level: Optional[str] = None) -> None:
    """
    Setup logging for the client.

    Uses LOG_FORMAT to determine format:
    - "json": Structured JSON lines
    - "text" (default): Human-readable
    """
    root_logger = logging.getLogger()

    # Avoid adding multiple handlers
    if root_logger.handlers:
        return

    root_logger.setLevel((level or settings.LOG_LEVEL).upper())

    handler = logging.StreamHandler(sys.stderr)

    log_format = (log_format or settings.LOG_FORMAT).lower()

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)

    root_logger.addHandler(handler)

    # Set lower level for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
