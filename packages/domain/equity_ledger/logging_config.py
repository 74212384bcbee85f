"""
Logging configuration for the equity ledger.
Console output with either a detailed text format or JSON lines.
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "company_id"):
            log_data["company_id"] = record.company_id

        return json.dumps(log_data)


class DetailedFormatter(logging.Formatter):
    """Detailed human-readable formatter"""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def setup_logging(level: Optional[str] = None, enable_json: Optional[bool] = None) -> logging.Logger:
    """
    Configure the ``equity_ledger`` logger hierarchy.

    Args:
        level: Logging level name; defaults to LEDGER_LOG_LEVEL
        enable_json: Emit JSON lines; defaults to LEDGER_LOG_JSON
    """
    from .config import get_settings

    settings = get_settings()
    level = level or settings.LOG_LEVEL
    enable_json = settings.LOG_JSON if enable_json is None else enable_json

    logger = logging.getLogger("equity_ledger")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if enable_json else DetailedFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    return logger
