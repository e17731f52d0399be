"""
Crawl Planner Logger Module
---------------------------

This module configures a rotating, JSON-formatted logger for the crawl planner.
Each run produces its own timestamped log file, and log records are written as
one-line JSON entries with the following core fields:

  - timestamp: formatted datetime string when the event occurred
  - level:     logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
  - logger:    the name of the logger that emitted the record
  - message:   the formatted log message

Any extra attributes attached to log calls (via the `extra=` argument) are
included in the JSON payload under their own keys.

Usage:

        from crawl_planner.utils import logger

        logger.info("Prepared start requests", extra={"operation": "build_requests", "count": n})
        logger.warning("Search term skipped", extra={"operation": "build_requests", "status": "skipped"})
"""

import json
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config import LOGS_DIR


class JsonFormatter(logging.Formatter):
    def format(self, record):
        builtins = {
            "name", "msg", "args", "levelname", "levelno",
            "pathname", "filename", "module", "exc_info",
            "exc_text", "stack_info", "lineno", "funcName",
            "created", "msecs", "relativeCreated", "thread",
            "threadName", "processName", "process", "taskName",
        }
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        # Pick up any extra attributes
        for key, value in record.__dict__.items():
            if key not in builtins:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

# ----------------------------------------------------------------------------------------------------------

# Timestamped filename
ts = datetime.now().strftime("%Y%m%d_%H%M%S")
log_filename = LOGS_DIR / f"crawl_planner_{ts}.log"

# ----------------------------------------------------------------------------------------------------------

# Package-level logger, child loggers (crawl_planner.core.*) propagate into it
logger = logging.getLogger("crawl_planner")
logger.setLevel(logging.DEBUG)

if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
    handler = RotatingFileHandler(
        filename=log_filename,
        maxBytes=10_000_000,
        backupCount=5
    )
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

# ----------------------------------------------------------------------------------------------------------

def setup_logger(
    name: str = "crawl_planner",
    level: int = logging.INFO,
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Attach a console handler (and optionally a plain text file handler) to a logger.

    Args:
        name: Name of the logger
        level: Logging level for the console (default: INFO)
        log_file: Optional path to an additional plain text log file

    Returns:
        Configured logger instance
    """
    configured = logging.getLogger(name)

    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not any(getattr(h, "_crawl_planner_console", False) for h in configured.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(level)
        console_handler._crawl_planner_console = True
        configured.addHandler(console_handler)

    if log_file is not None:
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s - %(pathname)s:%(lineno)d'
        )
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(file_formatter)
        configured.addHandler(file_handler)

    return configured
