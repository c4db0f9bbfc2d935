import logging
import json
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from treeforge.utils.settings import Settings, get_settings


# -------------------------------------------------------------------
# JSON Log Formatter
# -------------------------------------------------------------------

class JsonFormatter(logging.Formatter):
    def __init__(self, app_settings: Optional[Settings] = None):
        super().__init__()
        self.settings = app_settings or get_settings()

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
            "environment": self.settings.environment,
            "project": self.settings.project_name,
            "python_version": self.settings.python_version,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def build_formatter(app_settings: Settings) -> logging.Formatter:
    """Console lines carry only the message unless JSON output is configured."""
    if app_settings.log_format == "json":
        return JsonFormatter(app_settings)
    return logging.Formatter("%(message)s")


class MaxLevelFilter(logging.Filter):
    """Pass only records below ``level``."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


# -------------------------------------------------------------------
# Logger Factory
# -------------------------------------------------------------------

def get_logger(name: str, app_settings: Optional[Settings] = None) -> logging.Logger:
    """
    Return a logger whose handlers live on its top-level package logger.

    ``treeforge.scaffold.materializer`` and ``treeforge`` share one set of
    handlers, so a record is emitted once however many modules log.
    Passing ``app_settings`` rebuilds those handlers from it; without it,
    handlers already in place are kept.
    """
    package_logger = logging.getLogger(name.split(".")[0])

    if app_settings is not None:
        _drop_handlers(package_logger)
    else:
        app_settings = get_settings()
        if package_logger.handlers:  # Prevent duplicate handlers
            return logging.getLogger(name)

    package_logger.setLevel(app_settings.log_level)
    _attach_handlers(package_logger, app_settings)

    return logging.getLogger(name)


def _drop_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _attach_handlers(logger: logging.Logger, app_settings: Settings) -> None:
    formatter = build_formatter(app_settings)

    # Console Handlers: progress on stdout, warnings and errors on stderr
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(MaxLevelFilter(logging.WARNING))
    logger.addHandler(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.WARNING)
    logger.addHandler(stderr_handler)

    # File Handler with Rotation
    if app_settings.log_file is not None:
        log_file = app_settings.log_file
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10_000_000,
            backupCount=5,
            encoding="utf-8"
        )
        # Files always get structured records
        file_handler.setFormatter(JsonFormatter(app_settings))
        logger.addHandler(file_handler)
