"""Logging setup shared by stdlib loggers and structlog event loggers.

Both kinds of records end up in the same console and rotating file handlers.
structlog events are rendered by ``ProcessorFormatter``; plain ``logging``
records pass through the same pre-chain so they carry a timestamp, level and
logger name too.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, List

import structlog

from .config import LoggingSettings

LOG_FILE_NAME = "audio-splitter.log"


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _formatter(renderer: Any) -> Dict[str, Any]:
    return {
        "()": structlog.stdlib.ProcessorFormatter,
        "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        "foreign_pre_chain": _shared_processors(),
    }


def configure_logging(settings: LoggingSettings) -> None:
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level_value = getattr(logging, settings.level.upper(), logging.INFO)

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": _formatter(structlog.dev.ConsoleRenderer(colors=False)),
            # File output is one JSON object per line.
            "json": _formatter(structlog.processors.JSONRenderer()),
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "level": level_value,
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_dir / LOG_FILE_NAME),
                "formatter": "json",
                "maxBytes": settings.max_log_file_size_mb * 1024 * 1024,
                "backupCount": settings.backup_count,
                "encoding": "utf-8",
                "level": level_value,
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": level_value,
        },
    }

    logging.config.dictConfig(logging_config)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
