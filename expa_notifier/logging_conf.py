"""Logging configuration: structlog events rendered as JSON by stdlib handlers.

Paths are passed in from ``ConfigLocator.logs_dir``; the layout under it is::

    notifier.log        every INFO+ event
    error.log           ERROR+ only
    kinds/<kind>.log    events bound to one record kind
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False
ROOT_LOGGER = "expa_notifier"


def kind_log_path(log_dir: Path, kind: str) -> Path:
    return log_dir / "kinds" / f"{kind}.log"


def _handlers(log_dir: Path, level: str) -> dict[str, dict]:
    return {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "json",
        },
        "notifier_file": {
            "class": "logging.FileHandler",
            "level": "INFO",
            "filename": str(log_dir / "notifier.log"),
            "encoding": "utf-8",
            "formatter": "json",
        },
        "error_file": {
            "class": "logging.FileHandler",
            "level": "ERROR",
            "filename": str(log_dir / "error.log"),
            "encoding": "utf-8",
            "formatter": "json",
        },
    }


def configure_logging(log_dir: Path, verbose: bool = False) -> structlog.BoundLogger:
    """Install handlers once per process and return the application logger."""

    global _LOGGING_INITIALISED
    (log_dir / "kinds").mkdir(parents=True, exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": _handlers(log_dir, level),
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console", "notifier_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def kind_logger(log_dir: Path, kind: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``kind``; its events also land in ``kinds/<kind>.log``."""

    configure_logging(log_dir, verbose)
    path = kind_log_path(log_dir, kind)
    py_logger = logging.getLogger(f"{ROOT_LOGGER}.kind.{kind}")
    attached = any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path)
        for handler in py_logger.handlers
    )
    if not attached:
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        root_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if root_handlers:
            handler.setFormatter(root_handlers[0].formatter)
        py_logger.addHandler(handler)
    return structlog.get_logger(py_logger.name).bind(kind=kind)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_kind_logs(log_dir: Path) -> Iterable[Path]:
    kinds_dir = log_dir / "kinds"
    if not kinds_dir.exists():
        return []
    return sorted(kinds_dir.glob("*.log"))


__all__ = [
    "available_kind_logs",
    "configure_logging",
    "kind_log_path",
    "kind_logger",
    "tail_log",
]
