"""
Logger factory for the planner search backend.

Console output is colorized with colorlog. Set PLANNER_LOG_FILE to also
write to a rotating log file.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

import colorlog

BASE_LOGGER_NAME = "planner_search"


def _create_logger(full_name: str) -> logging.Logger:
    logger = logging.getLogger(full_name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(colorlog.ColoredFormatter(
            fmt=(
                "%(log_color)s%(asctime)s [%(levelname)s] "
                "%(name)s:%(lineno)d:%(reset)s %(message)s"
            ),
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        ))
        logger.addHandler(handler)

        log_file = os.getenv("PLANNER_LOG_FILE")
        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=int(os.getenv("PLANNER_LOG_MAX_BYTES", str(5 * 1024 * 1024))),
                backupCount=int(os.getenv("PLANNER_LOG_BACKUP_COUNT", "5")),
                encoding="utf-8",
            )
            file_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
            logger.addHandler(file_handler)

        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level_name, logging.INFO))
        logger.propagate = False

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the package namespace, e.g. planner_search.app."""
    full_name = f"{BASE_LOGGER_NAME}.{name}" if name else BASE_LOGGER_NAME
    return _create_logger(full_name)


def get_class_logger(cls: type) -> logging.Logger:
    """Logger named after a class, e.g. planner_search.rag.indexer.SearchIndexer."""
    module = getattr(cls, "__module__", "unknown_module")
    classname = getattr(cls, "__name__", "UnknownClass")
    return _create_logger(f"{BASE_LOGGER_NAME}.{module}.{classname}")
