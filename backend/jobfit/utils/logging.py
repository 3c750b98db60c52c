"""Logging configuration with file and console output."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers whose records also go to llm.log
LLM_LOGGERS = ("jobfit.llm", "jobfit.services.telemetry")


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Configure logging with both console and file output.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files (defaults to $LOG_DIR or ./logs)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_dir is None:
        log_dir = os.environ.get("LOG_DIR", "logs")

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    # Console handler (stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(log_path / "app.log", log_level, formatter))
    root_logger.addHandler(_rotating_handler(log_path / "error.log", logging.ERROR, formatter))

    # Every LLM invocation, retry and telemetry write in one place
    llm_handler = _rotating_handler(log_path / "llm.log", log_level, formatter)
    for name in LLM_LOGGERS:
        llm_logger = logging.getLogger(name)
        for handler in list(llm_logger.handlers):
            if isinstance(handler, RotatingFileHandler):
                llm_logger.removeHandler(handler)
                handler.close()
        llm_logger.addHandler(llm_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized - Level: {level}, Log directory: {log_path.absolute()}")
