"""
Logging configuration for the media organizer.

Three named loggers are returned: ``main`` for lifecycle events and errors,
``performance`` for per-chunk timing, and ``decisions`` for one line per
folder created or item assigned (real or simulated).
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(log_dir: Path, level: Union[int, str] = logging.INFO) -> Dict[str, logging.Logger]:
    """Initialize loggers once per process and return them by role."""
    log_dir.mkdir(parents=True, exist_ok=True)
    date_stamp = datetime.utcnow().strftime("%Y%m%d")
    formatter = logging.Formatter(LOG_FORMAT)

    main_logger = logging.getLogger("media_organizer")
    if not main_logger.handlers:
        main_logger.setLevel(level)
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        main_logger.addHandler(console)
        main_logger.addHandler(_file_handler(log_dir / f"organizer_{date_stamp}.log", formatter))
        main_logger.addHandler(
            _file_handler(log_dir / f"organizer_errors_{date_stamp}.log", formatter, logging.ERROR)
        )

    return {
        "main": main_logger,
        "performance": _side_logger(
            "media_organizer.performance", log_dir / f"chunk_timing_{date_stamp}.log", formatter
        ),
        "decisions": _side_logger(
            "media_organizer.decisions", log_dir / f"decisions_{date_stamp}.log", formatter
        ),
    }


def _side_logger(name: str, path: Path, formatter: logging.Formatter) -> logging.Logger:
    # Kept out of the console and master log.
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        logger.addHandler(_file_handler(path, formatter))
        logger.propagate = False
    return logger


def _file_handler(path: Path, formatter: logging.Formatter, level: int = logging.NOTSET) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler
