"""Logging utilities for the heightray tools."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

__all__ = ["configure_logging"]


def configure_logging(*, level: str = "INFO", log_dir: Path | None = None) -> None:
    """Route loguru output to stderr and, optionally, a rotating log file."""

    logger.remove()
    logger.add(sys.stderr, level=level, serialize=False)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "heightray.log",
            level=level,
            rotation="10 MB",
            retention="10 days",
            enqueue=True,
            encoding="utf-8",
        )
