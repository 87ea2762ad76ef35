"""Loguru setup driven by the `logging` section of AppConfig."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from novel_rag.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def setup_logger(config: Optional[LoggingConfig] = None) -> None:
    """
    Replace every loguru sink with a coloured stderr sink and, unless
    `config.file` is empty, a rotating zipped file sink.

    Safe to call more than once (each CLI command and the API lifespan do).
    """
    cfg = config or LoggingConfig()
    logger.remove()
    logger.add(sys.stderr, level=cfg.level, format=CONSOLE_FORMAT, colorize=True)

    if cfg.file:
        Path(cfg.file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            cfg.file,
            level=cfg.level,
            format=FILE_FORMAT,
            rotation=cfg.rotation,
            retention=cfg.retention,
            compression="zip",
            enqueue=True,
        )

    logger.debug(f"[Logger] level={cfg.level} | file={cfg.file or '-'}")
