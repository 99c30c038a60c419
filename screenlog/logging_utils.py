from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Overlapping capture processes share one log file; the pid tells their lines apart.
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s[%(process)d]: %(message)s"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def _level(value: str) -> int:
    return getattr(logging, value.upper(), logging.INFO)


def init_logger(name: str, log_dir: Path, level: str = "INFO", *, console_level: Optional[str] = "INFO") -> logging.Logger:
    """Return the named logger writing to ``<log_dir>/<name>.log``.

    The file receives everything at ``level``. Console output goes to stderr,
    filtered separately by ``console_level`` so scheduled runs can keep their
    mail or redirect file short; ``None`` turns it off. Handlers are attached
    once per logger name.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(_level(level))

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        file_handler = RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        if console_level is not None:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(_level(console_level))
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

    return logger
