from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


_configured = False

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
ROOT_LOGGER = "extbuild"


def _level_from_env(default: str = "INFO") -> int:
    level = os.getenv("EXTBUILD_LOG_LEVEL", default).upper()
    return getattr(logging, level, logging.INFO)


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    logging.basicConfig(level=_level_from_env(), format=LOG_FORMAT)
    _configured = True


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure the `extbuild` logger tree for a CLI invocation.

    `verbose` forces DEBUG regardless of EXTBUILD_LOG_LEVEL. When `log_file`
    is given every record of the tree is also written to a rotating file.
    """
    _ensure_base_logger()
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG if verbose else _level_from_env())
    if log_file is not None:
        get_logger(ROOT_LOGGER, log_file=log_file)


def get_logger(name: str, log_file: Path | None = None) -> logging.Logger:
    _ensure_base_logger()
    logger = logging.getLogger(name)
    # Do not duplicate handlers if already set
    if log_file and not any(
        isinstance(h, RotatingFileHandler) for h in logger.handlers
    ):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
