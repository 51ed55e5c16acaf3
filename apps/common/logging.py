# apps/common/logging.py
from __future__ import annotations

import logging
import os
import sys
from typing import Optional


_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Logger with a single stdout handler.

    Level resolution: explicit argument, then LEGAL_LOG_LEVEL, then INFO.
    """
    logger = logging.getLogger(name)
    log_level = (level or os.getenv("LEGAL_LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Avoid duplicate handlers on re-import.
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger
