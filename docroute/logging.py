"""
Logging setup for docroute.

Every module logs through a child of the ``docroute`` logger; the
library itself never installs handlers unless ``configure_logging`` is
called (the CLI does).
"""

from __future__ import annotations

import logging
from typing import Union

ROOT_LOGGER = "docroute"

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Attach one stream handler to the ``docroute`` logger (idempotent)."""
    logger = logging.getLogger(ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not any(getattr(h, "_docroute", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._docroute = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
