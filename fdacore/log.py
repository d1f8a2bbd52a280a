"""Logging initialisation for fdacore applications."""

from __future__ import annotations

import logging
import os

_LEVEL_MAP = {
    "none": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _normalize(level: str | None) -> int:
    if not level:
        return logging.WARNING
    return _LEVEL_MAP.get(str(level).strip().lower(), logging.WARNING)


def init_logging(level: int | str | None = None) -> None:
    """
    Initialise the root logger and the ``fdacore`` namespace logger.

    Repeated calls change the level but never add a second handler.
    ``FDACORE_LOG_LEVEL`` is used when no level is given.

    Args:
        level: ``"none"``, ``"info"``, ``"debug"`` or a ``logging`` level.
    """
    if level is None:
        level = os.getenv("FDACORE_LOG_LEVEL")
    lvl = _normalize(level) if isinstance(level, str) or level is None else int(level)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(lvl)

    logging.getLogger("fdacore").setLevel(lvl)
