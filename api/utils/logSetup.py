# utils/logSetup.py
import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)-8s | %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO") -> None:
    """
    Attach one stderr handler to the root logger and set its level.

    Called by the app factory and by every cron job; a repeat call swaps the
    handler it installed earlier instead of stacking another one. Handlers
    installed by anyone else are left alone.
    """
    global _handler

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)

    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_handler)
