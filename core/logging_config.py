"""Logging setup.

Every module gets its logger through ``get_module_logger(__name__)``.
Handlers are attached only by ``setup_logging``, which the application
factory calls once at startup.
"""

import logging
import sys
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logging(level: str = "info", fmt: str = DEFAULT_LOG_FORMAT) -> logging.Logger:
    root = logging.getLogger()
    root.setLevel(LOG_LEVEL_MAP.get(level.lower(), logging.INFO))

    if not any(getattr(h, "_ecocredit", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt, datefmt=DEFAULT_DATE_FORMAT))
        handler._ecocredit = True
        root.addHandler(handler)
    return root


def get_module_logger(module_name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(module_name or "ecocredit")
