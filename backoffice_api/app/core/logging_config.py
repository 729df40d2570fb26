"""
Logging setup for the service.

``setup_logging`` attaches a console handler and, when ``LOG_FILE`` is
set, a file handler to the root logger.  The record layout comes from
``LOG_FORMAT`` and ``LOG_DATE_FORMAT`` (see ``core.config``).  Modules
log through ``logging.getLogger(__name__)``, so ``%(name)s`` is the
dotted module path such as ``backoffice_api.app.services.pairs_service``.
"""

import logging
from pathlib import Path
from typing import Optional


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_formatter(fmt: Optional[str] = None, datefmt: Optional[str] = None) -> logging.Formatter:
    """Return the formatter shared by every handler; blank values fall back to the defaults."""
    return logging.Formatter(fmt=fmt or DEFAULT_LOG_FORMAT, datefmt=datefmt or DEFAULT_DATE_FORMAT)


def setup_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    fmt: Optional[str] = None,
    datefmt: Optional[str] = None,
) -> None:
    """Configure the root logger once per process.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"``; unknown names mean ``INFO``.
    logfile : Optional[str]
        Also write records to this file when given.
    fmt, datefmt : Optional[str]
        ``logging.Formatter`` layout and timestamp format.
    """
    root = logging.getLogger()
    if root.handlers:
        # create_app may run more than once (tests, reloads).
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = build_formatter(fmt, datefmt)

    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
