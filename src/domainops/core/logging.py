"""Logging configuration.

Modules log through `logging.getLogger(__name__)`. Call
`configure_logging()` once from the entry point to route records to a Rich
handler on stderr, so log lines never interleave with command output.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "DOMAINOPS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

_CONFIGURED = False

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_NOISY_LOGGERS = ("httpx", "httpcore", "databricks.sdk", "urllib3")


def resolve_level(level: str | None = None) -> int:
    """Return the logging level for an explicit name, env var or default."""
    name = (level or os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    return _LEVEL_MAP.get(name, logging.WARNING)


def configure_logging(level: str | None = None) -> None:
    """Install the shared Rich handler on the `domainops` logger exactly once."""
    global _CONFIGURED
    resolved = resolve_level(level)
    logger = logging.getLogger("domainops")
    logger.setLevel(resolved)
    if _CONFIGURED:
        return

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _CONFIGURED = True
