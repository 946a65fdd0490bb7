"""Console logging for the CLI, rendered through the shared rich console."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("googleapiclient.discovery_cache", "google_auth_oauthlib", "urllib3")


def configure_logging(level: str = "info", console: Console | None = None) -> None:
    """Install a RichHandler on the root logger.

    Safe to call more than once; the previous handlers are replaced.
    """
    if console is None:
        from .display import console

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
