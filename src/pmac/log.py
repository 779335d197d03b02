"""Logging setup for the pmac command line."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

log = logging.getLogger("pmac")


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a Rich handler to the ``pmac`` logger (once) and set its level."""
    if not any(isinstance(h, RichHandler) for h in log.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))
        log.addHandler(handler)
        log.propagate = False
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return log
