"""Shared CLI infrastructure: logging setup and common options."""

from __future__ import annotations

import logging

import click

from bulkinstall.log_sink import EVENTS_LOGGER, NOTICE

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool):
    """Configure logging based on verbosity.

    Uses explicit handler setup instead of ``logging.basicConfig`` which
    is silently a no-op when the root logger already has handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    fmt = ("%(asctime)s [%(levelname)s] %(name)s: %(message)s" if verbose
           else "%(message)s")

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    # remote output is always shown from NOTICE up, everything with -v
    logging.getLogger(EVENTS_LOGGER).setLevel(logging.DEBUG if verbose else NOTICE)


def dry_run_option(f):
    """Common --dry-run flag."""
    return click.option("--dry-run", "-n", is_flag=True,
                        help="Show what would be done")(f)
