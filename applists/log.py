"""Logging setup shared by the CLI entry points."""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Route the root logger through rich.

    INFO by default, DEBUG with ``verbose``. Pass ``force=True`` to replace
    handlers installed by an earlier call (tests, repeated CLI invocations).
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(show_path=False, markup=False)],
        force=force,
    )
