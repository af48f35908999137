"""
Helpers shared by the CLI command modules.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from yb.core.config.settings import DataDirs
from yb.core.context import Context, background

logger = logging.getLogger(__name__)


def data_dirs(ctx: click.Context) -> DataDirs:
    """Data directories from ``--cache-dir`` or the environment."""
    cache_dir: Path | None = ctx.obj.get("cache_dir")
    return DataDirs.under(cache_dir) if cache_dir else DataDirs.from_env()


@contextmanager
def interruptible() -> Iterator[Context]:
    """A root context that Ctrl-C cancels instead of raising KeyboardInterrupt.

    A second Ctrl-C falls through to the default handler.
    """
    ctx = background().with_cancel()
    if threading.current_thread() is not threading.main_thread():
        yield ctx
        return

    def on_interrupt(signum, frame) -> None:
        logger.warning("Interrupted; cleaning up...")
        ctx.cancel("interrupted")
        signal.signal(signal.SIGINT, previous)

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        yield ctx
    finally:
        signal.signal(signal.SIGINT, previous)
