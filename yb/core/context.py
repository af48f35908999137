"""
Cancellation context — carries cancellation through blocking calls.

Every operation that talks to the outside world (running a command,
downloading, extracting) takes a Context as its first argument. The
context never interrupts a thread by itself: long-running operations
either poll ``ctx.cancelled`` between steps or register an
``on_cancel`` callback that tears down the subprocess they wait on.

    ctx = background().with_timeout(600)
    biome.run(ctx, Invocation(argv=["make"]))
    ctx.cancel()

Contexts form a tree. Cancelling a context cancels all of its
children; cancelling a child never reaches the parent. ``detached``
makes a context that ignores the parent's cancellation, used for
cleanup that must still run after the main work was cancelled.
Derived contexts are context managers; leaving the block releases
the timer and the parent registration.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from yb.core.errors import Cancelled, DeadlineExceeded

logger = logging.getLogger(__name__)


class Context:
    """A cancellation scope. Thread-safe."""

    def __init__(self, parent: Context | None = None, timeout: float | None = None):
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._error: Cancelled | None = None
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0
        self._timer: threading.Timer | None = None

        if parent is not None:
            parent._add_child(self)
        if timeout is not None:
            self._timer = threading.Timer(timeout, self._expire)
            self._timer.daemon = True
            self._timer.start()

    # ── State ───────────────────────────────────────────────────

    @property
    def cancelled(self) -> bool:
        return self._done.is_set()

    def error(self) -> Cancelled | None:
        """The cancellation error, or None while the context is live."""
        with self._lock:
            return self._error

    def raise_if_cancelled(self) -> None:
        err = self.error()
        if err is not None:
            raise err

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses. Returns ``cancelled``."""
        return self._done.wait(timeout)

    # ── Cancellation ────────────────────────────────────────────

    def cancel(self, reason: str = "context cancelled") -> None:
        """Cancel this context and its children. Idempotent."""
        self._finish(Cancelled(reason))

    def _expire(self) -> None:
        self._finish(DeadlineExceeded("context deadline exceeded"))

    def _finish(self, err: Cancelled) -> None:
        with self._lock:
            if self._error is not None:
                return
            self._error = err
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
            timer = self._timer
        self._done.set()
        if timer is not None:
            timer.cancel()
        for fn in callbacks:
            try:
                fn()
            except Exception:
                logger.exception("Cancellation callback failed")

    def on_cancel(self, fn: Callable[[], None]) -> Callable[[], None]:
        """Call ``fn`` once when the context is cancelled.

        If the context is already cancelled, ``fn`` runs immediately.
        Returns a function that unregisters ``fn``.
        """
        with self._lock:
            if self._error is None:
                key = self._next_id
                self._next_id += 1
                self._callbacks[key] = fn

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(key, None)

                return unregister
        fn()
        return lambda: None

    def _add_child(self, child: Context) -> None:
        unregister = self.on_cancel(lambda: child._finish(self._child_error()))
        child.on_cancel(unregister)

    def release(self) -> None:
        """Finish this context once its work is done.

        Stops the deadline timer and drops the registration with the
        parent. Anything still holding the context sees it cancelled.
        """
        self._finish(Cancelled("context released"))

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def _child_error(self) -> Cancelled:
        err = self.error()
        if err is None:
            return Cancelled("context cancelled")
        return type(err)(str(err))

    # ── Derived contexts ────────────────────────────────────────

    def with_cancel(self) -> Context:
        return Context(parent=self)

    def with_timeout(self, seconds: float) -> Context:
        return Context(parent=self, timeout=seconds)

    def detached(self, grace: float) -> Context:
        """A context for cleanup: unaffected by this one, expires after ``grace`` seconds."""
        return Context(timeout=grace)


def background() -> Context:
    """A new root context with no deadline."""
    return Context()
