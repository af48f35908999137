"""
Fake biome — scripted test double for code that drives a biome.

Nothing is executed: each ``run`` is recorded and dispatched to a
handler registered for the program name. Paths are POSIX.
"""

from __future__ import annotations

from collections.abc import Callable

from yb.adapters.biome.base import BiomeCloser, Invocation
from yb.core.context import Context
from yb.core.errors import BiomeError, ExitError
from yb.core.models import LINUX, X86_64, Descriptor, Dirs

RunFunc = Callable[[Context, Invocation], None]


class FakeBiome(BiomeCloser):
    """A biome whose commands are answered by Python callables.

    By default every command fails. Register handlers per program
    with :meth:`set_handler`, or pass ``run_func`` to handle all of
    them.
    """

    def __init__(
        self,
        descriptor: Descriptor | None = None,
        dirs: Dirs | None = None,
        run_func: RunFunc | None = None,
    ):
        self._descriptor = descriptor or Descriptor(os=LINUX, arch=X86_64)
        self._dirs = dirs or Dirs(home="/home/fake", package="/package", tools="/tools")
        self._run_func = run_func
        self._handlers: dict[str, RunFunc] = {}
        self._call_log: list[Invocation] = []
        self.closed = False

    @property
    def call_log(self) -> list[Invocation]:
        """Every invocation this biome has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def argvs(self) -> list[list[str]]:
        return [list(invoke.argv) for invoke in self._call_log]

    def set_handler(self, program: str, fn: RunFunc) -> None:
        """Answer invocations of ``program`` with ``fn``."""
        self._handlers[program] = fn

    def set_failure(self, program: str, exit_code: int = 1, stderr: bytes = b"") -> None:
        """Make ``program`` exit with ``exit_code``, writing ``stderr``."""

        def fail(ctx: Context, invoke: Invocation) -> None:
            if stderr and invoke.stderr is not None:
                invoke.stderr.write(stderr)
            raise ExitError(f"fake run {invoke.argv[0]}: exit code {exit_code}", exit_code)

        self._handlers[program] = fail

    def describe(self) -> Descriptor:
        return self._descriptor

    def dirs(self) -> Dirs:
        return self._dirs

    def run(self, ctx: Context, invoke: Invocation) -> None:
        if not invoke.argv:
            raise ValueError("fake run: argv empty")
        self._call_log.append(invoke)
        handler = self._handlers.get(invoke.argv[0], self._run_func)
        if handler is None:
            raise BiomeError(f"fake run: no handler for {invoke.argv[0]}")
        handler(ctx, invoke)

    def close(self) -> None:
        self.closed = True
