"""
Biome decorators — wrap a biome to change how it runs commands.

    bio = with_close(EnvBiome(LocalBiome(pkg), env), teardown)

Decorators forward the optional filesystem capabilities to the
wrapped biome, so wrapping never makes file writes fall back to
``tee``.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Sequence
from typing import IO

from yb.adapters.biome import base
from yb.adapters.biome.base import Biome, BiomeCloser, Invocation
from yb.core.context import Context
from yb.core.models import Descriptor, Dirs, Environment

logger = logging.getLogger(__name__)


class _Wrapper(BiomeCloser):
    """Delegates everything to an inner biome."""

    def __init__(self, inner: Biome):
        self.inner = inner

    def describe(self) -> Descriptor:
        return self.inner.describe()

    def dirs(self) -> Dirs:
        return self.inner.dirs()

    def run(self, ctx: Context, invoke: Invocation) -> None:
        self.inner.run(ctx, invoke)

    def join_path(self, *elems: str) -> str:
        return self.inner.join_path(*elems)

    def clean_path(self, path: str) -> str:
        return self.inner.clean_path(path)

    def is_abs_path(self, path: str) -> bool:
        return self.inner.is_abs_path(path)

    def path_from_slash(self, path: str) -> str:
        return self.inner.path_from_slash(path)

    def write_file(self, ctx: Context, path: str, src: IO[bytes]) -> None:
        base.write_file(ctx, self.inner, path, src)

    def mkdir_all(self, ctx: Context, path: str) -> None:
        base.mkdir_all(ctx, self.inner, path)

    def eval_symlinks(self, ctx: Context, path: str) -> str:
        return base.eval_symlinks(ctx, self.inner, path)

    def close(self) -> None:
        if isinstance(self.inner, BiomeCloser):
            self.inner.close()


class EnvBiome(_Wrapper):
    """Layers a base environment under every invocation's environment.

    Variables set by the invocation win over ``env``; the invocation's
    PATH entries go outside the base entries.
    """

    def __init__(self, inner: Biome, env: Environment):
        super().__init__(inner)
        self.env = env

    def run(self, ctx: Context, invoke: Invocation) -> None:
        if not self.env.is_empty():
            invoke = dataclasses.replace(invoke, env=self.env.merge(invoke.env))
        self.inner.run(ctx, invoke)


class ExecPrefix(_Wrapper):
    """Prepends a fixed argv prefix to every command, e.g. ``["sudo"]``."""

    def __init__(self, inner: Biome, prefix: Sequence[str]):
        super().__init__(inner)
        self.prefix = tuple(prefix)

    def run(self, ctx: Context, invoke: Invocation) -> None:
        if not invoke.argv:
            raise ValueError("exec prefix run: argv empty")
        self.inner.run(ctx, dataclasses.replace(invoke, argv=[*self.prefix, *invoke.argv]))


class _WithClose(_Wrapper):
    def __init__(self, inner: Biome, fn: Callable[[], None]):
        super().__init__(inner)
        self._fn = fn

    def close(self) -> None:
        fn_error: Exception | None = None
        try:
            self._fn()
        except Exception as err:
            fn_error = err
        try:
            super().close()
        except Exception as err:
            if fn_error is None:
                raise
            logger.error("Closing biome: %s", err)
        if fn_error is not None:
            raise fn_error


def with_close(inner: Biome, fn: Callable[[], None]) -> BiomeCloser:
    """Return a biome whose ``close`` calls ``fn`` and then closes ``inner``.

    If both fail, ``fn``'s error is raised and the inner error logged.
    """
    return _WithClose(inner, fn)


def nop_closer(inner: Biome) -> BiomeCloser:
    """Make ``inner`` closeable. Closing does nothing to ``inner``."""
    return _NoClose(inner)


class _NoClose(_Wrapper):
    def close(self) -> None:
        pass
