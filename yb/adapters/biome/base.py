"""
Biome — a uniform substrate for running build commands.

A biome is an environment a build runs in: the host, a Docker
container, or a test double. It runs commands, resolves paths using
its own conventions (POSIX inside a container even on a macOS host),
and exposes three well-known directories (see ``Dirs``).

Some biomes can write files, create directories or resolve symlinks
more efficiently than by running a command. They do so by
implementing the optional ``write_file``, ``mkdir_all`` and
``eval_symlinks`` methods. Callers never call those methods directly:
they use the module-level functions of the same name, which fall back
to ``tee``, ``mkdir -p`` and ``readlink`` when the biome lacks them.
"""

from __future__ import annotations

import io
import logging
import posixpath
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import IO, Protocol, runtime_checkable

from yb.core.context import Context
from yb.core.errors import BiomeError
from yb.core.models import LINUX, Descriptor, Dirs, Environment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Invocation:
    """A request to run a program in a biome.

    ``dir`` is relative to the biome's package directory unless
    absolute. ``env`` is layered on top of the biome's own
    environment. A ``None`` output stream discards that output; a
    ``None`` stdin reads as empty.
    """

    argv: Sequence[str]
    dir: str = ""
    env: Environment = field(default_factory=Environment)
    stdin: IO | None = None
    stdout: IO | None = None
    stderr: IO | None = None


class Biome(ABC):
    """Runs commands and resolves paths for a build environment."""

    @abstractmethod
    def describe(self) -> Descriptor:
        """The biome's OS and architecture. Constant for its lifetime."""

    @abstractmethod
    def dirs(self) -> Dirs:
        """The biome's home, package and tools directories."""

    @abstractmethod
    def run(self, ctx: Context, invoke: Invocation) -> None:
        """Run a program and wait for it to exit.

        Raises:
            ValueError: If ``invoke.argv`` is empty.
            ExitError: If the program exited with a non-zero status.
            BiomeError: If the program could not be started.
            Cancelled: If ``ctx`` was cancelled while it ran.
        """

    # ── Path semantics (POSIX unless overridden) ────────────────

    def join_path(self, *elems: str) -> str:
        parts = [e for e in elems if e]
        if not parts:
            return ""
        return posixpath.normpath(posixpath.join(*parts))

    def clean_path(self, path: str) -> str:
        return posixpath.normpath(path) if path else "."

    def is_abs_path(self, path: str) -> bool:
        return posixpath.isabs(path)

    def path_from_slash(self, path: str) -> str:
        return path


class BiomeCloser(Biome):
    """A biome that owns resources released by ``close``."""

    @abstractmethod
    def close(self) -> None:
        """Release the biome's resources."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ── Optional capabilities ───────────────────────────────────────


@runtime_checkable
class FileWriter(Protocol):
    def write_file(self, ctx: Context, path: str, src: IO[bytes]) -> None: ...


@runtime_checkable
class DirMaker(Protocol):
    def mkdir_all(self, ctx: Context, path: str) -> None: ...


@runtime_checkable
class SymlinkEvaluator(Protocol):
    def eval_symlinks(self, ctx: Context, path: str) -> str: ...


# ── Path helpers ────────────────────────────────────────────────


def clean_path(bio: Biome, path: str) -> str:
    """Clean ``path`` using the biome's conventions; ``""`` becomes ``"."``."""
    if not path:
        return "."
    return bio.clean_path(path)


def abs_path(bio: Biome, path: str) -> str:
    """Resolve ``path`` against the biome's package directory."""
    if bio.is_abs_path(path):
        return bio.clean_path(path)
    return bio.join_path(bio.dirs().package, path)


# ── Filesystem operations with fallbacks ────────────────────────


def write_file(ctx: Context, bio: Biome, path: str, src: IO[bytes]) -> None:
    """Write ``src`` to ``path`` inside the biome.

    Relative paths are resolved against the package directory.
    """
    if isinstance(bio, FileWriter):
        bio.write_file(ctx, path, src)
        return
    path = abs_path(bio, path)
    _run_fallback(ctx, bio, ["tee", path], f"write file {path}", stdin=src)


def mkdir_all(ctx: Context, bio: Biome, path: str) -> None:
    """Create ``path`` and any missing parents. No error if it exists."""
    if isinstance(bio, DirMaker):
        bio.mkdir_all(ctx, path)
        return
    path = abs_path(bio, path)
    _run_fallback(ctx, bio, ["mkdir", "-p", path], f"mkdir -p {path}")


def eval_symlinks(ctx: Context, bio: Biome, path: str) -> str:
    """Return the absolute path of ``path`` after resolving symlinks.

    Raises:
        BiomeError: If the path does not exist.
    """
    if isinstance(bio, SymlinkEvaluator):
        return bio.eval_symlinks(ctx, path)
    path = abs_path(bio, path)
    if bio.describe().os == LINUX:
        argv = ["readlink", "--canonicalize-existing", "--no-newline", path]
    else:
        argv = [
            "python",
            "-c",
            "import os, sys; os.stat(sys.argv[1]); sys.stdout.write(os.path.realpath(sys.argv[1]))",
            path,
        ]
    stdout = io.BytesIO()
    _run_fallback(ctx, bio, argv, f"eval symlinks for {path}", stdout=stdout)
    return stdout.getvalue().decode("utf-8")


def exists(ctx: Context, bio: Biome, path: str) -> bool:
    """Report whether ``path`` resolves inside the biome."""
    try:
        eval_symlinks(ctx, bio, path)
    except BiomeError:
        ctx.raise_if_cancelled()
        return False
    return True


def _run_fallback(
    ctx: Context,
    bio: Biome,
    argv: list[str],
    what: str,
    stdin: IO | None = None,
    stdout: IO | None = None,
) -> None:
    stderr = io.BytesIO()
    try:
        bio.run(ctx, Invocation(argv=argv, stdin=stdin, stdout=stdout, stderr=stderr))
    except BiomeError as err:
        ctx.raise_if_cancelled()
        message = stderr.getvalue().decode("utf-8", errors="replace").strip()
        raise BiomeError(f"{what}: {message or err}") from err


def standard_env(desc: Descriptor) -> dict[str, str]:
    """Locale and timezone variables every biome sets for reproducible output."""
    env = {"TZ": "UTC0"}
    if desc.os == LINUX:
        env["LANG"] = "C.UTF-8"
        env["LC_ALL"] = "C.UTF-8"
    else:
        env["LANG"] = "C"
        env["LC_CTYPE"] = "UTF-8"
    return env
