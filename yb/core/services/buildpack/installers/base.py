"""
Helpers shared by the installer functions.

Every installer follows the same shape: compute its install directory
and Environment first, return early if the directory already resolves,
otherwise download/extract and run any post-install steps. These
helpers cover the parts that repeat.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence

from yb.adapters.biome import Invocation, exists
from yb.core.context import Context
from yb.core.errors import UnsupportedPlatformError
from yb.core.models import BuildpackSpec, Descriptor, Environment
from yb.core.services.buildpack.system import Sys

Installer = Callable[[Context, Sys, BuildpackSpec], Environment]


def tool_path(sys: Sys, *elems: str) -> str:
    """Join ``elems`` under the biome's tools directory."""
    bio = sys.biome
    return bio.join_path(bio.dirs().tools, *elems)


def installed(ctx: Context, sys: Sys, path: str) -> bool:
    """Report whether an install directory is present in the biome."""
    return exists(ctx, sys.biome, path)


def platform_value(what: str, desc: Descriptor, table: Mapping[str, str], key: str) -> str:
    """Look ``key`` up in a pack's OS or arch table.

    Raises:
        UnsupportedPlatformError: If the table has no entry.
    """
    value = table.get(key, "")
    if not value:
        raise UnsupportedPlatformError(what, desc.os, desc.arch)
    return value


def major_version(version: str) -> str:
    """The part of a dotted version before the first dot.

    Raises:
        ValueError: If the version has no dot.
    """
    major, sep, _ = version.partition(".")
    if not sep or not major:
        raise ValueError(f"invalid version {version!r}")
    return major


def run(
    ctx: Context,
    sys: Sys,
    argv: Sequence[str],
    *,
    env: Environment | None = None,
    cwd: str = "",
) -> None:
    """Run an installer step in the biome with the installer's output sinks."""
    sys.biome.run(
        ctx,
        Invocation(
            argv=list(argv),
            dir=cwd,
            env=env or Environment(),
            stdout=sys.stdout,
            stderr=sys.stderr,
        ),
    )
