"""
Archive extraction — download an archive and unpack it inside a biome.

The archive is staged next to the destination (``<dst>.tar.gz``) so
the biome's own ``tar``/``unzip`` can read it, then removed. If
unpacking fails the destination directory is removed as well, so an
install directory is either complete or absent.
"""

from __future__ import annotations

import logging
import zipfile
from enum import StrEnum
from typing import IO

from yb.adapters.biome import Invocation, abs_path, mkdir_all, write_file
from yb.core.context import Context
from yb.core.errors import ArchiveError, Cancelled, YBError
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

# Seconds cleanup commands may run after the main work was cancelled.
CLEANUP_GRACE = 10.0

ZIP_EXT = ".zip"
TAR_XZ_EXT = ".tar.xz"
TAR_GZ_EXT = ".tar.gz"
TAR_BZ2_EXT = ".tar.bz2"

_EXTENSIONS = (ZIP_EXT, TAR_XZ_EXT, TAR_GZ_EXT, TAR_BZ2_EXT)

_TAR_FLAGS = {
    TAR_XZ_EXT: "-J",
    TAR_GZ_EXT: "-z",
    TAR_BZ2_EXT: "-j",
}


class StripMode(StrEnum):
    """How archive entries map onto the destination directory."""

    TARBOMB = "tarbomb"
    STRIP_TOP_DIRECTORY = "strip-top-directory"


def archive_extension(url: str) -> str | None:
    for ext in _EXTENSIONS:
        if url.endswith(ext):
            return ext
    return None


def extract(ctx: Context, sys: Sys, dst_dir: str, url: str, mode: StripMode) -> None:
    """Download ``url`` and unpack it into ``dst_dir`` inside ``sys.biome``.

    Raises:
        ArchiveError: On an unknown format or any failure while
            unpacking; the cause is chained.
        Cancelled: If ``ctx`` was cancelled.
    """
    ext = archive_extension(url)
    if ext is None:
        raise ArchiveError(f"extract {url} in {dst_dir}: unknown extension")

    try:
        handle = sys.downloader.download(ctx, url)
    except Cancelled:
        raise
    except YBError as err:
        raise ArchiveError(f"extract {url} in {dst_dir}: {err}") from err

    with handle:
        try:
            mkdir_all(ctx, sys.biome, dst_dir)
            _unpack(ctx, sys, dst_dir, handle, ext, mode)
        except BaseException as err:
            remove_all(ctx, sys, dst_dir)
            if isinstance(err, YBError) and not isinstance(err, (Cancelled, ArchiveError)):
                raise ArchiveError(f"extract {url} in {dst_dir}: {err}") from err
            raise


def _unpack(ctx: Context, sys: Sys, dst_dir: str, handle: IO[bytes], ext: str, mode: StripMode) -> None:
    bio = sys.biome
    dst_file = dst_dir + ext
    try:
        write_file(ctx, bio, dst_file, handle)
        abs_dst_dir = abs_path(bio, dst_dir)
        abs_dst_file = abs_path(bio, dst_file)

        if ext != ZIP_EXT:
            argv = ["tar", "-x", _TAR_FLAGS[ext], "-f", abs_dst_file]
            if mode == StripMode.STRIP_TOP_DIRECTORY:
                argv += ["--strip-components", "1"]
            _run(ctx, sys, argv, abs_dst_dir)
            return

        root, names = "", []
        if mode == StripMode.STRIP_TOP_DIRECTORY:
            handle.seek(0)
            try:
                with zipfile.ZipFile(handle) as zf:
                    root, names = top_level_zip_filenames(zf.namelist())
            except zipfile.BadZipFile as err:
                raise ArchiveError(f"read zip {dst_file}: {err}") from err
        _run(ctx, sys, ["unzip", "-q", abs_dst_file], abs_dst_dir)
        if root:
            _run(ctx, sys, ["mv", *[bio.join_path(root, name) for name in names], "."], abs_dst_dir)
            _run(ctx, sys, ["rmdir", root], abs_dst_dir)
    finally:
        _remove_file(ctx, sys, dst_file)


def top_level_zip_filenames(names: list[str]) -> tuple[str, list[str]]:
    """Find the single directory every zip entry lives in, and its children.

    Returns:
        ``(root, children)``; ``("", [])`` for an empty archive.

    Raises:
        ArchiveError: If an entry sits at the archive root or outside
            the first entry's directory.
    """
    if not names:
        return "", []
    i = names[0].find("/")
    if i == -1:
        raise ArchiveError(f"find zip root directory: {names[0]!r} not in a directory")
    root = names[0][:i]
    prefix = names[0][: i + 1]
    children: list[str] = []
    for entry in names:
        if not entry.startswith(prefix):
            raise ArchiveError(f"find zip root directory: {entry!r} not in directory {root!r}")
        name = entry[i + 1 :].split("/", 1)[0]
        if name == root:
            raise ArchiveError(f"strip zip root directory: {root!r} contains a file {name!r}")
        if name and name not in children:
            children.append(name)
    return root, children


def remove_all(ctx: Context, sys: Sys, path: str) -> None:
    """``rm -rf path`` in the biome, even if ``ctx`` was cancelled.

    Failures are logged, never raised.
    """
    with ctx.detached(CLEANUP_GRACE) as cleanup_ctx:
        try:
            _run(cleanup_ctx, sys, ["rm", "-rf", path])
        except YBError as err:
            logger.warning("Failed to clean up %s: %s", path, err)


def _remove_file(ctx: Context, sys: Sys, path: str) -> None:
    with ctx.detached(CLEANUP_GRACE) as cleanup_ctx:
        try:
            _run(cleanup_ctx, sys, ["rm", "-f", path])
        except YBError as err:
            logger.warning("Failed to clean up %s: %s", path, err)


def _run(ctx: Context, sys: Sys, argv: list[str], cwd: str = "") -> None:
    sys.biome.run(ctx, Invocation(argv=argv, dir=cwd, stdout=sys.stdout, stderr=sys.stderr))
