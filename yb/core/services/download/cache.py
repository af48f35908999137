"""
Download cache — fetch each URL once and keep the bytes on disk.

Entries live in ``DataDirs.downloads`` under a name derived from the
URL. A file in the cache is always complete: downloads stream into a
temporary file in the same directory and are renamed into place.

Concurrent downloads of the same URL within a process are serialised
by a lock table keyed by cache filename. The table is created on first
use and lives until process exit.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import threading
import urllib.error
import urllib.request
from pathlib import Path
from typing import BinaryIO

from yb import __version__
from yb.core.config.settings import DataDirs
from yb.core.context import Context
from yb.core.errors import DownloadError

logger = logging.getLogger(__name__)

USER_AGENT = f"yb/{__version__}"
CHUNK_SIZE = 64 * 1024

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.]+")

# ── Per-URL locks ───────────────────────────────────────────────

_url_locks: dict[str, threading.Lock] | None = None
_url_locks_mu = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    global _url_locks
    with _url_locks_mu:
        if _url_locks is None:
            _url_locks = {}
        lock = _url_locks.get(key)
        if lock is None:
            lock = _url_locks[key] = threading.Lock()
        return lock


def cache_filename_for_url(url: str) -> str:
    """The cache entry name for ``url``: only letters, digits and dots survive."""
    return _UNSAFE_CHARS.sub("", url)


class Downloader:
    """Downloads URLs into a cache directory.

    Args:
        directory: Where cache entries live; created on demand.
        opener: urllib opener used for requests (default: ``build_opener()``).
        timeout: Socket timeout in seconds for each request.
    """

    def __init__(
        self,
        directory: Path,
        opener: urllib.request.OpenerDirector | None = None,
        timeout: float = 60.0,
    ):
        self.directory = Path(directory)
        self.opener = opener or urllib.request.build_opener()
        self.timeout = timeout

    @classmethod
    def from_data_dirs(
        cls,
        dirs: DataDirs,
        opener: urllib.request.OpenerDirector | None = None,
    ) -> Downloader:
        return cls(dirs.downloads, opener=opener)

    def cache_path(self, url: str) -> Path:
        return self.directory / cache_filename_for_url(url)

    def download(self, ctx: Context, url: str) -> BinaryIO:
        """Return an open, seekable handle to the contents of ``url``.

        Raises:
            DownloadError: If the request failed. ``not_found`` is set
                for 404/410 responses.
            Cancelled: If ``ctx`` was cancelled while waiting or downloading.
        """
        path = self.cache_path(url)
        lock = _lock_for(str(path))
        while not lock.acquire(timeout=0.1):
            ctx.raise_if_cancelled()
        try:
            if path.is_file():
                logger.info("Reusing cached version of %s", url)
            else:
                ctx.raise_if_cancelled()
                self._fetch(ctx, url, path)
            return open(path, "rb")
        finally:
            lock.release()

    def _fetch(self, ctx: Context, url: str, path: Path) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise DownloadError(url, str(err)) from err

        logger.info("Downloading %s", url)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".download-")
        try:
            with os.fdopen(fd, "wb") as out:
                self._copy_response(ctx, url, out)
            os.replace(tmp, path)
        except BaseException:
            _remove_quietly(tmp)
            raise

    def _copy_response(self, ctx: Context, url: str, out: BinaryIO) -> None:
        request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        try:
            resp = self.opener.open(request, timeout=self.timeout)
        except urllib.error.HTTPError as err:
            err.close()
            raise DownloadError(url, f"http {err.code} {err.reason}", status=err.code) from err
        except (urllib.error.URLError, OSError) as err:
            raise DownloadError(url, str(getattr(err, "reason", err))) from err

        with resp:
            status = getattr(resp, "status", None) or resp.getcode()
            if status != 200:
                raise DownloadError(url, f"http {status}", status=status)
            try:
                while True:
                    chunk = resp.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    ctx.raise_if_cancelled()
                    out.write(chunk)
            except OSError as err:
                raise DownloadError(url, str(err)) from err


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as err:
        logger.warning("Failed to clean up failed download: %s", err)


# ── Maintenance ─────────────────────────────────────────────────


def cache_status(directory: Path) -> dict:
    """Summarise the download cache.

    Returns::

        {"cache_dir": "...", "files": 3, "size_mb": 45.6}
    """
    files = 0
    total_bytes = 0
    if directory.exists():
        for item in directory.iterdir():
            if item.is_file() and not item.name.startswith(".download-"):
                files += 1
                total_bytes += item.stat().st_size
    return {
        "cache_dir": str(directory),
        "files": files,
        "size_mb": round(total_bytes / (1024 * 1024), 1),
    }


def clear_cache(directory: Path) -> int:
    """Delete every cached download. Returns the number of files removed."""
    removed = 0
    if directory.exists():
        removed = sum(1 for item in directory.iterdir() if item.is_file())
        shutil.rmtree(directory)
    directory.mkdir(parents=True, exist_ok=True)
    return removed
