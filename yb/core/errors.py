"""
Error taxonomy — every failure yb surfaces is a YBError.

Wrapping always chains (``raise X(...) from err``) so the original
failure stays reachable on ``__cause__``. Callers that need to branch
on a kind walk the chain with the helpers at the bottom of this module
instead of catching narrower exception types.
"""

from __future__ import annotations


class YBError(Exception):
    """Base class for all yb errors."""


class UnsupportedPlatformError(YBError):
    """A buildpack has no download for the biome's OS/architecture."""

    def __init__(self, what: str, os: str, arch: str):
        super().__init__(f"{what}: unsupported os/arch {os}/{arch}")
        self.os = os
        self.arch = arch


class UnknownBuildpackError(YBError):
    """No installer is registered under a buildpack name."""

    def __init__(self, spec: str):
        super().__init__(f"install buildpack {spec}: no such buildpack")
        self.spec = spec


class InstallError(YBError):
    """An installer failed. The underlying error is on ``__cause__``."""

    def __init__(self, spec: str, cause: BaseException):
        super().__init__(f"install buildpack {spec}: {cause}")
        self.spec = spec


class DownloadError(YBError):
    """An HTTP download failed.

    ``not_found`` is set for 404/410 responses so installers with a
    fallback mirror can tell "does not exist" from "could not fetch".
    """

    def __init__(self, url: str, message: str, status: int | None = None):
        super().__init__(f"download {url}: {message}")
        self.url = url
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status in (404, 410)


class ArchiveError(YBError):
    """An archive has an unknown format or an unexpected layout."""


class BiomeError(YBError):
    """A biome operation failed: start, write, mkdir or docker call."""


class ExitError(BiomeError):
    """A command ran and exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code


class Cancelled(YBError):
    """The operation's context was cancelled."""


class DeadlineExceeded(Cancelled):
    """The operation's context timed out."""


class BuildError(YBError):
    """A build target could not be set up or one of its commands failed."""


# ── Chain helpers ───────────────────────────────────────────────


def iter_chain(err: BaseException | None):
    """Yield ``err`` and every exception it was raised from."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__ or err.__context__


def is_not_found(err: BaseException | None) -> bool:
    """Report whether ``err`` was ultimately caused by a missing download."""
    return any(isinstance(e, DownloadError) and e.not_found for e in iter_chain(err))


def is_cancelled(err: BaseException | None) -> bool:
    """Report whether ``err`` was ultimately caused by cancellation."""
    return any(isinstance(e, Cancelled) for e in iter_chain(err))
