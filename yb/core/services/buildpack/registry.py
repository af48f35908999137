"""
Buildpack registry — buildpack names mapped to installer functions.

``install()`` is the single entry point: it finds the installer for a
spec, serialises installs that share a tools directory, and wraps
failures as ``InstallError``.
"""

from __future__ import annotations

import logging
import threading

from yb.core.context import Context
from yb.core.errors import Cancelled, InstallError, UnknownBuildpackError
from yb.core.models import BuildpackSpec, Environment
from yb.core.services.buildpack.installers import (
    anaconda,
    android,
    flutter,
    golang,
    heroku,
    jvm,
    nodejs,
    openjdk,
    protoc,
    rlang,
    ruby,
    rust,
)
from yb.core.services.buildpack.installers.base import Installer
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

PACKS: dict[str, Installer] = {
    "anaconda2": anaconda.install_anaconda2,
    "anaconda3": anaconda.install_anaconda3,
    "android": android.install_android,
    "androidndk": android.install_android_ndk,
    "ant": jvm.install_ant,
    "dart": flutter.install_dart,
    "flutter": flutter.install_flutter,
    "glide": golang.install_glide,
    "go": golang.install_go,
    "gradle": jvm.install_gradle,
    "heroku": heroku.install_heroku,
    "java": openjdk.install_java,
    "maven": jvm.install_maven,
    "miniforge": anaconda.install_miniforge,
    "node": nodejs.install_node,
    "protoc": protoc.install_protoc,
    "python": anaconda.install_python,
    "r": rlang.install_r,
    "ruby": ruby.install_ruby,
    "rust": rust.install_rust,
    "yarn": nodejs.install_yarn,
}

# Packs that write into the same tools subdirectory install one at a time.
LOCK_GROUPS = {
    "anaconda2": "miniconda",
    "anaconda3": "miniconda",
    "miniforge": "miniconda",
    "python": "miniconda",
}

# ── Install locks ───────────────────────────────────────────────

_install_locks: dict[tuple[str, str], threading.RLock] = {}
_install_locks_mu = threading.Lock()


def _install_lock(tools_dir: str, name: str) -> threading.RLock:
    key = (tools_dir, LOCK_GROUPS.get(name, name))
    with _install_locks_mu:
        lock = _install_locks.get(key)
        if lock is None:
            lock = _install_locks[key] = threading.RLock()
        return lock


def names() -> list[str]:
    """Registered buildpack names, sorted."""
    return sorted(PACKS)


def install(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install ``spec`` into ``sys.biome`` and return its Environment.

    Installing a buildpack that is already present does no work beyond
    finding it.

    Raises:
        UnknownBuildpackError: If no installer is registered for the name.
        InstallError: If the installer failed; the cause is chained.
        Cancelled: If ``ctx`` was cancelled.
    """
    installer = PACKS.get(spec.name)
    if installer is None:
        raise UnknownBuildpackError(spec)

    logger.info("Configuring build tool %s...", spec)
    lock = _install_lock(sys.biome.dirs().tools, spec.name)
    while not lock.acquire(timeout=0.1):
        ctx.raise_if_cancelled()
    try:
        return installer(ctx, sys, spec)
    except Cancelled:
        raise
    except Exception as err:
        if ctx.cancelled:
            raise ctx.error() from err
        raise InstallError(spec, err) from err
    finally:
        lock.release()
