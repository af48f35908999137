"""
Local biome — runs build commands directly on the host.

Commands inherit the host environment, with HOME pointed at the
biome's home directory and the invocation's environment layered on
top. Programs are looked up on the PATH the invocation will see, so a
buildpack installed a moment ago is found on the very next run.
"""

from __future__ import annotations

import logging
import os
import platform
import shlex
import shutil
import signal
import subprocess
import tempfile
import threading
from typing import IO

from yb.adapters.biome.base import BiomeCloser, Invocation, abs_path, standard_env
from yb.adapters.biome.streams import feed, pump, start_daemon
from yb.core.context import Context
from yb.core.errors import BiomeError, ExitError
from yb.core.models import ARM64, LINUX, MACOS, WINDOWS, X86, X86_64, Descriptor, Dirs, Environment

logger = logging.getLogger(__name__)

# Seconds to wait for output pumps once a cancelled command was killed.
_KILLED_DRAIN_TIMEOUT = 5.0

_OS_MAP = {
    "linux": LINUX,
    "darwin": MACOS,
    "windows": WINDOWS,
}

_ARCH_MAP = {
    "x86_64": X86_64,
    "amd64": X86_64,
    "i386": X86,
    "i686": X86,
    "x86": X86,
    "arm64": ARM64,
    "aarch64": ARM64,
}


def local_descriptor() -> Descriptor:
    """Describe the host this process runs on."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    return Descriptor(os=_OS_MAP.get(system, system), arch=_ARCH_MAP.get(machine, machine))


class LocalBiome(BiomeCloser):
    """A biome backed by host processes.

    Args:
        package_dir: The project source tree; relative ``Invocation.dir``
            values are resolved against it.
        home_dir: HOME for commands (default: the user's home).
        tools_dir: Where buildpacks are installed
            (default: ``<home>/.cache/yb/tools``).
    """

    def __init__(
        self,
        package_dir: str,
        home_dir: str | None = None,
        tools_dir: str | None = None,
    ):
        home = os.path.abspath(home_dir or os.path.expanduser("~"))
        self._dirs = Dirs(
            home=home,
            package=os.path.abspath(package_dir),
            tools=os.path.abspath(tools_dir or os.path.join(home, ".cache", "yb", "tools")),
        )
        self._descriptor = local_descriptor()

    def describe(self) -> Descriptor:
        return self._descriptor

    def dirs(self) -> Dirs:
        return self._dirs

    def close(self) -> None:
        pass

    # ── Paths (host semantics) ──────────────────────────────────

    def join_path(self, *elems: str) -> str:
        parts = [e for e in elems if e]
        if not parts:
            return ""
        return os.path.normpath(os.path.join(*parts))

    def clean_path(self, path: str) -> str:
        return os.path.normpath(path) if path else "."

    def is_abs_path(self, path: str) -> bool:
        return os.path.isabs(path)

    def path_from_slash(self, path: str) -> str:
        return path.replace("/", os.sep)

    # ── Run ─────────────────────────────────────────────────────

    def environ(self, env: Environment) -> dict[str, str]:
        """The full environment a command with ``env`` runs with."""
        result = dict(os.environ)
        result["HOME"] = self._dirs.home
        result.update(standard_env(self._descriptor))
        host_path = result.pop("PATH", os.defpath)
        result.update(env.to_dict(default_path=host_path, sep=os.pathsep))
        return result

    def run(self, ctx: Context, invoke: Invocation) -> None:
        if not invoke.argv:
            raise ValueError("local run: argv empty")
        ctx.raise_if_cancelled()

        env = self.environ(invoke.env)
        program = look_path(invoke.argv[0], env.get("PATH", ""))
        argv = [program, *invoke.argv[1:]]
        cwd = abs_path(self, invoke.dir)
        logger.debug("Running %s (cwd=%s)", shlex.join(invoke.argv), cwd)

        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=env,
                stdin=subprocess.PIPE if invoke.stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE if invoke.stdout is not None else subprocess.DEVNULL,
                stderr=subprocess.PIPE if invoke.stderr is not None else subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as err:
            raise BiomeError(f"local run {invoke.argv[0]}: {err}") from err

        shared = threading.Lock() if invoke.stdout is not None and invoke.stdout is invoke.stderr else None
        threads = []
        if invoke.stdin is not None:
            threads.append(start_daemon(feed, invoke.stdin, proc.stdin))
        if invoke.stdout is not None:
            threads.append(start_daemon(pump, proc.stdout, invoke.stdout, shared))
        if invoke.stderr is not None:
            threads.append(start_daemon(pump, proc.stderr, invoke.stderr, shared))

        unregister = ctx.on_cancel(lambda: _kill_group(proc))
        try:
            code = proc.wait()
        finally:
            unregister()
        drain_timeout = _KILLED_DRAIN_TIMEOUT if ctx.cancelled else None
        for thread in threads:
            thread.join(drain_timeout)

        if code == 0:
            return
        ctx.raise_if_cancelled()
        raise ExitError(f"local run {shlex.join(invoke.argv)}: exit code {code}", code)

    # ── Filesystem ──────────────────────────────────────────────

    def write_file(self, ctx: Context, path: str, src: IO[bytes]) -> None:
        path = abs_path(self, path)
        ctx.raise_if_cancelled()
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), prefix=".yb-write-")
            with os.fdopen(fd, "wb") as f:
                shutil.copyfileobj(src, f)
            os.chmod(tmp, 0o644)
            os.replace(tmp, path)
        except OSError as err:
            if tmp is not None:
                _remove_quietly(tmp)
            raise BiomeError(f"write file {path}: {err}") from err

    def mkdir_all(self, ctx: Context, path: str) -> None:
        path = abs_path(self, path)
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as err:
            raise BiomeError(f"mkdir -p {path}: {err}") from err

    def eval_symlinks(self, ctx: Context, path: str) -> str:
        path = abs_path(self, path)
        try:
            os.stat(path)
        except OSError as err:
            raise BiomeError(f"eval symlinks for {path}: {err}") from err
        return os.path.realpath(path)


def look_path(program: str, path: str) -> str:
    """Find ``program`` on ``path`` the way a shell would.

    Names containing a path separator are returned unchanged.

    Raises:
        BiomeError: If no executable file matches.
    """
    if os.sep in program or (os.altsep and os.altsep in program):
        return program
    for entry in path.split(os.pathsep):
        candidate = os.path.abspath(os.path.join(entry or ".", program))
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
    raise BiomeError(f"local run: {program}: executable file not found in $PATH")


def _kill_group(proc: subprocess.Popen) -> None:
    if proc.poll() is not None:
        return
    logger.debug("Killing process group %d", proc.pid)
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError as err:
        logger.warning("Could not remove %s: %s", path, err)
