"""
Container biome — runs build commands inside a Docker container.

The container is a long-lived sandbox: it runs ``tini`` as PID 1
(``/tini -g -- tail -f /dev/null``) and every command becomes a
``docker exec``. The package directory is bind-mounted at
``/workspace`` and the biome's home directory at ``/home/yourbase``,
so tools installed under ``~/.cache/yb/tools`` survive the container.

Docker cannot signal an individual exec, so cancelling a run stops the
whole container and starts it again. Any other command running in the
same container at that moment dies too.
"""

from __future__ import annotations

import hashlib
import io
import logging
import os
import posixpath
import shlex
import tarfile
import tempfile
import threading
import time
from dataclasses import dataclass, field
from typing import IO, Protocol

from yb.adapters.biome.base import BiomeCloser, Invocation, abs_path, standard_env
from yb.adapters.docker.client import DockerClient
from yb.core.context import Context
from yb.core.errors import BiomeError, ExitError
from yb.core.models import (
    ARM64,
    DEFAULT_CONTAINER_IMAGE,
    PATH_VAR,
    X86,
    X86_64,
    ContainerDefinition,
    Descriptor,
    Dirs,
)

logger = logging.getLogger(__name__)

# ── Init process ────────────────────────────────────────────────

TINI_URL = "https://github.com/krallin/tini/releases/download/v0.19.0/tini-amd64"
TINI_SIZE = 24064
TINI_SHA256 = "93dcc18adc78c65a028a84799ecf8ad40c936fdfc5f2a57b1acda5a8117fa82c"
TINI_PATH = "/tini"

# ── Layout inside the container ─────────────────────────────────

CONTAINER_HOME = "/home/yourbase"
CONTAINER_WORKDIR = "/workspace"
CONTAINER_TOOLS = CONTAINER_HOME + "/.cache/yb/tools"
DEFAULT_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

# Seconds docker waits for the container to exit before killing it.
STOP_TIMEOUT = 10

_ARCH_MAP = {
    "x86_64": X86_64,
    "amd64": X86_64,
    "x86": X86,
    "i386": X86,
    "i686": X86,
    "aarch64": ARM64,
    "arm64": ARM64,
}


class Downloader(Protocol):
    def download(self, ctx: Context, url: str) -> IO[bytes]: ...


@dataclass
class ContainerOptions:
    """What the build container should look like.

    ``package_dir`` and ``home_dir`` are host paths; they are created
    if missing and bind-mounted into the container.
    """

    package_dir: str
    home_dir: str
    definition: ContainerDefinition = field(default_factory=ContainerDefinition)
    name: str = ""
    network_id: str = ""
    pull_output: IO | None = None


def docker_descriptor(client: DockerClient) -> Descriptor:
    """Describe the containers the Docker daemon runs."""
    info = client.info()
    os_type = str(info.get("OSType", "")).lower()
    machine = str(info.get("Architecture", "")).lower()
    arch = _ARCH_MAP.get(machine)
    if not os_type or arch is None:
        raise BiomeError(f"docker info: unrecognized platform {os_type}/{machine}")
    return Descriptor(os=os_type, arch=arch)


class ContainerBiome(BiomeCloser):
    """A biome backed by a running Docker container. Create with :meth:`create`."""

    def __init__(
        self,
        client: DockerClient,
        container_id: str,
        descriptor: Descriptor,
        dirs: Dirs,
        path: str = DEFAULT_PATH,
        mount_points: tuple[str, ...] = (),
    ):
        self._client = client
        self._id = container_id
        self._descriptor = descriptor
        self._dirs = dirs
        self._path = path
        self._mount_points = tuple(sorted(mount_points, key=len, reverse=True))

    @property
    def container_id(self) -> str:
        return self._id

    @classmethod
    def create(
        cls,
        ctx: Context,
        client: DockerClient,
        downloader: Downloader,
        opts: ContainerOptions,
    ) -> ContainerBiome:
        """Pull the image, create the container and start it.

        Raises:
            BiomeError: If any step fails; a half-created container is removed.
        """
        defn = opts.definition
        image = defn.image or DEFAULT_CONTAINER_IMAGE
        workdir = defn.workdir or CONTAINER_WORKDIR
        try:
            descriptor = docker_descriptor(client)
            mounts = _mounts(opts, workdir)
            for source, _ in mounts:
                os.makedirs(source, exist_ok=True)
            if not client.image_exists(image):
                client.pull(ctx, image, opts.pull_output)
            path = _image_path(client, image)
            logger.info("Creating %s container...", image)
            container_id = client.create(
                image,
                name=opts.name,
                entrypoint=TINI_PATH,
                argv=["-g", "--", "tail", "-f", "/dev/null"],
                workdir=workdir,
                env=defn.environment,
                mounts=mounts,
                ports=defn.ports,
                labels={"works.yb.label": defn.label} if defn.label else None,
                privileged=defn.privileged,
            )
        except (BiomeError, OSError, ValueError) as err:
            ctx.raise_if_cancelled()
            raise BiomeError(f"create build container: {err}") from err

        try:
            if opts.network_id:
                client.network_connect(opts.network_id, container_id)
            _upload_tini(ctx, client, downloader, container_id)
            client.start(container_id)
        except BaseException as err:
            try:
                client.remove(container_id, force=True)
            except BiomeError as rm_err:
                logger.warning("Cleaning up container %s: %s", container_id, rm_err)
            if isinstance(err, BiomeError):
                raise BiomeError(f"create build container: {err}") from err
            raise

        dirs = Dirs(home=CONTAINER_HOME, package=workdir, tools=CONTAINER_TOOLS)
        return cls(
            client,
            container_id,
            descriptor,
            dirs,
            path=path,
            mount_points=tuple(target for _, target in mounts),
        )

    def describe(self) -> Descriptor:
        return self._descriptor

    def dirs(self) -> Dirs:
        return self._dirs

    def close(self) -> None:
        """Force-remove the container. A second call fails."""
        logger.debug("Removing container %s", self._id)
        self._client.remove(self._id, force=True)

    # ── Run ─────────────────────────────────────────────────────

    def environ(self, invoke: Invocation) -> list[str]:
        """``KEY=value`` entries for an exec of ``invoke``."""
        env = {"HOME": self._dirs.home}
        if "NO_COLOR" in os.environ:
            env["NO_COLOR"] = os.environ["NO_COLOR"]
        env.update(standard_env(self._descriptor))
        env.update(invoke.env.to_dict(default_path=self._path, sep=":"))
        return [f"{key}={value}" for key, value in env.items()]

    def run(self, ctx: Context, invoke: Invocation) -> None:
        if not invoke.argv:
            raise ValueError(f"run in container {self._id}: argv empty")
        ctx.raise_if_cancelled()
        logger.debug("Run (Docker): %s", shlex.join(invoke.argv))

        wake = threading.Event()
        started = threading.Event()
        finished = threading.Event()
        unregister = ctx.on_cancel(wake.set)
        watcher = threading.Thread(
            target=self._interrupt_on_cancel,
            args=(ctx, wake, started, finished),
            daemon=True,
        )
        watcher.start()
        try:
            code = self._client.exec(
                self._id,
                ["env", "--", *invoke.argv],
                env=self.environ(invoke),
                workdir=abs_path(self, invoke.dir),
                stdin=invoke.stdin,
                stdout=invoke.stdout,
                stderr=invoke.stderr,
                on_start=started.set,
            )
        finally:
            finished.set()
            started.set()
            wake.set()
            unregister()
            watcher.join()

        if code == 0:
            return
        ctx.raise_if_cancelled()
        raise ExitError(f"run in container {self._id}: exit code {code}", code)

    def _interrupt_on_cancel(
        self,
        ctx: Context,
        wake: threading.Event,
        started: threading.Event,
        finished: threading.Event,
    ) -> None:
        wake.wait()
        if finished.is_set() or not ctx.cancelled:
            return
        # Only stop once the exec process is running.
        started.wait()
        if finished.is_set():
            return
        logger.info("Interrupted. Stopping container %s...", self._id)
        try:
            self._client.stop(self._id, timeout=STOP_TIMEOUT)
        except BiomeError as err:
            logger.warning("Could not stop container %s: %s", self._id, err)
            return
        try:
            self._client.start(self._id)
        except BiomeError as err:
            logger.warning("Could not restart container %s after interrupt: %s", self._id, err)

    # ── Filesystem ──────────────────────────────────────────────

    def write_file(self, ctx: Context, path: str, src: IO[bytes]) -> None:
        path = abs_path(self, path)
        size = _remaining_size(src)
        spill: IO[bytes] | None = None
        try:
            if size is None:
                spill = tempfile.TemporaryFile(prefix="yb_container_file")
                size = _copy(src, spill)
                spill.seek(0)
                src = spill
            info = tarfile.TarInfo(posixpath.basename(path))
            info.size = size
            info.mode = 0o644
            info.mtime = int(time.time())
            self._copy_tar(ctx, posixpath.dirname(path), [(info, src)])
        except (BiomeError, OSError) as err:
            ctx.raise_if_cancelled()
            raise BiomeError(f"write file {path}: {err}") from err
        finally:
            if spill is not None:
                spill.close()

    def mkdir_all(self, ctx: Context, path: str) -> None:
        path = abs_path(self, path)
        root = self._anchor(path)
        rel = posixpath.relpath(path, root)
        if rel == ".":
            return
        entries = []
        parts = rel.split("/")
        for i in range(len(parts)):
            info = tarfile.TarInfo("/".join(parts[: i + 1]))
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            info.mtime = int(time.time())
            entries.append((info, None))
        try:
            self._copy_tar(ctx, root, entries)
        except BiomeError as err:
            ctx.raise_if_cancelled()
            raise BiomeError(f"mkdir -p {path}: {err}") from err

    def _anchor(self, path: str) -> str:
        """The deepest mount point containing ``path``, or ``/``.

        Directories above a mount point are never rewritten, which
        keeps the ownership of bind-mounted host directories intact.
        """
        for mount in self._mount_points:
            if path == mount or path.startswith(mount.rstrip("/") + "/"):
                return mount
        return "/"

    def _copy_tar(self, ctx: Context, dest_dir: str, entries: list[tuple[tarfile.TarInfo, IO | None]]) -> None:
        def write_tar(pipe: IO[bytes]) -> None:
            with tarfile.open(fileobj=pipe, mode="w|") as tar:
                for info, fileobj in entries:
                    tar.addfile(info, fileobj)

        self._client.copy_to(ctx, self._id, dest_dir, write_tar)


# ── Helpers ─────────────────────────────────────────────────────


def _mounts(opts: ContainerOptions, workdir: str) -> list[tuple[str, str]]:
    package_dir = os.path.abspath(opts.package_dir)
    mounts = [
        (package_dir, workdir),
        (os.path.abspath(opts.home_dir), CONTAINER_HOME),
    ]
    for source, target in opts.definition.mount_pairs():
        mounts.append((os.path.abspath(os.path.join(package_dir, source)), target))
    return mounts


def _image_path(client: DockerClient, image: str) -> str:
    """The PATH baked into ``image``, or the Debian default."""
    for entry in client.image_env(image):
        key, _, value = entry.partition("=")
        if key == PATH_VAR and value:
            return value
    return DEFAULT_PATH


def _upload_tini(ctx: Context, client: DockerClient, downloader: Downloader, container_id: str) -> None:
    with downloader.download(ctx, TINI_URL) as f:
        data = f.read(TINI_SIZE + 1)
    if len(data) != TINI_SIZE:
        raise BiomeError(f"upload tini: {TINI_URL}: size {len(data)} != {TINI_SIZE}")
    digest = hashlib.sha256(data).hexdigest()
    if digest != TINI_SHA256:
        raise BiomeError(f"upload tini: {TINI_URL}: sha256 {digest} != {TINI_SHA256}")

    info = tarfile.TarInfo(posixpath.basename(TINI_PATH))
    info.size = len(data)
    info.mode = 0o777
    info.mtime = int(time.time())

    def write_tar(pipe: IO[bytes]) -> None:
        with tarfile.open(fileobj=pipe, mode="w|") as tar:
            tar.addfile(info, io.BytesIO(data))

    client.copy_to(ctx, container_id, posixpath.dirname(TINI_PATH), write_tar)


def _remaining_size(src: IO) -> int | None:
    """Bytes left in ``src`` if it can seek, else None."""
    seekable = getattr(src, "seekable", None)
    if seekable is None or not seekable():
        return None
    try:
        pos = src.tell()
        end = src.seek(0, io.SEEK_END)
        src.seek(pos)
    except OSError as err:
        logger.debug("Seeking in reader for write_file failed: %s", err)
        return None
    return end - pos


def _copy(src: IO[bytes], dst: IO[bytes]) -> int:
    total = 0
    while True:
        chunk = src.read(64 * 1024)
        if not chunk:
            return total
        dst.write(chunk)
        total += len(chunk)
