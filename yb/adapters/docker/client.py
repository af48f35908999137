"""
Docker client — container, image and network operations.

Uses the docker CLI — never the Docker API directly. The CLI is pinned
to API version 1.39 through ``DOCKER_API_VERSION`` so behaviour does
not drift with the daemon.

Every method raises BiomeError when docker exits non-zero, with the
CLI's stderr as the message.
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
import subprocess
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import IO

from yb.adapters.biome.streams import feed, pump, start_daemon
from yb.core.context import Context
from yb.core.errors import BiomeError

logger = logging.getLogger(__name__)

DOCKER_API_VERSION = "1.39"


class DockerClient:
    """Thin wrapper over the ``docker`` executable."""

    def __init__(self, binary: str = "docker", api_version: str = DOCKER_API_VERSION):
        self.binary = binary
        self.api_version = api_version

    def is_available(self) -> bool:
        if shutil.which(self.binary) is None:
            return False
        result = subprocess.run(
            [self.binary, "version", "--format", "{{.Server.Version}}"],
            capture_output=True,
            text=True,
            env=self._env(),
        )
        return result.returncode == 0

    # ── Daemon & images ─────────────────────────────────────────

    def info(self) -> dict:
        return json.loads(self._docker(["info", "--format", "{{json .}}"]))

    def image_exists(self, image: str) -> bool:
        result = subprocess.run(
            [self.binary, "image", "inspect", "--format", "{{.Id}}", image],
            capture_output=True,
            text=True,
            env=self._env(),
        )
        return result.returncode == 0

    def image_env(self, image: str) -> list[str]:
        """The ``KEY=value`` environment baked into an image."""
        out = self._docker(["image", "inspect", "--format", "{{json .Config.Env}}", image])
        return json.loads(out) or []

    def pull(self, ctx: Context, image: str, output: IO | None = None) -> None:
        """Pull ``image``, streaming progress to ``output``."""
        logger.info("Pulling %s", image)
        code, stderr = self._stream(ctx, ["pull", image], stdout=output, kill_on_cancel=True)
        ctx.raise_if_cancelled()
        if code != 0:
            raise BiomeError(f"docker pull {image}: {stderr or f'exit code {code}'}")

    # ── Containers ──────────────────────────────────────────────

    def create(
        self,
        image: str,
        *,
        name: str = "",
        argv: Sequence[str] = (),
        entrypoint: str = "",
        workdir: str = "",
        env: Mapping[str, str] | None = None,
        mounts: Sequence[tuple[str, str]] = (),
        ports: Sequence[str] = (),
        labels: Mapping[str, str] | None = None,
        network: str = "",
        privileged: bool = False,
    ) -> str:
        """Create (but do not start) a container. Returns its ID."""
        args = ["create"]
        if name:
            args += ["--name", name]
        if entrypoint:
            args += ["--entrypoint", entrypoint]
        if workdir:
            args += ["--workdir", workdir]
        for key, value in sorted((env or {}).items()):
            args += ["--env", f"{key}={value}"]
        for source, target in mounts:
            args += ["--mount", f"type=bind,source={source},target={target}"]
        for port in ports:
            args += ["--publish", port]
        for key, value in sorted((labels or {}).items()):
            args += ["--label", f"{key}={value}"]
        if network:
            args += ["--network", network]
        if privileged:
            args.append("--privileged")
        args.append(image)
        args.extend(argv)
        return self._docker(args)

    def start(self, container_id: str) -> None:
        self._docker(["start", container_id])

    def stop(self, container_id: str, timeout: int = 10) -> None:
        self._docker(["stop", "--time", str(timeout), container_id], timeout=timeout + 60)

    def remove(self, container_id: str, force: bool = True) -> None:
        args = ["rm"]
        if force:
            args.append("--force")
        self._docker([*args, container_id])

    def container_ip(self, container_id: str, network: str = "") -> str:
        """The container's IPv4 address, on ``network`` if given."""
        out = self._docker(["inspect", "--format", "{{json .NetworkSettings.Networks}}", container_id])
        networks: dict = json.loads(out) or {}
        if network:
            for net_name, settings in networks.items():
                if network in (net_name, settings.get("NetworkID", "")):
                    return settings.get("IPAddress", "")
            return ""
        for settings in networks.values():
            if settings.get("IPAddress"):
                return settings["IPAddress"]
        return ""

    # ── Networks ────────────────────────────────────────────────

    def network_create(self, name: str) -> str:
        return self._docker(["network", "create", "--driver", "bridge", name])

    def network_remove(self, network: str) -> None:
        self._docker(["network", "rm", network])

    def network_connect(self, network: str, container_id: str) -> None:
        self._docker(["network", "connect", network, container_id])

    # ── Data transfer & exec ────────────────────────────────────

    def copy_to(
        self,
        ctx: Context,
        container_id: str,
        dest_dir: str,
        write_tar: Callable[[IO[bytes]], None],
    ) -> None:
        """Extract a tar stream into ``dest_dir`` inside the container.

        ``write_tar`` is handed the stdin of ``docker cp -`` and must
        write a complete tar archive to it.
        """
        ctx.raise_if_cancelled()
        stderr = io.BytesIO()
        proc = subprocess.Popen(
            [self.binary, "cp", "-", f"{container_id}:{dest_dir}"],
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            env=self._env(),
        )
        reader = start_daemon(pump, proc.stderr, stderr)
        try:
            write_tar(proc.stdin)
        except BrokenPipeError:
            logger.debug("docker cp closed its input early")
        finally:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass
        code = proc.wait()
        reader.join()
        if code != 0:
            message = stderr.getvalue().decode("utf-8", errors="replace").strip()
            raise BiomeError(f"docker cp into {container_id}:{dest_dir}: {message or f'exit code {code}'}")

    def exec(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        env: Sequence[str] = (),
        workdir: str = "",
        stdin: IO | None = None,
        stdout: IO | None = None,
        stderr: IO | None = None,
        on_start: Callable[[], None] | None = None,
    ) -> int:
        """Run ``argv`` in a running container and return its exit code.

        ``on_start`` is called once the exec process is running. The
        docker CLI itself has no way to signal the exec'd process; to
        interrupt it, stop the container.
        """
        args = ["exec"]
        if stdin is not None:
            args.append("--interactive")
        if workdir:
            args += ["--workdir", workdir]
        for entry in env:
            args += ["--env", entry]
        args.append(container_id)
        args.extend(argv)
        logger.debug("docker %s", " ".join(args))
        try:
            proc = subprocess.Popen(
                [self.binary, *args],
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE if stdout is not None else subprocess.DEVNULL,
                stderr=subprocess.PIPE if stderr is not None else subprocess.DEVNULL,
                env=self._env(),
            )
        except OSError as err:
            raise BiomeError(f"docker exec in {container_id}: {err}") from err
        if on_start is not None:
            on_start()
        shared = threading.Lock() if stdout is not None and stdout is stderr else None
        threads = []
        if stdin is not None:
            threads.append(start_daemon(feed, stdin, proc.stdin))
        if stdout is not None:
            threads.append(start_daemon(pump, proc.stdout, stdout, shared))
        if stderr is not None:
            threads.append(start_daemon(pump, proc.stderr, stderr, shared))
        code = proc.wait()
        for thread in threads:
            thread.join()
        return code

    # ── Helpers ─────────────────────────────────────────────────

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["DOCKER_API_VERSION"] = self.api_version
        return env

    def _docker(self, args: list[str], timeout: int = 300) -> str:
        """Run a docker command and return stdout."""
        result = subprocess.run(
            [self.binary, *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            env=self._env(),
        )
        if result.returncode != 0:
            raise BiomeError(
                f"docker {args[0]}: {result.stderr.strip() or f'exit code {result.returncode}'}"
            )
        return result.stdout.strip()

    def _stream(
        self,
        ctx: Context,
        args: list[str],
        stdout: IO | None = None,
        kill_on_cancel: bool = False,
    ) -> tuple[int, str]:
        stderr = io.BytesIO()
        proc = subprocess.Popen(
            [self.binary, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if stdout is not None else subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            env=self._env(),
        )
        threads = [start_daemon(pump, proc.stderr, stderr)]
        if stdout is not None:
            threads.append(start_daemon(pump, proc.stdout, stdout))
        unregister = ctx.on_cancel(proc.kill) if kill_on_cancel else (lambda: None)
        try:
            code = proc.wait()
        finally:
            unregister()
        for thread in threads:
            thread.join()
        return code, stderr.getvalue().decode("utf-8", errors="replace").strip()
