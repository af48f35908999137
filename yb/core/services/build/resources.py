"""
Service containers — databases and other dependencies a target needs.

Each service runs from its own image on the build's Docker network.
Once started, its IP address can be substituted into the target's
environment with ``{{ .Containers.IP "name" }}``.
"""

from __future__ import annotations

import logging
import re
import shlex
import socket
import time
import uuid
from collections.abc import Callable, Mapping
from typing import IO

from yb.adapters.docker import DockerClient
from yb.core.config.loader import ConfigError
from yb.core.context import Context
from yb.core.errors import BiomeError
from yb.core.models import ContainerDefinition

logger = logging.getLogger(__name__)

_IP_TEMPLATE = re.compile(r'\{\{\s*\.Containers\.IP\s+"([^"]*)"\s*\}\}')
_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9]+")

# Seconds between connection attempts while waiting for a port.
PORT_POLL_INTERVAL = 0.5


def ip_override_var(name: str) -> str:
    """The environment variable that overrides a service's IP address."""
    return "YB_CONTAINER_" + _UNSAFE_NAME.sub("_", name).upper() + "_IP"


def expand_templates(value: str, resolve: Callable[[str], str]) -> str:
    """Replace ``{{ .Containers.IP "name" }}`` in ``value`` with ``resolve(name)``."""
    return _IP_TEMPLATE.sub(lambda m: resolve(m.group(1)), value)


class ServiceContainers:
    """Running service containers for one target. Close to remove them."""

    def __init__(self, client: DockerClient, network_id: str = ""):
        self._client = client
        self._network_id = network_id
        self._ids: dict[str, str] = {}
        self._ips: dict[str, str] = {}

    @classmethod
    def start(
        cls,
        ctx: Context,
        client: DockerClient,
        definitions: Mapping[str, ContainerDefinition],
        network_id: str = "",
        pull_output: IO | None = None,
    ) -> ServiceContainers:
        """Start every service in ``definitions``.

        Raises:
            BiomeError: If a container fails to start or its port
                never opens. Services already started are removed.
        """
        services = cls(client, network_id)
        try:
            for name, defn in definitions.items():
                services._start_one(ctx, name, defn, pull_output)
        except BaseException:
            services.close()
            raise
        return services

    def _start_one(self, ctx: Context, name: str, defn: ContainerDefinition, pull_output: IO | None) -> None:
        logger.info("Starting service container %s (%s)...", name, defn.image)
        if not self._client.image_exists(defn.image):
            self._client.pull(ctx, defn.image, pull_output)
        argv = list(defn.argv) or shlex.split(defn.command)
        container_id = self._client.create(
            defn.image,
            name=f"yb-{_UNSAFE_NAME.sub('-', name)}-{uuid.uuid4().hex[:8]}",
            argv=argv,
            workdir=defn.workdir,
            env=defn.environment,
            mounts=defn.mount_pairs(),
            ports=defn.ports,
            labels={"works.yb.label": defn.label} if defn.label else None,
            network=self._network_id,
            privileged=defn.privileged,
        )
        self._ids[name] = container_id
        self._client.start(container_id)
        ip = self._client.container_ip(container_id, self._network_id)
        if not ip:
            raise BiomeError(f"service container {name}: no IP address")
        self._ips[name] = ip
        if defn.port_check is not None:
            wait_for_port(ctx, ip, defn.port_check.port, defn.port_check.timeout)

    def names(self) -> list[str]:
        return list(self._ids)

    def ip(self, name: str) -> str:
        """The IP address of service ``name``.

        Raises:
            ConfigError: If no such service is running.
        """
        try:
            return self._ips[name]
        except KeyError:
            raise ConfigError(f"no such service container {name!r}") from None

    def close(self) -> None:
        """Remove every service container. Errors are logged."""
        while self._ids:
            name, container_id = self._ids.popitem()
            try:
                self._client.remove(container_id, force=True)
            except BiomeError as err:
                logger.error("Removing service container %s: %s", name, err)
        self._ips.clear()


def wait_for_port(ctx: Context, host: str, port: int, timeout: float) -> None:
    """Block until ``host:port`` accepts a TCP connection.

    Raises:
        BiomeError: If the port is still closed after ``timeout`` seconds.
        Cancelled: If ``ctx`` is cancelled first.
    """
    logger.info("Waiting for %s:%d to accept connections...", host, port)
    deadline = time.monotonic() + timeout
    while True:
        ctx.raise_if_cancelled()
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return
        except OSError as err:
            if time.monotonic() >= deadline:
                raise BiomeError(f"wait for {host}:{port}: {err}") from err
        ctx.wait(PORT_POLL_INTERVAL)


def service_resolver(
    services: ServiceContainers | None,
    environ: Mapping[str, str],
) -> Callable[[str], str]:
    """Resolve template names to IPs, honouring ``YB_CONTAINER_<NAME>_IP``."""

    def resolve(name: str) -> str:
        override = environ.get(ip_override_var(name), "")
        if override:
            return override
        if services is None:
            raise ConfigError(f"no such service container {name!r}")
        return services.ip(name)

    return resolve
