"""
Target setup — turn a build target into a ready-to-use biome.

Setting up a target decides where it runs (host or container), starts
its service containers, installs its buildpacks and layers the
resulting environment over the biome. Closing the returned biome tears
all of that down again.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Mapping
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import IO

from yb.adapters.biome import (
    BiomeCloser,
    ContainerBiome,
    ContainerOptions,
    EnvBiome,
    LocalBiome,
    docker_descriptor,
    local_descriptor,
    nop_closer,
    with_close,
)
from yb.adapters.docker import DockerClient
from yb.core.config.settings import DataDirs, env_flag
from yb.core.context import Context
from yb.core.errors import BiomeError, BuildError, Cancelled, YBError
from yb.core.models import Environment, Package, Target
from yb.core.services.buildpack import Sys, install
from yb.core.services.build.resources import ServiceContainers, expand_templates, service_resolver
from yb.core.services.download import Downloader

logger = logging.getLogger(__name__)


@dataclass
class BuildOptions:
    """Process-wide inputs to target setup.

    Attributes:
        data_dirs: Where downloads, tools and build homes live.
        downloader: Shared download cache (default: one in ``data_dirs``).
        docker: Docker client (default: the ``docker`` executable).
        use_containers: False forces host builds, like ``YB_NO_CONTAINER``.
        stdout: Sink for build and installer output.
        stderr: Sink for build and installer errors.
        environ: Settings source (default: ``os.environ``).
    """

    data_dirs: DataDirs
    downloader: Downloader | None = None
    docker: DockerClient | None = None
    use_containers: bool = True
    stdout: IO | None = None
    stderr: IO | None = None
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    def get_downloader(self) -> Downloader:
        if self.downloader is None:
            self.downloader = Downloader.from_data_dirs(self.data_dirs)
        return self.downloader

    def get_docker(self) -> DockerClient:
        if self.docker is None:
            self.docker = DockerClient()
        return self.docker


def wants_container(opts: BuildOptions, target: Target) -> bool:
    """Report whether ``target`` builds inside its container."""
    if target.container is None or target.host_only:
        return False
    return opts.use_containers and not env_flag("YB_NO_CONTAINER", opts.environ)


def setup_target(ctx: Context, opts: BuildOptions, package: Package, target: Target) -> BiomeCloser:
    """Prepare the biome ``target``'s commands run in.

    Raises:
        BuildError: If Docker is needed but unavailable, or any setup
            step fails. Anything already created is cleaned up.
        Cancelled: If ``ctx`` was cancelled.
    """
    try:
        return _setup(ctx, opts, package, target)
    except (BuildError, Cancelled):
        raise
    except (YBError, ValueError, OSError) as err:
        raise BuildError(f"target {target.name}: setup: {err}") from err


def _setup(ctx: Context, opts: BuildOptions, package: Package, target: Target) -> BiomeCloser:
    use_container = wants_container(opts, target)
    containers = package.containers_for(target)
    downloader = opts.get_downloader()

    with ExitStack() as stack:
        client = None
        network_id = ""
        services = None
        if use_container or containers:
            client = opts.get_docker()
            if not client.is_available():
                raise BuildError(f"target {target.name}: Docker is required but not available")
            network_id = client.network_create(f"yb-{target.name}-{uuid.uuid4().hex[:8]}")
            stack.callback(_remove_network, client, network_id)
        if containers:
            services = ServiceContainers.start(ctx, client, containers, network_id, opts.stdout)
            stack.callback(services.close)

        if use_container:
            desc = docker_descriptor(client)
            home = opts.data_dirs.build_home(package.path, target.name, desc)
            bio = ContainerBiome.create(
                ctx,
                client,
                downloader,
                ContainerOptions(
                    package_dir=package.path,
                    home_dir=str(home),
                    definition=target.container,
                    network_id=network_id,
                    pull_output=opts.stdout,
                ),
            )
            stack.callback(bio.close)
        else:
            home = opts.data_dirs.build_home(package.path, target.name, local_descriptor())
            bio = LocalBiome(package.path, home_dir=str(home), tools_dir=str(opts.data_dirs.tools))

        sys = Sys(
            biome=bio,
            downloader=downloader,
            stdout=opts.stdout,
            stderr=opts.stderr,
            docker=client,
            network_id=network_id,
        )
        env = install_buildpacks(ctx, sys, package, target)

        resolve = service_resolver(services, opts.environ)
        target_vars = {key: expand_templates(value, resolve) for key, value in target.environment.items()}
        env = env.merge(Environment(vars=target_vars))
        logger.debug("Environment for %s:\n%s", target.name, env)

        return with_close(EnvBiome(nop_closer(bio), env), stack.pop_all().close)


def install_buildpacks(ctx: Context, sys: Sys, package: Package, target: Target) -> Environment:
    """Install the target's buildpacks in order and merge their environments."""
    env = Environment()
    for spec in package.buildpacks_for(target):
        env = env.merge(install(ctx, sys, spec))
    return env


def _remove_network(client: DockerClient, network_id: str) -> None:
    try:
        client.network_remove(network_id)
    except BiomeError as err:
        logger.error("Removing network %s: %s", network_id, err)
