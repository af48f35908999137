"""
Command execution — run a target's commands and whole builds.
"""

from __future__ import annotations

import logging
import shlex

from yb.adapters.biome import Biome, Invocation
from yb.core.config.loader import build_order
from yb.core.context import Context
from yb.core.errors import BuildError, Cancelled, YBError
from yb.core.models import Package, Target
from yb.core.services.build.setup import BuildOptions, setup_target

logger = logging.getLogger(__name__)


def execute_target(ctx: Context, bio: Biome, target: Target, stdout=None, stderr=None) -> None:
    """Run each of ``target``'s commands in order, stopping at the first failure.

    Commands run in the target's ``root``, relative to the package
    directory. ``cd DIR`` changes that directory for the commands that
    follow it; DIR must be relative.

    Raises:
        BuildError: If a command cannot be parsed or fails.
        Cancelled: If ``ctx`` was cancelled.
    """
    workdir = target.root
    for command in target.commands:
        try:
            argv = shlex.split(command)
        except ValueError as err:
            raise BuildError(f"{command}: {err}") from err
        if not argv:
            continue

        if argv[0] == "cd":
            if len(argv) != 2:
                raise BuildError(f"{command}: cd takes exactly one directory")
            if bio.is_abs_path(argv[1]):
                raise BuildError(f"{command}: cd to an absolute path is not allowed")
            workdir = bio.join_path(workdir, argv[1])
            continue

        logger.info("Running: %s", command)
        try:
            bio.run(ctx, Invocation(argv=argv, dir=workdir, stdout=stdout, stderr=stderr))
        except Cancelled:
            raise
        except (YBError, ValueError) as err:
            raise BuildError(f"{command}: {err}") from err


def run_build(ctx: Context, opts: BuildOptions, package: Package, target_name: str) -> list[str]:
    """Build ``target_name`` after the targets it depends on.

    Returns:
        Names of the targets built, in order.

    Raises:
        ConfigError: On an unknown target or a dependency cycle.
        BuildError: If a target's setup or commands fail.
        Cancelled: If ``ctx`` was cancelled.
    """
    built = []
    for target in build_order(package, target_name):
        logger.info("Building target %s...", target.name)
        with setup_target(ctx, opts, package, target) as bio:
            try:
                execute_target(ctx, bio, target, opts.stdout, opts.stderr)
            except BuildError as err:
                raise BuildError(f"target {target.name}: {err}") from err
        built.append(target.name)
    return built
