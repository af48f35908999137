"""
Heroku CLI. Only ``latest`` exists; an existing install updates itself.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.models import LATEST, LINUX, MACOS, X86, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, platform_value, run, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

HEROKU_URL = "https://cli-assets.heroku.com/heroku-{os}-{arch}.tar.gz"

_HEROKU_OS = {LINUX: "linux", MACOS: "darwin"}
_HEROKU_ARCH = {X86_64: "x64", X86: "x86"}


def install_heroku(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    if spec.version != LATEST:
        raise ValueError(f"heroku: {LATEST!r} is the only allowed version, got {spec.version!r}")
    heroku_dir = tool_path(sys, "heroku")
    env = Environment(prepend_path=[sys.biome.join_path(heroku_dir, "bin")])

    if installed(ctx, sys, heroku_dir):
        logger.info("Heroku located in %s; running update...", heroku_dir)
        run(ctx, sys, ["heroku", "update"], env=env)
        return env

    logger.info("Installing Heroku in %s", heroku_dir)
    desc = sys.biome.describe()
    url = HEROKU_URL.format(
        os=platform_value("heroku", desc, _HEROKU_OS, desc.os),
        arch=platform_value("heroku", desc, _HEROKU_ARCH, desc.arch),
    )
    extract(ctx, sys, heroku_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env
