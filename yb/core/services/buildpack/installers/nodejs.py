"""
Node.js and Yarn.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.models import ARM64, LINUX, MACOS, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, platform_value, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

NODE_URL = "https://nodejs.org/dist/v{version}/node-v{version}-{os}-{arch}.tar.gz"
YARN_URL = "https://github.com/yarnpkg/yarn/releases/download/v{version}/yarn-v{version}.tar.gz"

_NODE_OS = {LINUX: "linux", MACOS: "darwin"}
_NODE_ARCH = {X86_64: "x64", ARM64: "arm64"}


def install_node(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install Node into ``Tools/nodejs/node-<version>``.

    The package's ``node_modules/.bin`` goes on PATH ahead of Node
    itself so locally installed CLIs win.
    """
    bio = sys.biome
    package_dir = bio.dirs().package
    node_dir = tool_path(sys, "nodejs", "node-" + spec.version)
    env = Environment(
        vars={"NODE_PATH": package_dir},
        prepend_path=[
            bio.join_path(package_dir, "node_modules", ".bin"),
            bio.join_path(node_dir, "bin"),
        ],
    )

    if installed(ctx, sys, node_dir):
        logger.info("Node v%s located in %s", spec.version, node_dir)
        return env

    logger.info("Installing Node v%s in %s", spec.version, node_dir)
    desc = bio.describe()
    url = NODE_URL.format(
        version=spec.version,
        os=platform_value("node", desc, _NODE_OS, desc.os),
        arch=platform_value("node", desc, _NODE_ARCH, desc.arch),
    )
    extract(ctx, sys, node_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env


def install_yarn(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    yarn_dir = tool_path(sys, "yarn", "yarn-v" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(yarn_dir, "bin")])

    if installed(ctx, sys, yarn_dir):
        logger.info("Yarn v%s located in %s", spec.version, yarn_dir)
        return env

    logger.info("Installing Yarn v%s in %s", spec.version, yarn_dir)
    extract(ctx, sys, yarn_dir, YARN_URL.format(version=spec.version), StripMode.STRIP_TOP_DIRECTORY)
    return env
