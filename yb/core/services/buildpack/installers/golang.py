"""
Go toolchains and the Glide dependency manager.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.models import ARM64, LINUX, MACOS, X86, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, platform_value, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

_GO_OS = {LINUX: "linux", MACOS: "darwin"}
_GO_ARCH = {X86_64: "amd64", X86: "386", ARM64: "arm64"}

GO_URL = "https://dl.google.com/go/go{version}.{os}-{arch}.tar.gz"
GLIDE_URL = (
    "https://github.com/Masterminds/glide/releases/download/"
    "v{version}/glide-v{version}-{os}-{arch}.tar.gz"
)


def install_go(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install Go into ``Tools/go/go<version>``.

    GOPATH covers a shared ``Tools/go/gopath`` and the package itself.
    """
    bio = sys.biome
    go_root = tool_path(sys, "go")
    go_dir = bio.join_path(go_root, "go" + spec.version)
    gopath_dir = bio.join_path(go_root, "gopath")
    env = Environment(
        vars={
            "GOROOT": go_dir,
            "GOPATH": gopath_dir + ":" + bio.dirs().package,
        },
        prepend_path=[gopath_dir, bio.join_path(go_dir, "bin")],
    )

    if installed(ctx, sys, go_dir):
        logger.info("Go v%s located in %s", spec.version, go_dir)
        return env

    logger.info("Installing Go v%s in %s", spec.version, go_dir)
    desc = bio.describe()
    url = GO_URL.format(
        version=spec.version,
        os=platform_value("go", desc, _GO_OS, desc.os),
        arch=platform_value("go", desc, _GO_ARCH, desc.arch),
    )
    extract(ctx, sys, go_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env


def install_glide(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    glide_dir = tool_path(sys, "glide", "glide-" + spec.version)
    env = Environment(prepend_path=[glide_dir])

    if installed(ctx, sys, glide_dir):
        logger.info("Glide v%s located in %s", spec.version, glide_dir)
        return env

    logger.info("Installing Glide v%s in %s", spec.version, glide_dir)
    desc = sys.biome.describe()
    os_name = platform_value("glide", desc, _GO_OS, desc.os)
    arch = platform_value("glide", desc, {X86_64: "amd64", X86: "386"}, desc.arch)
    url = GLIDE_URL.format(version=spec.version, os=os_name, arch=arch)
    extract(ctx, sys, glide_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env
