"""
Protocol Buffers compiler.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.errors import UnsupportedPlatformError
from yb.core.models import ARM64, LINUX, MACOS, X86, X86_64, BuildpackSpec, Descriptor, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

PROTOC_URL = "https://github.com/google/protobuf/releases/download/v{version}/protoc-{version}-{variant}.zip"

_VARIANTS = {
    (LINUX, X86_64): "linux-x86_64",
    (LINUX, X86): "linux-x86_32",
    (LINUX, ARM64): "linux-aarch_64",
    (MACOS, X86_64): "osx-x86_64",
}


def protoc_download_url(version: str, desc: Descriptor) -> str:
    variant = _VARIANTS.get((desc.os, desc.arch))
    if variant is None:
        raise UnsupportedPlatformError("protoc", desc.os, desc.arch)
    return PROTOC_URL.format(version=version, variant=variant)


def install_protoc(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install protoc; its release zips have no top-level directory."""
    protoc_dir = tool_path(sys, "protoc", "protoc-" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(protoc_dir, "bin")])

    if installed(ctx, sys, protoc_dir):
        logger.info("protoc v%s located in %s", spec.version, protoc_dir)
        return env

    logger.info("Installing protoc v%s in %s", spec.version, protoc_dir)
    url = protoc_download_url(spec.version, sys.biome.describe())
    extract(ctx, sys, protoc_dir, url, StripMode.TARBOMB)
    return env
