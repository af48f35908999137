"""
Buildpacks — toolchains installed into a biome on demand.

    from yb.core.services.buildpack import Sys, install

    env = install(ctx, Sys(biome=bio, downloader=downloader), BuildpackSpec.parse("go:1.15.2"))
"""

from yb.core.services.buildpack.extract import StripMode, extract, remove_all
from yb.core.services.buildpack.registry import PACKS, install, names
from yb.core.services.buildpack.system import Sys

__all__ = [
    "PACKS",
    "StripMode",
    "Sys",
    "extract",
    "install",
    "names",
    "remove_all",
]
