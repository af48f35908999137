"""
R, compiled from source.

The source tarball unpacks into ``src`` inside the install directory
and ``make install`` fills in the rest. Any failure removes the whole
install directory so a half-built R is never picked up later.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.errors import Cancelled, YBError
from yb.core.models import BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract, remove_all
from yb.core.services.buildpack.installers.base import installed, major_version, run, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

R_URL = "https://cloud.r-project.org/src/base/R-{major}/R-{version}.tar.gz"


def install_r(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    bio = sys.biome
    major = major_version(spec.version)
    r_dir = tool_path(sys, "R", "R-" + spec.version)
    env = Environment(prepend_path=[bio.join_path(r_dir, "bin")])

    if installed(ctx, sys, r_dir):
        logger.info("R v%s located in %s", spec.version, r_dir)
        return env

    src_dir = bio.join_path(r_dir, "src")
    logger.info("Downloading R v%s to %s...", spec.version, src_dir)
    try:
        extract(ctx, sys, src_dir, R_URL.format(major=major, version=spec.version), StripMode.STRIP_TOP_DIRECTORY)

        logger.info("Compiling R v%s in %s...", spec.version, src_dir)
        for argv in (
            [bio.join_path(src_dir, "configure"), "--with-x=no", "--prefix=" + r_dir],
            ["make", "--jobs=2"],
            ["make", "install"],
        ):
            try:
                run(ctx, sys, argv, cwd=src_dir)
            except Cancelled:
                raise
            except YBError as err:
                raise YBError(f"compiling R: {argv[0]}: {err}") from err
    except BaseException:
        remove_all(ctx, sys, r_dir)
        raise
    return env
