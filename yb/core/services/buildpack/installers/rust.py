"""
Rust, from the standalone installer tarballs.

The tarball is unpacked into a staging directory and its
``install.sh`` copies the toolchain into the install directory.
Cargo's registry and git caches go in the biome's home.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.models import ARM64, LINUX, MACOS, X86, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract, remove_all
from yb.core.services.buildpack.installers.base import installed, platform_value, run, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

RUST_URL = "https://static.rust-lang.org/dist/rust-{version}-{triple}.tar.gz"

_TRIPLES = {
    LINUX: {
        X86_64: "x86_64-unknown-linux-gnu",
        X86: "i686-unknown-linux-gnu",
        ARM64: "aarch64-unknown-linux-gnu",
    },
    MACOS: {
        X86_64: "x86_64-apple-darwin",
        ARM64: "aarch64-apple-darwin",
    },
}


def install_rust(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    bio = sys.biome
    install_dir = tool_path(sys, "rust", "rust-" + spec.version)
    cargo_home = bio.join_path(bio.dirs().home, ".cargo")
    env = Environment(
        vars={"CARGO_HOME": cargo_home},
        prepend_path=[
            bio.join_path(cargo_home, "bin"),
            bio.join_path(install_dir, "bin"),
        ],
    )

    if installed(ctx, sys, install_dir):
        logger.info("Rust v%s located in %s", spec.version, install_dir)
        return env

    logger.info("Installing Rust v%s in %s", spec.version, install_dir)
    desc = bio.describe()
    triple = platform_value("rust", desc, _TRIPLES.get(desc.os, {}), desc.arch)
    staging_dir = install_dir + "-installer"
    extract(ctx, sys, staging_dir, RUST_URL.format(version=spec.version, triple=triple), StripMode.STRIP_TOP_DIRECTORY)
    try:
        run(
            ctx,
            sys,
            ["sh", "install.sh", "--prefix=" + install_dir, "--disable-ldconfig"],
            cwd=staging_dir,
        )
    except BaseException:
        remove_all(ctx, sys, install_dir)
        raise
    finally:
        remove_all(ctx, sys, staging_dir)
    return env
