"""
Ruby — a pre-built binary when one exists, otherwise rbenv + ruby-build.

Pre-built Rubies are published per OS release (Ubuntu codename or
macOS version). When the mirror has no build for this combination
the version is compiled with ``rbenv install``, which takes minutes.
"""

from __future__ import annotations

import io
import logging

from yb.adapters.biome import Invocation
from yb.core.context import Context
from yb.core.errors import BiomeError, YBError, is_not_found
from yb.core.models import LINUX, MACOS, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract, remove_all
from yb.core.services.buildpack.installers.base import installed, platform_value, run, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

RUBY_URL = (
    "https://yourbase-build-tools.s3-us-west-2.amazonaws.com/ruby/"
    "ruby-{version}-{os}-{arch}-{os_version}.tar.bz2"
)
RBENV_VERSION = "1.1.2"
RBENV_URL = "https://github.com/rbenv/rbenv/archive/v{version}.tar.gz"
RUBY_BUILD_VERSION = "20201005"
RUBY_BUILD_URL = "https://github.com/rbenv/ruby-build/archive/v{version}.tar.gz"

_RUBY_OS = {LINUX: "Linux", MACOS: "Darwin"}
_RUBY_ARCH = {X86_64: "x86_64"}


def install_ruby(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install Ruby into ``Tools/rbenv/versions/<version>``.

    Gems install into a ``Tools/rubygems`` directory shared by all
    Ruby versions.
    """
    bio = sys.biome
    rbenv_root = tool_path(sys, "rbenv")
    ruby_dir = bio.join_path(rbenv_root, "versions", spec.version)
    gem_home = tool_path(sys, "rubygems")
    env = Environment(
        vars={"GEM_HOME": gem_home},
        prepend_path=[
            bio.join_path(gem_home, "bin"),
            bio.join_path(ruby_dir, "bin"),
        ],
    )

    if installed(ctx, sys, ruby_dir):
        logger.info("Ruby v%s located in %s", spec.version, ruby_dir)
        return env

    logger.info("Installing Ruby v%s in %s", spec.version, ruby_dir)
    try:
        url = prebuilt_ruby_url(ctx, sys, spec.version)
        extract(ctx, sys, ruby_dir, url, StripMode.STRIP_TOP_DIRECTORY)
        return env
    except YBError as err:
        if not is_not_found(err):
            raise
        logger.info("No pre-built Ruby v%s for this platform; building from source", spec.version)

    _rbenv_install(ctx, sys, rbenv_root, ruby_dir, spec.version)
    return env


def prebuilt_ruby_url(ctx: Context, sys: Sys, version: str) -> str:
    desc = sys.biome.describe()
    return RUBY_URL.format(
        version=version,
        os=platform_value("ruby", desc, _RUBY_OS, desc.os),
        arch=platform_value("ruby", desc, _RUBY_ARCH, desc.arch),
        os_version=os_version(ctx, sys),
    )


def os_version(ctx: Context, sys: Sys) -> str:
    """The biome's OS release: the distro codename on Linux, ``major.minor`` on macOS."""
    out = io.BytesIO()
    if sys.biome.describe().os == MACOS:
        _capture(ctx, sys, ["sw_vers", "-productVersion"], out)
        return ".".join(out.getvalue().decode("utf-8").strip().split(".")[:2])

    _capture(ctx, sys, ["cat", "/etc/os-release"], out)
    return parse_os_release(out.getvalue().decode("utf-8")).get("VERSION_CODENAME", "")


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``/etc/os-release`` into a mapping, unquoting values."""
    fields = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        fields[key.strip()] = value
    return fields


def _capture(ctx: Context, sys: Sys, argv: list[str], out: io.BytesIO) -> None:
    try:
        sys.biome.run(ctx, Invocation(argv=argv, stdout=out, stderr=sys.stderr))
    except BiomeError as err:
        raise BiomeError(f"detect OS version: {err}") from err


def _rbenv_install(ctx: Context, sys: Sys, rbenv_root: str, ruby_dir: str, version: str) -> None:
    bio = sys.biome
    rbenv_dir = bio.join_path(rbenv_root, "rbenv-" + RBENV_VERSION)
    ruby_build_dir = bio.join_path(rbenv_root, "ruby-build-" + RUBY_BUILD_VERSION)
    if not installed(ctx, sys, rbenv_dir):
        logger.info("Installing rbenv v%s in %s", RBENV_VERSION, rbenv_dir)
        extract(ctx, sys, rbenv_dir, RBENV_URL.format(version=RBENV_VERSION), StripMode.STRIP_TOP_DIRECTORY)
    if not installed(ctx, sys, ruby_build_dir):
        logger.info("Installing ruby-build v%s in %s", RUBY_BUILD_VERSION, ruby_build_dir)
        extract(
            ctx,
            sys,
            ruby_build_dir,
            RUBY_BUILD_URL.format(version=RUBY_BUILD_VERSION),
            StripMode.STRIP_TOP_DIRECTORY,
        )

    rbenv_env = Environment(
        vars={"RBENV_ROOT": rbenv_root},
        prepend_path=[
            bio.join_path(rbenv_dir, "bin"),
            bio.join_path(ruby_build_dir, "bin"),
        ],
    )
    logger.info("Compiling Ruby v%s with rbenv...", version)
    try:
        run(ctx, sys, ["rbenv", "install", version], env=rbenv_env)
    except BaseException:
        remove_all(ctx, sys, ruby_dir)
        raise
