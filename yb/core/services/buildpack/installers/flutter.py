"""
Flutter and the standalone Dart SDK.
"""

from __future__ import annotations

import logging
import re

from yb.core.context import Context
from yb.core.errors import UnsupportedPlatformError
from yb.core.models import LINUX, MACOS, X86_64, BuildpackSpec, Descriptor, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, platform_value, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

FLUTTER_URL = (
    "https://storage.googleapis.com/flutter_infra/releases/"
    "{channel}/{os}/flutter_{os}_{version}-{channel}.{ext}"
)
DART_URL = (
    "https://storage.googleapis.com/dart-archive/channels/stable/release/"
    "{version}/sdk/dartsdk-{os}-{arch}-release.zip"
)

_FLUTTER_PLATFORMS = {
    LINUX: ("linux", "tar.xz"),
    MACOS: ("macos", "zip"),
}
_DART_OS = {LINUX: "linux", MACOS: "macos"}
_DART_ARCH = {X86_64: "x64"}

_SEMVER = re.compile(r"^v(\d+)\.(\d+)\.(\d+)(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$")

# Releases before this one are published with a "v" prefix.
_UNPREFIXED_SINCE = (1, 17, 0)


def _before_unprefixed(version: str) -> bool:
    match = _SEMVER.match(version)
    if match is None:
        return True
    core = tuple(int(match.group(i)) for i in (1, 2, 3))
    if core != _UNPREFIXED_SINCE:
        return core < _UNPREFIXED_SINCE
    return match.group(4) is not None


def flutter_download_url(version: str, desc: Descriptor) -> str:
    """The Flutter SDK archive for ``version``.

    A ``-beta`` or ``-dev`` suffix selects that release channel; any
    other version comes from ``stable``.
    """
    if desc.os not in _FLUTTER_PLATFORMS:
        raise UnsupportedPlatformError("flutter", desc.os, desc.arch)
    os_name, ext = _FLUTTER_PLATFORMS[desc.os]

    prefixed = version if version.startswith("v") else "v" + version
    if _before_unprefixed(prefixed) and "pre" not in prefixed and "dev" not in prefixed:
        version = prefixed
    else:
        version = prefixed[1:]

    channel = "stable"
    for suffix in ("beta", "dev"):
        if version.endswith("-" + suffix):
            version = version[: -len(suffix) - 1]
            channel = suffix
            break
    return FLUTTER_URL.format(channel=channel, os=os_name, version=version, ext=ext)


def install_flutter(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    flutter_dir = tool_path(sys, "flutter", "flutter-" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(flutter_dir, "bin")])

    if installed(ctx, sys, flutter_dir):
        logger.info("Flutter v%s located in %s", spec.version, flutter_dir)
        return env

    logger.info("Installing Flutter v%s in %s", spec.version, flutter_dir)
    url = flutter_download_url(spec.version, sys.biome.describe())
    extract(ctx, sys, flutter_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env


def install_dart(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    dart_dir = tool_path(sys, "dart", "dart-sdk-" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(dart_dir, "bin")])

    if installed(ctx, sys, dart_dir):
        logger.info("Dart v%s located in %s", spec.version, dart_dir)
        return env

    logger.info("Installing Dart v%s in %s", spec.version, dart_dir)
    desc = sys.biome.describe()
    url = DART_URL.format(
        version=spec.version,
        os=platform_value("dart", desc, _DART_OS, desc.os),
        arch=platform_value("dart", desc, _DART_ARCH, desc.arch),
    )
    extract(ctx, sys, dart_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env
