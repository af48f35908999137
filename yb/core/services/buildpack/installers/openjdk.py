"""
OpenJDK — AdoptOpenJDK builds, or Azul Zulu on Apple silicon.

Java versions are written ``major[.minor[.patch]][+build]``. Adopt's
download URLs need the build number, so well-known defaults fill it in
when the version leaves it out. Release layouts differ between Java 8,
9-13 and 14+.
"""

from __future__ import annotations

import logging
import re
import urllib.error
from dataclasses import dataclass

from yb.core.context import Context
from yb.core.errors import DownloadError
from yb.core.models import ARM64, LINUX, MACOS, X86_64, BuildpackSpec, Descriptor, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, platform_value, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

_ADOPT = "https://github.com/AdoptOpenJDK/openjdk{major}-binaries/releases/download"
_JDK8_URL = _ADOPT + "/jdk{major}u{minor}-b{build}/OpenJDK{major}U-jdk_{arch}_{os}_hotspot_{major}u{minor}b{build}.tar.gz"
_SHORT_URL = _ADOPT + "/jdk-{major}%2B{build}/OpenJDK{major}U-jdk_{arch}_{os}_hotspot_{major}_{build}.tar.gz"
_LONG_URL = (
    _ADOPT + "/jdk-{major}.{minor}.{patch}%2B{build}/"
    "OpenJDK{major}U-jdk_{arch}_{os}_hotspot_{major}.{minor}.{patch}_{build}.tar.gz"
)

AZUL_INDEX_URL = "https://cdn.azul.com/zulu/bin/"
_AZUL_ARCHIVE = re.compile(r"zulu([\d.]+)-ca-jdk([\d.]+)-macosx_aarch64\.tar\.gz")

# Build numbers used when a version names none.
_DEFAULT_BUILDS = {
    8: "08",
    9: "11",
    10: "13.1",
    11: "10",
    12: "10",
    13: "9",
    14: "36",
}

_JAVA_OS = {LINUX: "linux", MACOS: "mac"}
_JAVA_ARCH = {
    LINUX: {X86_64: "x64", ARM64: "aarch64"},
    MACOS: {X86_64: "x64"},
}


@dataclass(frozen=True)
class JavaVersion:
    major: int
    minor: int = 0
    patch: int = 0
    build: str = ""

    @classmethod
    def parse(cls, version: str) -> JavaVersion:
        """Parse ``major[.minor[.patch]][+build]``.

        Raises:
            ValueError: If a numeric part is not a number.
        """
        version, _, build = version.partition("+")
        parts = version.split(".")
        numbers = []
        for i, label in enumerate(("major", "minor", "patch")):
            if i >= len(parts):
                numbers.append(0)
                continue
            try:
                numbers.append(int(parts[i]))
            except ValueError:
                raise ValueError(f"parse jdk version {version!r}: {label}: {parts[i]!r} is not a number") from None
        major, minor, patch = numbers

        # Java 8 releases put the build number in the patch position.
        if major not in (11, 14) and not build and 0 < patch < 100:
            build = f"{patch:02d}"
        if not build:
            build = _DEFAULT_BUILDS.get(major, "")
        return cls(major, minor, patch, build)


def java_download_url(version: str, desc: Descriptor) -> str:
    """The AdoptOpenJDK tarball for ``version`` on ``desc``."""
    v = JavaVersion.parse(version)
    if v.major < 9:
        template = _JDK8_URL
    elif v.major < 14 and not (v.major == 9 and v.build == "181"):
        template = _LONG_URL
    else:
        template = _SHORT_URL
    return template.format(
        major=v.major,
        minor=v.minor,
        patch=v.patch,
        build=v.build,
        os=platform_value("java", desc, _JAVA_OS, desc.os),
        arch=platform_value("java", desc, _JAVA_ARCH.get(desc.os, {}), desc.arch),
    )


def azul_download_url(index_html: str, version: str) -> str:
    """Pick the newest Zulu macOS/arm64 JDK matching ``version`` from Azul's index.

    ``version`` matches a JDK version that equals it or extends it by
    more dotted parts, so ``15`` matches ``15.0.1``.

    Raises:
        DownloadError: If no archive matches.
    """
    wanted = version.partition("+")[0]
    best: tuple[tuple[int, ...], tuple[int, ...], str] | None = None
    for match in _AZUL_ARCHIVE.finditer(index_html):
        zulu, jdk = match.group(1), match.group(2)
        if jdk != wanted and not jdk.startswith(wanted + "."):
            continue
        key = (_numeric(jdk), _numeric(zulu), match.group(0))
        if best is None or key[:2] > best[:2]:
            best = key
    if best is None:
        raise DownloadError(AZUL_INDEX_URL, f"no Zulu JDK {version} for macOS arm64", status=404)
    return AZUL_INDEX_URL + best[2]


def _numeric(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split(".") if part)


def _fetch_azul_index(ctx: Context, sys: Sys) -> str:
    ctx.raise_if_cancelled()
    try:
        with sys.opener.open(AZUL_INDEX_URL, timeout=sys.downloader.timeout) as resp:
            return resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as err:
        raise DownloadError(AZUL_INDEX_URL, f"HTTP {err.code}", status=err.code) from err
    except urllib.error.URLError as err:
        raise DownloadError(AZUL_INDEX_URL, str(err.reason)) from err


def install_java(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install a JDK into ``Tools/java/openjdk<version>``.

    On Intel macOS the JDK bundle's home is ``Contents/Home``; the JVM
    there also resolves ``user.home`` from the password database, so it
    is pinned to the biome's home.
    """
    bio = sys.biome
    desc = bio.describe()
    install_dir = tool_path(sys, "java", "openjdk" + spec.version)
    java_home = install_dir
    env_vars = {}
    azul = desc.os == MACOS and desc.arch == ARM64
    if desc.os == MACOS and not azul:
        java_home = bio.join_path(install_dir, "Contents", "Home")
        env_vars["JAVA_TOOL_OPTIONS"] = "-Duser.home=" + bio.dirs().home
    env_vars["JAVA_HOME"] = java_home
    env = Environment(vars=env_vars, prepend_path=[bio.join_path(java_home, "bin")])

    if installed(ctx, sys, java_home):
        logger.info("OpenJDK v%s located in %s", spec.version, install_dir)
        return env

    logger.info("Installing OpenJDK v%s in %s", spec.version, install_dir)
    if azul:
        url = azul_download_url(_fetch_azul_index(ctx, sys), spec.version)
    else:
        url = java_download_url(spec.version, desc)
    extract(ctx, sys, install_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env
