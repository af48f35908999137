"""
Android SDK command-line tools and the Android NDK.
"""

from __future__ import annotations

import io
import logging

from yb.adapters.biome import mkdir_all, write_file
from yb.core.context import Context
from yb.core.errors import BiomeError
from yb.core.models import LATEST, LINUX, MACOS, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract, remove_all
from yb.core.services.buildpack.installers.base import installed, platform_value, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

LATEST_SDK_VERSION = "4333796"
SDK_URL = "https://dl.google.com/android/repository/sdk-tools-{os}-{version}.zip"
NDK_URL = "https://dl.google.com/android/repository/android-ndk-{version}-{os}-{arch}.zip"

# Hashes of the license texts sdkmanager would otherwise ask to accept.
SDK_LICENSES = {
    "android-googletv-license": "601085b94cd77f0b54ff86406957099ebe79c4d6",
    "android-sdk-license": "24333f8a63b6825ea9c5514f83c2829b004d1fee",
    "android-sdk-preview-license": "84831b9409646a918e30573bab4c9c91346d8abd",
    "google-gdk-license": "33b6a2b64607f11b759f320ef9dff4ae5c47d97a",
    "intel-android-extra-license": "d975f751698a77b662f1254ddbeed3901e976f5a",
    "mips-android-sysimage-license": "e9acab5b5fbb560a72cfaecce8946896ff6aab9d",
}

_ANDROID_OS = {LINUX: "linux", MACOS: "darwin"}


def install_android(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install the SDK tools into ``Tools/android/android-<version>/tools``.

    ``latest`` means the last standalone ``sdk-tools`` release.
    """
    bio = sys.biome
    version = LATEST_SDK_VERSION if spec.version == LATEST else spec.version
    sdk_root = tool_path(sys, "android", "android-" + version)
    tools_dir = bio.join_path(sdk_root, "tools")
    env = Environment(
        vars={
            "ANDROID_SDK_ROOT": sdk_root,
            "ANDROID_HOME": sdk_root,
        },
        prepend_path=[
            bio.join_path(tools_dir, "bin"),
            tools_dir,
        ],
    )

    if installed(ctx, sys, tools_dir):
        logger.info("Android SDK v%s located in %s", version, sdk_root)
        return env

    logger.info("Installing Android SDK v%s in %s", version, sdk_root)
    desc = bio.describe()
    url = SDK_URL.format(os=platform_value("android", desc, _ANDROID_OS, desc.os), version=version)
    extract(ctx, sys, tools_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    try:
        write_license_agreements(ctx, sys, sdk_root)
    except BaseException:
        remove_all(ctx, sys, tools_dir)
        raise
    return env


def write_license_agreements(ctx: Context, sys: Sys, sdk_root: str) -> None:
    bio = sys.biome
    licenses_dir = bio.join_path(sdk_root, "licenses")
    try:
        mkdir_all(ctx, bio, licenses_dir)
    except BiomeError as err:
        raise BiomeError(f"write agreement files: {err}") from err
    for filename, digest in SDK_LICENSES.items():
        try:
            write_file(ctx, bio, bio.join_path(licenses_dir, filename), io.BytesIO(digest.encode("ascii")))
        except BiomeError as err:
            raise BiomeError(f"write agreement files: {filename}: {err}") from err


def install_android_ndk(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    ndk_dir = tool_path(sys, "android-ndk", "android-ndk-" + spec.version)
    env = Environment(vars={"ANDROID_NDK_HOME": ndk_dir})

    if installed(ctx, sys, ndk_dir):
        logger.info("Android NDK v%s located in %s", spec.version, ndk_dir)
        return env

    logger.info("Installing Android NDK v%s in %s", spec.version, ndk_dir)
    desc = sys.biome.describe()
    url = NDK_URL.format(
        version=spec.version,
        os=platform_value("androidndk", desc, _ANDROID_OS, desc.os),
        arch=platform_value("androidndk", desc, {X86_64: "x86_64"}, desc.arch),
    )
    extract(ctx, sys, ndk_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env
