"""
Conda distributions (Miniconda 2/3, Miniforge) and conda-built Python.

The distributions ship as self-extracting shell scripts rather than
archives. The script is staged next to its install directory, run in
batch mode, and removed. All variants live under ``Tools/miniconda``;
the registry serialises their installs.
"""

from __future__ import annotations

import logging

from yb.adapters.biome import mkdir_all, write_file
from yb.core.context import Context
from yb.core.errors import Cancelled, YBError
from yb.core.models import ARM64, LATEST, LINUX, MACOS, X86, X86_64, BuildpackSpec, Descriptor, Environment
from yb.core.services.buildpack.extract import remove_all
from yb.core.services.buildpack.installers.base import installed, platform_value, run, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

MINICONDA_URL = "https://repo.continuum.io/miniconda/Miniconda{py_major}-{version}-{os}-{arch}.sh"
MINICONDA_PY_URL = (
    "https://repo.continuum.io/miniconda/Miniconda{py_major}-py{py_major}{py_minor}_{version}-{os}-{arch}.sh"
)
MINIFORGE_URL = "https://github.com/conda-forge/miniforge/releases/download/{version}/Miniforge3-{version}-{os}-{arch}.sh"
MINIFORGE_LATEST_URL = "https://github.com/conda-forge/miniforge/releases/latest/download/Miniforge3-{os}-{arch}.sh"

# Python minor version of the Miniconda builds we download.
PY_MINOR = 7

# Miniconda release used to host conda-built Python environments.
PYTHON_CONDA_VERSION = "4.8.3"

_CONDA_OS = {MACOS: "MacOSX", LINUX: "Linux"}
_CONDA_ARCH = {X86_64: "x86_64", X86: "x86"}
_MINIFORGE_ARCH = {
    LINUX: {X86_64: "x86_64", ARM64: "aarch64"},
    MACOS: {X86_64: "x86_64", ARM64: "arm64"},
}


def anaconda_download_url(version: str, py_major: int, desc: Descriptor) -> str:
    """The Miniconda installer script for ``version``.

    Releases from 4.8 on carry the bundled Python version in their name.

    Raises:
        ValueError: If ``version`` is not ``major.minor[.patch]``.
    """
    parts = version.split(".")
    try:
        major, minor = int(parts[0]), int(parts[1])
    except (IndexError, ValueError):
        raise ValueError(f"compute anaconda {version} download url: invalid version") from None
    os_name = platform_value("anaconda", desc, _CONDA_OS, desc.os)
    arch = platform_value("anaconda", desc, _CONDA_ARCH, desc.arch)
    template = MINICONDA_PY_URL if (major, minor) >= (4, 8) else MINICONDA_URL
    return template.format(py_major=py_major, py_minor=PY_MINOR, version=version, os=os_name, arch=arch)


def miniforge_download_url(version: str, desc: Descriptor) -> str:
    os_name = platform_value("miniforge", desc, _CONDA_OS, desc.os)
    arch = platform_value("miniforge", desc, _MINIFORGE_ARCH.get(desc.os, {}), desc.arch)
    if version == LATEST:
        return MINIFORGE_LATEST_URL.format(os=os_name, arch=arch)
    return MINIFORGE_URL.format(version=version, os=os_name, arch=arch)


def install_anaconda2(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    return install_miniconda(ctx, sys, 2, spec.version)


def install_anaconda3(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    return install_miniconda(ctx, sys, 3, spec.version)


def install_miniconda(ctx: Context, sys: Sys, py_major: int, version: str) -> Environment:
    conda_dir = tool_path(sys, "miniconda", f"miniconda-py{py_major}-{version}")
    env = Environment(prepend_path=[sys.biome.join_path(conda_dir, "bin")])
    if installed(ctx, sys, conda_dir):
        logger.info("Miniconda%d v%s located in %s", py_major, version, conda_dir)
        return env

    logger.info("Installing Miniconda%d v%s in %s", py_major, version, conda_dir)
    url = anaconda_download_url(version, py_major, sys.biome.describe())
    _install_conda(ctx, sys, conda_dir, url, env)
    return env


def install_miniforge(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    conda_dir = tool_path(sys, "miniconda", "miniforge3-" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(conda_dir, "bin")])
    if installed(ctx, sys, conda_dir):
        logger.info("Miniforge v%s located in %s", spec.version, conda_dir)
        return env

    logger.info("Installing Miniforge v%s in %s", spec.version, conda_dir)
    url = miniforge_download_url(spec.version, sys.biome.describe())
    _install_conda(ctx, sys, conda_dir, url, env)
    return env


def _install_conda(ctx: Context, sys: Sys, conda_dir: str, url: str, env: Environment) -> None:
    """Run a conda installer script into ``conda_dir`` and configure it.

    ``conda_dir`` is removed again if any step fails.
    """
    bio = sys.biome
    script_path = conda_dir + ".sh"
    with sys.downloader.download(ctx, url) as script:
        mkdir_all(ctx, bio, tool_path(sys, "miniconda"))
        try:
            write_file(ctx, bio, script_path, script)
        except BaseException:
            remove_all(ctx, sys, script_path)
            raise
    try:
        _step(ctx, sys, "conda installer", ["bash", script_path, "-b", "-p", conda_dir])
        for argv in (
            ["conda", "config", "--set", "always_yes", "yes"],
            ["conda", "config", "--set", "changeps1", "no"],
            ["conda", "update", "--quiet", "conda"],
        ):
            _step(ctx, sys, "configure conda", argv, env)
    except BaseException:
        remove_all(ctx, sys, conda_dir)
        raise
    finally:
        remove_all(ctx, sys, script_path)


def install_python(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Create a conda environment with the requested Python.

    The environment's ``bin`` comes before Miniconda's own so its
    ``python`` shadows the one conda runs on.
    """
    bio = sys.biome
    env_dir = tool_path(sys, "python", "python-" + spec.version)
    conda_env = install_miniconda(ctx, sys, 3, PYTHON_CONDA_VERSION)
    env = conda_env.merge(Environment(prepend_path=[bio.join_path(env_dir, "bin")]))

    if installed(ctx, sys, env_dir):
        logger.info("Python v%s located in %s", spec.version, env_dir)
        return env

    logger.info("Installing Python v%s in %s", spec.version, env_dir)
    try:
        run(ctx, sys, ["conda", "install", "setuptools"], env=conda_env)
        run(ctx, sys, ["conda", "create", "--prefix", env_dir, "python=" + spec.version], env=conda_env)
    except BaseException:
        remove_all(ctx, sys, env_dir)
        raise
    return env


def _step(ctx: Context, sys: Sys, what: str, argv: list[str], env: Environment | None = None) -> None:
    try:
        run(ctx, sys, argv, env=env)
    except Cancelled:
        raise
    except YBError as err:
        raise YBError(f"{what}: {err}") from err
