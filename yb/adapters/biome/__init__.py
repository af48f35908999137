"""
Biomes — where build commands run.

    from yb.adapters.biome import LocalBiome, Invocation, EnvBiome
"""

from yb.adapters.biome.base import (
    Biome,
    BiomeCloser,
    DirMaker,
    FileWriter,
    Invocation,
    SymlinkEvaluator,
    abs_path,
    clean_path,
    eval_symlinks,
    exists,
    mkdir_all,
    standard_env,
    write_file,
)
from yb.adapters.biome.container import (
    ContainerBiome,
    ContainerOptions,
    docker_descriptor,
)
from yb.adapters.biome.decorators import EnvBiome, ExecPrefix, nop_closer, with_close
from yb.adapters.biome.fake import FakeBiome
from yb.adapters.biome.local import LocalBiome, local_descriptor, look_path

__all__ = [
    # base.py
    "Biome",
    "BiomeCloser",
    "DirMaker",
    "FileWriter",
    "Invocation",
    "SymlinkEvaluator",
    "abs_path",
    "clean_path",
    "eval_symlinks",
    "exists",
    "mkdir_all",
    "standard_env",
    "write_file",
    # container.py
    "ContainerBiome",
    "ContainerOptions",
    "docker_descriptor",
    # decorators.py
    "EnvBiome",
    "ExecPrefix",
    "nop_closer",
    "with_close",
    # fake.py
    "FakeBiome",
    # local.py
    "LocalBiome",
    "local_descriptor",
    "look_path",
]
