"""
Domain models — value types shared by biomes, buildpacks and builds.

    from yb.core.models import Descriptor, Dirs, Environment, BuildpackSpec, Package
"""

from yb.core.models.buildpack import LATEST, BuildpackSpec, merge_specs
from yb.core.models.descriptor import (
    ARM64,
    LINUX,
    MACOS,
    WINDOWS,
    X86,
    X86_64,
    Descriptor,
    Dirs,
)
from yb.core.models.environment import (
    PATH_VAR,
    Environment,
    parse_env_lines,
)
from yb.core.models.package import (
    DEFAULT_CONTAINER_IMAGE,
    BuildDependencies,
    ContainerDefinition,
    Package,
    PortWaitCheck,
    Target,
)

__all__ = [
    "ARM64",
    "DEFAULT_CONTAINER_IMAGE",
    "LATEST",
    "LINUX",
    "MACOS",
    "PATH_VAR",
    "WINDOWS",
    "X86",
    "X86_64",
    # buildpack.py
    "BuildpackSpec",
    "merge_specs",
    # descriptor.py
    "Descriptor",
    "Dirs",
    # environment.py
    "Environment",
    "parse_env_lines",
    # package.py
    "BuildDependencies",
    "ContainerDefinition",
    "Package",
    "PortWaitCheck",
    "Target",
]
