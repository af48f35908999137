"""
Builds — set up targets and run their commands.
"""

from yb.core.services.build.execute import execute_target, run_build
from yb.core.services.build.resources import ServiceContainers, expand_templates, ip_override_var, wait_for_port
from yb.core.services.build.setup import BuildOptions, install_buildpacks, setup_target, wants_container

__all__ = [
    "BuildOptions",
    "ServiceContainers",
    "execute_target",
    "expand_templates",
    "install_buildpacks",
    "ip_override_var",
    "run_build",
    "setup_target",
    "wait_for_port",
    "wants_container",
]
