"""
yb — hermetic build orchestrator.

Installs buildpacks into a biome (the host or a disposable container)
and runs a project's build targets inside the resulting environment.
"""

__version__ = "0.1.0"
