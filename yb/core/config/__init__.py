"""
Configuration — the package manifest, data directories and settings.
"""

from yb.core.config.loader import (
    PACKAGE_CONFIG_FILE,
    ConfigError,
    build_order,
    find_package_file,
    load_package,
)
from yb.core.config.settings import DataDirs, env_flag

__all__ = [
    "PACKAGE_CONFIG_FILE",
    "ConfigError",
    "DataDirs",
    "build_order",
    "env_flag",
    "find_package_file",
    "load_package",
]
