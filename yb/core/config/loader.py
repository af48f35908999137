"""
Configuration loader — reads .yourbase.yml into a Package.

This is the primary entry point for loading a project's build
configuration. It reads YAML, validates against the pydantic models,
and answers "which targets build, in what order".
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from yb.core.errors import YBError
from yb.core.models import Package, Target

logger = logging.getLogger(__name__)

# Default manifest filename
PACKAGE_CONFIG_FILE = ".yourbase.yml"


class ConfigError(YBError):
    """Raised when a package's configuration is invalid or missing."""


def find_package_file(start_dir: Path | None = None) -> Path | None:
    """Search for .yourbase.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to .yourbase.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(64):
        candidate = current / PACKAGE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_package(path: Path | None = None) -> Package:
    """Load and validate a package's build configuration.

    Args:
        path: Explicit path to .yourbase.yml. If None, searches upward.

    Returns:
        Validated Package with ``path`` set to the package directory.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_package_file()

    if path is None:
        raise ConfigError(f"No {PACKAGE_CONFIG_FILE} found in this directory or any parent.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading package config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        package = Package.model_validate({**data, "path": str(path.parent.resolve())})
    except (ValidationError, ValueError) as e:
        raise ConfigError(f"Invalid package configuration in {path}: {e}") from e

    names = [t.name for t in package.build_targets]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate build targets in {path}: {', '.join(duplicates)}")

    logger.info("Loaded package %s with %d build targets", package.path, len(package.build_targets))
    return package


def build_order(package: Package, target_name: str) -> list[Target]:
    """Return ``target_name`` and everything it builds after, dependencies first.

    Raises:
        ConfigError: On an unknown target or a ``build_after`` cycle.
    """
    order: list[Target] = []
    done: set[str] = set()
    visiting: list[str] = []

    def visit(name: str) -> None:
        if name in done:
            return
        if name in visiting:
            cycle = " -> ".join(visiting[visiting.index(name) :] + [name])
            raise ConfigError(f"build_after cycle: {cycle}")
        target = package.target(name)
        if target is None:
            if visiting:
                raise ConfigError(f"target {visiting[-1]!r} builds after unknown target {name!r}")
            raise ConfigError(f"no such build target {name!r}")
        visiting.append(name)
        for dep in target.build_after:
            visit(dep)
        visiting.pop()
        done.add(name)
        order.append(target)

    visit(target_name)
    return order
