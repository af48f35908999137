"""
Data directories and environment-driven settings.

yb keeps everything it caches under one root:

    $YB_CACHE_DIR  (default: $XDG_CACHE_HOME/yb or ~/.cache/yb)
    ├── downloads/     cached HTTP downloads, one file per URL
    ├── tools/         buildpacks installed for host builds
    └── workspaces/    per-package, per-target build homes
                       ($YB_WORKSPACES_ROOT overrides this one)
"""

from __future__ import annotations

import hashlib
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from yb.core.models import Descriptor


class DataDirs(BaseModel):
    """Locations of yb's cached data. Directories are created on first use."""

    model_config = ConfigDict(frozen=True)

    cache: Path
    workspaces: Path

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DataDirs:
        env = os.environ if environ is None else environ
        cache = env.get("YB_CACHE_DIR", "")
        if not cache:
            root = env.get("XDG_CACHE_HOME", "") or str(Path.home() / ".cache")
            cache = os.path.join(root, "yb")
        workspaces = env.get("YB_WORKSPACES_ROOT", "") or os.path.join(cache, "workspaces")
        return cls(cache=Path(cache), workspaces=Path(workspaces))

    @classmethod
    def under(cls, root: Path) -> DataDirs:
        """Data dirs enclosed in ``root``, for isolated runs and tests."""
        return cls(cache=root, workspaces=root / "workspaces")

    @property
    def downloads(self) -> Path:
        return self.cache / "downloads"

    @property
    def tools(self) -> Path:
        return self.cache / "tools"

    def build_home(self, package_dir: str | Path, target: str, desc: Descriptor) -> Path:
        """Find or create the home directory for a target's builds."""
        digest = hashlib.sha256(str(package_dir).encode("utf-8")).hexdigest()[:12]
        path = self.workspaces / digest / target / desc.os / desc.arch
        path.mkdir(parents=True, exist_ok=True)
        return path


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    """Interpret an environment variable as a boolean switch."""
    env = os.environ if environ is None else environ
    return env.get(name, "").strip().lower() in ("1", "true", "yes", "on")
