"""
Descriptor & Dirs — what a biome is and where it keeps things.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# ── Operating systems ───────────────────────────────────────────

LINUX = "linux"
MACOS = "darwin"
WINDOWS = "windows"

# ── Architectures ───────────────────────────────────────────────

X86_64 = "x86_64"
X86 = "x86"
ARM64 = "arm64"


class Descriptor(BaseModel):
    """The OS and architecture of a biome. Immutable."""

    model_config = ConfigDict(frozen=True)

    os: str
    arch: str

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


class Dirs(BaseModel):
    """Well-known absolute paths inside a biome.

    ``home`` and ``package`` are writable for the lifetime of the
    biome. ``tools`` may be shared between biomes and holds installed
    buildpacks.
    """

    model_config = ConfigDict(frozen=True)

    home: str
    package: str
    tools: str
