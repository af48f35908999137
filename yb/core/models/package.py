"""
Package model — the parsed form of a project's .yourbase.yml.

A Package has global build dependencies and a list of build targets.
Each target names its commands, the buildpacks it needs on top of the
global ones, an optional build container and any service containers
that must be running while it builds.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from yb.core.models.buildpack import BuildpackSpec, merge_specs
from yb.core.models.environment import parse_env_lines

DEFAULT_CONTAINER_IMAGE = "yourbase/yb_ubuntu:18.04"


def _normalize_env(value: object) -> object:
    """Accept either ``KEY=value`` strings or a mapping."""
    if value is None:
        return {}
    if isinstance(value, list):
        return parse_env_lines(str(v) for v in value)
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    return value


class PortWaitCheck(BaseModel):
    """A TCP port that must accept connections before a container is ready."""

    port: int
    timeout: int = 30


class ContainerDefinition(BaseModel):
    """How to create a container: the build container or a service."""

    model_config = ConfigDict(populate_by_name=True)

    image: str = DEFAULT_CONTAINER_IMAGE
    label: str = ""
    mounts: list[str] = Field(default_factory=list)
    ports: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    command: str = ""
    argv: list[str] = Field(default_factory=list)
    workdir: str = Field(default="", alias="work_dir")
    privileged: bool = False
    port_check: PortWaitCheck | None = Field(default=None, alias="port_wait_check")

    @field_validator("environment", mode="before")
    @classmethod
    def _environment_pairs(cls, value: object) -> object:
        return _normalize_env(value)

    def mount_pairs(self) -> list[tuple[str, str]]:
        """Split ``host:container`` mount strings.

        Raises:
            ValueError: On a mount without a container side.
        """
        pairs = []
        for mount in self.mounts:
            source, sep, target = mount.partition(":")
            if not sep or not source or not target:
                raise ValueError(f"invalid mount {mount!r}: expected HOST:CONTAINER")
            pairs.append((source, target))
        return pairs


class BuildDependencies(BaseModel):
    """Buildpacks and service containers required to build."""

    build: list[str] = Field(default_factory=list)
    runtime: list[str] = Field(default_factory=list)
    containers: dict[str, ContainerDefinition] = Field(default_factory=dict)

    @field_validator("build", "runtime", mode="before")
    @classmethod
    def _none_is_empty(cls, value: object) -> object:
        return [] if value is None else value

    def build_specs(self) -> list[BuildpackSpec]:
        return [BuildpackSpec.parse(raw) for raw in self.build]


class Target(BaseModel):
    """A named build target."""

    name: str
    commands: list[str] = Field(default_factory=list)
    root: str = ""
    environment: dict[str, str] = Field(default_factory=dict)
    container: ContainerDefinition | None = None
    host_only: bool = False
    build_after: list[str] = Field(default_factory=list)
    dependencies: BuildDependencies = Field(default_factory=BuildDependencies)

    @field_validator("environment", mode="before")
    @classmethod
    def _environment_pairs(cls, value: object) -> object:
        return _normalize_env(value)


class Package(BaseModel):
    """Root of a parsed .yourbase.yml."""

    path: str = ""
    dependencies: BuildDependencies = Field(default_factory=BuildDependencies)
    build_targets: list[Target] = Field(default_factory=list)
    exec: dict | None = None

    def target(self, name: str) -> Target | None:
        """Look up a build target by name."""
        for target in self.build_targets:
            if target.name == name:
                return target
        return None

    def default_target(self) -> Target | None:
        """The target named ``default``, or the first one."""
        return self.target("default") or (self.build_targets[0] if self.build_targets else None)

    def buildpacks_for(self, target: Target) -> list[BuildpackSpec]:
        """Global buildpacks overridden by the target's own, in declared order."""
        return merge_specs(self.dependencies.build_specs(), target.dependencies.build_specs())

    def containers_for(self, target: Target) -> dict[str, ContainerDefinition]:
        """Service containers a target needs: global ones then its own."""
        merged = dict(self.dependencies.containers)
        merged.update(target.dependencies.containers)
        return merged
