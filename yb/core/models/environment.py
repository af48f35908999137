"""
Environment — layered environment variables for biome invocations.

An Environment is a set of variables plus two PATH fragments: entries
to put in front of the default PATH and entries to put after it.
Environments are merged from least to most specific; the result is
serialised deterministically as sorted ``KEY=value`` strings.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

PATH_VAR = "PATH"


class Environment(BaseModel):
    """Environment variables and PATH fragments for a command.

    ``vars`` may itself contain ``PATH``, which then replaces the
    default PATH unless it is empty; ``prepend_path`` and
    ``append_path`` still apply around it.
    """

    model_config = ConfigDict(frozen=True)

    vars: dict[str, str] = Field(default_factory=dict)
    prepend_path: list[str] = Field(default_factory=list)
    append_path: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.vars and not self.prepend_path and not self.append_path

    def merge(self, *others: Environment) -> Environment:
        """Layer ``others`` on top of this environment.

        Later environments are more specific: their variables win,
        their prepended entries go in front, and their appended entries
        go last.
        """
        merged_vars = dict(self.vars)
        prepend = list(self.prepend_path)
        append = list(self.append_path)
        for other in others:
            merged_vars.update(other.vars)
            prepend = list(other.prepend_path) + prepend
            append = append + list(other.append_path)
        return Environment(vars=merged_vars, prepend_path=prepend, append_path=append)

    def compute_path(self, default_path: str = "", sep: str = ":") -> str:
        """Return the PATH value this environment presents."""
        parts = list(self.prepend_path)
        path = self.vars.get(PATH_VAR) or default_path
        if path:
            parts.append(path)
        parts.extend(self.append_path)
        return sep.join(parts)

    def _has_path(self, default_path: str) -> bool:
        return bool(
            default_path
            or PATH_VAR in self.vars
            or self.prepend_path
            or self.append_path
        )

    def append_to(self, dst: list[str], default_path: str = "", sep: str = ":") -> list[str]:
        """Append ``KEY=value`` strings to ``dst`` and return it.

        Variables are emitted sorted by name, PATH included. PATH is
        only emitted when there is something to put in it.
        """
        dst.extend(f"{key}={value}" for key, value in self.to_dict(default_path, sep).items())
        return dst

    def to_dict(self, default_path: str = "", sep: str = ":") -> dict[str, str]:
        """Flatten into a mapping, keys in sorted order."""
        keys = [k for k in self.vars if k != PATH_VAR]
        if self._has_path(default_path):
            keys.append(PATH_VAR)
        result = {}
        for key in sorted(keys):
            result[key] = self.compute_path(default_path, sep) if key == PATH_VAR else self.vars[key]
        return result

    def __str__(self) -> str:
        return " ".join(self.append_to([], "", ":"))


def parse_env_lines(lines: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=value`` strings into a mapping.

    Raises:
        ValueError: If a line has no ``=`` or an empty key.
    """
    result: dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition("=")
        if not sep or not key:
            raise ValueError(f"invalid environment entry {line!r}: expected KEY=value")
        result[key] = value
    return result
