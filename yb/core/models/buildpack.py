"""
BuildpackSpec — ``name:version`` identifiers for buildpacks.
"""

from __future__ import annotations

LATEST = "latest"

# Names accepted in manifests for historical reasons.
_ALIASES = {
    "golang": "go",
    "nodejs": "node",
    "openjdk": "java",
}


class BuildpackSpec(str):
    """A canonical ``name:version`` buildpack identifier.

    Construct with :meth:`parse`; the constructor does no validation.
    """

    __slots__ = ()

    @classmethod
    def parse(cls, raw: str) -> BuildpackSpec:
        """Validate and canonicalise a buildpack spec string.

        Whitespace around either part is dropped and aliases are
        resolved (``golang:1.15`` becomes ``go:1.15``).

        Raises:
            ValueError: If ``raw`` is not of the form ``name:version``.
        """
        name, sep, version = raw.partition(":")
        name = name.strip().lower()
        version = version.strip()
        if not sep:
            raise ValueError(f"parse buildpack spec {raw!r}: missing ':'")
        if not name:
            raise ValueError(f"parse buildpack spec {raw!r}: empty name")
        if not version:
            raise ValueError(f"parse buildpack spec {raw!r}: empty version")
        name = _ALIASES.get(name, name)
        return cls(f"{name}:{version}")

    @property
    def name(self) -> str:
        return self.partition(":")[0]

    @property
    def version(self) -> str:
        return self.partition(":")[2]


def merge_specs(*groups: list[BuildpackSpec]) -> list[BuildpackSpec]:
    """Combine spec lists, later specs replacing earlier ones by name.

    The position of the first occurrence of each name is kept.
    """
    order: list[str] = []
    by_name: dict[str, BuildpackSpec] = {}
    for group in groups:
        for spec in group:
            if spec.name not in by_name:
                order.append(spec.name)
            by_name[spec.name] = spec
    return [by_name[name] for name in order]
