"""Repository profile produced by the analyzer.

Both types are immutable and round-trip through JSON via
to_dict()/from_dict() using the interchange keys (applyTo, entryPoints).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any


def area_slug(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "area"


@dataclass(frozen=True)
class Area:
    """A named cluster of files sharing a purpose, scoped by glob patterns."""

    name: str
    apply_to: str | tuple[str, ...]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Area name must not be empty")
        if isinstance(self.apply_to, list):
            object.__setattr__(self, "apply_to", tuple(self.apply_to))
        if not self.patterns or not all(self.patterns):
            raise ValueError(f"Area {self.name!r} needs at least one applyTo pattern")

    @property
    def slug(self) -> str:
        """File-name form of the name; two areas with one slug share a file."""
        return area_slug(self.name)

    @property
    def patterns(self) -> tuple[str, ...]:
        if isinstance(self.apply_to, str):
            return (self.apply_to,)
        return self.apply_to

    def matches(self, path: str) -> bool:
        return any(glob_match(path, p) for p in self.patterns)

    def to_dict(self) -> dict[str, Any]:
        apply_to = self.apply_to if isinstance(self.apply_to, str) else list(self.apply_to)
        return {"name": self.name, "applyTo": apply_to, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Area:
        apply_to = data.get("applyTo")
        if isinstance(apply_to, list):
            apply_to = tuple(apply_to)
        return cls(
            name=data.get("name", ""),
            apply_to=apply_to or "",
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class Analysis:
    """Structural profile of a repository."""

    languages: tuple[str, ...] = ()
    frameworks: tuple[str, ...] = ()
    areas: tuple[Area, ...] = ()
    entry_points: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        slugs = [a.slug for a in self.areas]
        dupes = sorted({a.name for a in self.areas if slugs.count(a.slug) > 1})
        if dupes:
            raise ValueError(f"Duplicate area names: {', '.join(dupes)}")

    def area(self, name: str) -> Area | None:
        """Case-insensitive lookup by area name."""
        for a in self.areas:
            if a.name.lower() == name.lower():
                return a
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "languages": list(self.languages),
            "frameworks": list(self.frameworks),
            "areas": [a.to_dict() for a in self.areas],
            "entryPoints": list(self.entry_points),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Analysis:
        return cls(
            languages=tuple(data.get("languages", [])),
            frameworks=tuple(data.get("frameworks", [])),
            areas=tuple(Area.from_dict(a) for a in data.get("areas", [])),
            entry_points=tuple(data.get("entryPoints", [])),
        )

    def summary_for_prompt(self) -> str:
        """Generate a concise summary suitable for LLM prompt context."""
        lines = []
        if self.languages:
            lines.append(f"Languages: {', '.join(self.languages)}")
        if self.frameworks:
            lines.append(f"Frameworks: {', '.join(self.frameworks)}")
        if self.entry_points:
            lines.append(f"Entry points: {', '.join(self.entry_points[:12])}")
        if self.areas:
            lines.append("Areas:")
            for a in self.areas:
                lines.append(f"- {a.name} ({', '.join(a.patterns)}): {a.description}")
        return "\n".join(lines) or "No recognized structure."


# --- Glob matching ---
#
# VS Code style globs: `**` spans directories, `*` and `?` stay within one
# path segment, `{a,b}` alternates.


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        elif pattern[i] == "{" and "}" in pattern[i:]:
            end = pattern.index("}", i)
            options = pattern[i + 1:end].split(",")
            out.append("(?:" + "|".join(re.escape(o) for o in options) + ")")
            i = end + 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")


def glob_match(path: str, pattern: str) -> bool:
    return _glob_regex(pattern.lstrip("/")).match(path) is not None
