"""Per-repository configuration (primer.config.json).

Only area overrides are read from the file; runtime settings such as
tokens and model names come from CLI options and environment variables.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationError
from .models import Area

log = logging.getLogger(__name__)

CONFIG_FILENAME = "primer.config.json"


@dataclass(frozen=True)
class AreaConfig:
    """Explicit area map that takes precedence over directory heuristics."""

    areas: tuple[Area, ...] = ()

    @classmethod
    def empty(cls) -> AreaConfig:
        return cls()


def parse_area_config(data: object, source: str = CONFIG_FILENAME) -> AreaConfig:
    if not isinstance(data, dict):
        raise ValidationError(f"{source}: expected a JSON object")
    raw_areas = data.get("areas", [])
    if not isinstance(raw_areas, list):
        raise ValidationError(f"{source}: 'areas' must be a list")

    areas: list[Area] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_areas):
        if not isinstance(raw, dict):
            raise ValidationError(f"{source}: areas[{i}] must be an object")
        try:
            area = Area.from_dict(raw)
        except ValueError as e:
            raise ValidationError(f"{source}: areas[{i}]: {e}") from e
        if area.slug in seen:
            raise ValidationError(f"{source}: duplicate area name {area.name!r}")
        seen.add(area.slug)
        areas.append(area)
    return AreaConfig(areas=tuple(areas))


def load_area_config(repo_path: str | Path) -> AreaConfig:
    """Read area overrides from the repository root, if present."""
    path = Path(repo_path) / CONFIG_FILENAME
    if not path.is_file():
        return AreaConfig.empty()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path}: invalid JSON ({e.msg} at line {e.lineno})") from e

    config = parse_area_config(data, source=str(path))
    log.debug("Loaded %d area override(s) from %s", len(config.areas), path)
    return config
