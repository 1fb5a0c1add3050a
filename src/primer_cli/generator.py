"""Config artifact generator.

Renders editor and tool-integration files from an Analysis and writes
them to fixed locations inside the repository, skipping existing files
unless forced.
"""

from __future__ import annotations

import enum
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Literal

from .errors import GenerationError, ValidationError
from .models import Analysis

log = logging.getLogger(__name__)

Action = Literal["wrote", "skipped"]


class ArtifactKind(str, enum.Enum):
    """Closed set of generated configuration outputs."""

    MCP = "mcp"
    VSCODE = "vscode"

    @classmethod
    def parse(cls, value: ArtifactKind | str) -> ArtifactKind:
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ValidationError(f"Invalid type: {value}. Use: {allowed}.") from None


TARGET_PATHS = {
    ArtifactKind.MCP: Path(".vscode") / "mcp.json",
    ArtifactKind.VSCODE: Path(".vscode") / "settings.json",
}

DEFAULT_SELECTIONS = (ArtifactKind.MCP, ArtifactKind.VSCODE)


@dataclass(frozen=True)
class FileResult:
    path: str
    action: Action

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "action": self.action}


@dataclass(frozen=True)
class GenerationRequest:
    repo_path: Path
    analysis: Analysis
    selections: tuple[ArtifactKind | str, ...]
    force: bool = False


@dataclass
class GenerationOutcome:
    """Ordered file results, one per requested kind at most."""

    files: list[FileResult] = field(default_factory=list)

    @property
    def written(self) -> list[FileResult]:
        return [f for f in self.files if f.action == "wrote"]

    def to_dict(self) -> dict[str, Any]:
        return {"files": [f.to_dict() for f in self.files]}


def target_path(repo_path: str | Path, kind: ArtifactKind) -> Path:
    return Path(repo_path).resolve() / TARGET_PATHS[kind]


def generate_configs(request: GenerationRequest) -> GenerationOutcome:
    """Write each selected artifact, honoring the force flag.

    A failed write does not stop the remaining kinds; GenerationError is
    raised at the end with the partial outcome attached.
    """
    kinds = _validate_selections(request.selections)
    outcome = GenerationOutcome()
    failures: dict[str, str] = {}

    for kind in kinds:
        path = target_path(request.repo_path, kind)
        if path.exists() and not request.force:
            log.debug("Skipping existing %s", path)
            outcome.files.append(FileResult(str(path), "skipped"))
            continue
        try:
            content = RENDERERS[kind](request.analysis)
            atomic_write_text(path, content)
        except OSError as e:
            log.debug("Failed to write %s: %s", path, e)
            failures[kind.value] = f"{path}: {e.strerror or e}"
            continue
        outcome.files.append(FileResult(str(path), "wrote"))

    if failures:
        raise GenerationError(outcome, failures)
    return outcome


def _validate_selections(selections: Iterable[ArtifactKind | str]) -> list[ArtifactKind]:
    kinds: list[ArtifactKind] = []
    for s in selections:
        kind = ArtifactKind.parse(s)
        if kind not in kinds:
            kinds.append(kind)
    if not kinds:
        raise ValidationError("No artifact types selected.")
    return kinds


def atomic_write_text(path: Path, content: str) -> None:
    """Write via a sibling temp file so a failed write leaves no partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


# --- Renderers ---

GITHUB_MCP_URL = "https://api.githubcopilot.com/mcp/"

# Framework -> extra MCP server definition
FRAMEWORK_MCP_SERVERS: dict[str, tuple[str, dict[str, Any]]] = {
    "Playwright": ("playwright", {"command": "npx", "args": ["@playwright/mcp@latest"]}),
    "Prisma": ("prisma", {"command": "npx", "args": ["-y", "prisma", "mcp"]}),
}


def render_mcp(analysis: Analysis) -> str:
    servers: dict[str, Any] = {"github": {"type": "http", "url": GITHUB_MCP_URL}}
    for fw in analysis.frameworks:
        if fw in FRAMEWORK_MCP_SERVERS:
            name, spec = FRAMEWORK_MCP_SERVERS[fw]
            servers[name] = {"type": "stdio", **spec}
    return _dump_json({"servers": servers})


def render_vscode_settings(analysis: Analysis) -> str:
    settings: dict[str, Any] = {
        "github.copilot.chat.codeGeneration.useInstructionFiles": True,
        "chat.instructionsFilesLocations": {".github/instructions": True},
        "chat.promptFiles": True,
        "chat.mcp.enabled": True,
    }
    if "Python" in analysis.languages and "pytest" in analysis.frameworks:
        settings["python.testing.pytestEnabled"] = True
    return _dump_json(settings)


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=2) + "\n"


RENDERERS: dict[ArtifactKind, Callable[[Analysis], str]] = {
    ArtifactKind.MCP: render_mcp,
    ArtifactKind.VSCODE: render_vscode_settings,
}
