"""Instruction files for AI coding assistants.

Two independent outputs: the repository-wide instructions file and
per-area instruction files scoped with an applyTo frontmatter.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from .analyzer import analyze_repo, list_files
from .generator import FileResult, atomic_write_text
from .model import ModelError, TextGenerator
from .models import Analysis, Area
from .output import ProgressReporter, SilentProgressReporter
from .prompts import SYSTEM_PROMPT, area_instructions_prompt, copilot_instructions_prompt

log = logging.getLogger(__name__)

INSTRUCTIONS_PATH = Path(".github") / "copilot-instructions.md"
AREA_INSTRUCTIONS_DIR = Path(".github") / "instructions"
MAX_AREA_FILES = 40


def default_instructions_path(repo_path: str | Path) -> Path:
    return Path(repo_path).resolve() / INSTRUCTIONS_PATH


def generate_copilot_instructions(
    repo_path: str | Path,
    client: TextGenerator,
    analysis: Analysis | None = None,
    progress: ProgressReporter | None = None,
) -> str:
    """Ask the text generator for repository-wide instructions."""
    progress = progress or SilentProgressReporter()
    root = Path(repo_path).resolve()
    if analysis is None:
        progress.update("Analyzing repository...")
        analysis = analyze_repo(root)

    progress.update(f"Generating instructions with {client.model}...")
    prompt = copilot_instructions_prompt(analysis.summary_for_prompt(), _readme_excerpt(root))
    return _generate(client, prompt)


def generate_area_instructions(
    repo_path: str | Path,
    area: Area,
    client: TextGenerator,
    analysis: Analysis,
) -> str:
    """Ask the text generator for instructions scoped to one area."""
    files = [p for p in list_files(repo_path) if area.matches(p)][:MAX_AREA_FILES]
    prompt = area_instructions_prompt(
        area.name,
        ", ".join(area.patterns),
        area.description,
        analysis.summary_for_prompt(),
        "\n".join(f"- {f}" for f in files),
    )
    return _strip_frontmatter(_generate(client, prompt))


def _generate(client: TextGenerator, prompt: str) -> str:
    try:
        return client.generate(prompt, system=SYSTEM_PROMPT).strip()
    except ModelError:
        raise
    except Exception as e:
        raise ModelError(f"Text generation failed: {e}") from e


def _readme_excerpt(root: Path) -> str:
    readme = root / "README.md"
    if not readme.is_file():
        return ""
    try:
        return readme.read_text(encoding="utf-8", errors="replace")[:2000]
    except OSError as e:
        log.debug("Skipping unreadable README: %s", e)
        return ""


def area_instruction_path(repo_path: str | Path, area: Area) -> Path:
    return Path(repo_path).resolve() / AREA_INSTRUCTIONS_DIR / f"{area.slug}.instructions.md"


def render_area_instruction(area: Area, body: str) -> str:
    """Prepend the applyTo frontmatter VS Code uses to scope instructions."""
    fm_lines = ["---", f"applyTo: {json.dumps(','.join(area.patterns))}"]
    if area.description:
        fm_lines.append(f"description: {json.dumps(area.description)}")
    fm_lines.append("---")
    fm_lines.append("")
    return "\n".join(fm_lines) + body.strip() + "\n"


def write_area_instruction(
    repo_path: str | Path,
    area: Area,
    body: str,
    force: bool = False,
) -> FileResult:
    path = area_instruction_path(repo_path, area)
    if path.exists() and not force:
        return FileResult(str(path), "skipped")
    atomic_write_text(path, render_area_instruction(area, body))
    return FileResult(str(path), "wrote")


def write_instructions(path: str | Path, content: str) -> Path:
    path = Path(path)
    atomic_write_text(path, content.rstrip() + "\n")
    return path


def _strip_frontmatter(content: str) -> str:
    """Drop a leading YAML frontmatter block the model may have produced."""
    if not content.startswith("---"):
        return content
    match = re.match(r"^---\s*\n.*?\n---\s*\n?", content, re.DOTALL)
    return content[match.end():].lstrip() if match else content
