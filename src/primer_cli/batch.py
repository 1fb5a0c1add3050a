"""Batch orchestration across remote repositories.

Each target runs resolve -> fetch -> analyze -> generate -> submit in
isolation: whatever goes wrong is recorded on that target's ProcessResult
and the loop moves on to the next one.
"""

from __future__ import annotations

import enum
import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from .analyzer import analyze_repo
from .errors import AuthenticationError, ValidationError
from .generator import (
    DEFAULT_SELECTIONS,
    ArtifactKind,
    GenerationOutcome,
    GenerationRequest,
    generate_configs,
)
from .github import GitHubClient, RepoMetadata, clone_repo
from .models import Analysis
from .output import CommandResult, ProgressReporter, status_for

log = logging.getLogger(__name__)

REPO_PATTERN = re.compile(r"^([A-Za-z0-9._-]+)/([A-Za-z0-9._-]+)$")
DEFAULT_BRANCH = "primer/add-configs"
PR_TITLE = "Add AI assistant configuration"


class Stage(str, enum.Enum):
    """Pipeline step a target was in when it failed."""

    RESOLVE = "resolve"
    FETCH = "fetch"
    ANALYZE = "analyze"
    GENERATE = "generate"
    SUBMIT = "submit"


@dataclass(frozen=True)
class ProcessResult:
    """Outcome for one repository in a batch."""

    repo: str
    success: bool
    pr_url: str | None = None
    error: str | None = None
    stage: Stage | None = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful result cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("A failed result needs an error message")
        if not self.success and self.pr_url is not None:
            raise ValueError("A failed result cannot carry a PR URL")

    @classmethod
    def ok(cls, repo: str, pr_url: str | None = None) -> ProcessResult:
        return cls(repo=repo, success=True, pr_url=pr_url)

    @classmethod
    def failed(cls, repo: str, stage: Stage, error: str) -> ProcessResult:
        return cls(repo=repo, success=False, error=error, stage=stage)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"repo": self.repo, "success": self.success}
        if self.pr_url:
            d["prUrl"] = self.pr_url
        if self.error:
            d["error"] = self.error
            d["stage"] = self.stage.value if self.stage else None
        return d


def parse_repo_arg(text: str) -> tuple[str, str] | None:
    match = REPO_PATTERN.match(text)
    if not match:
        return None
    return match.group(1), match.group(2)


def validate_targets(targets: Sequence[str]) -> list[tuple[str, str]]:
    """Parse every identifier or reject the whole batch. No I/O."""
    if not targets:
        raise ValidationError("No repos provided. Pass owner/repo arguments or pipe via stdin.")
    parsed = [(t, parse_repo_arg(t)) for t in targets]
    invalid = [raw for raw, p in parsed if p is None]
    if invalid:
        raise ValidationError(f"Invalid repo format: {', '.join(invalid)}. Use owner/name.")
    return [p for _, p in parsed if p is not None]


def read_targets(lines: Iterable[str]) -> list[str]:
    """Identifiers from newline-separated input, ignoring blanks and # comments."""
    targets = []
    for line in lines:
        line = line.strip()
        if line and not line.startswith("#"):
            targets.append(line)
    return targets


class Hosting(Protocol):
    def get_repo(self, owner: str, name: str) -> RepoMetadata: ...

    def open_pull_request(
        self,
        repo: RepoMetadata,
        branch: str,
        files: Mapping[str, str],
        title: str,
        body: str = "",
    ) -> str: ...


Fetcher = Callable[[RepoMetadata, Path], Path]


class BatchRunner:
    """Drives the per-repository pipeline sequentially."""

    def __init__(
        self,
        hosting: Hosting,
        fetch: Fetcher,
        workdir: Path,
        branch: str = DEFAULT_BRANCH,
        selections: Sequence[ArtifactKind] = DEFAULT_SELECTIONS,
        analyze: Callable[[Path], Analysis] = analyze_repo,
        generate: Callable[[GenerationRequest], GenerationOutcome] = generate_configs,
    ):
        self.hosting = hosting
        self.fetch = fetch
        self.workdir = workdir
        self.branch = branch
        self.selections = tuple(selections)
        self.analyze = analyze
        self.generate = generate

    def run(self, targets: Sequence[str], progress: ProgressReporter) -> list[ProcessResult]:
        """One result per target, in input order. Validation happens first."""
        parsed = validate_targets(targets)
        results: list[ProcessResult] = []
        for owner, name in parsed:
            results.append(self.process(owner, name, progress))
        progress.done()
        return results

    def process(self, owner: str, name: str, progress: ProgressReporter) -> ProcessResult:
        """Run one target through the pipeline. Never raises.

        Each target is cloned into its own scratch directory under workdir,
        removed when the target finishes.
        """
        repo_id = f"{owner}/{name}"
        stage = Stage.RESOLVE
        try:
            progress.update(f"Fetching {repo_id}...")
            meta = self.hosting.get_repo(owner, name)

            stage = Stage.FETCH
            self.workdir.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(prefix="target-", dir=self.workdir, ignore_cleanup_errors=True) as scratch:
                path = self.fetch(meta, Path(scratch))

                stage = Stage.ANALYZE
                progress.update(f"Analyzing {repo_id}...")
                analysis = self.analyze(path)

                stage = Stage.GENERATE
                outcome = self.generate(GenerationRequest(path, analysis, self.selections, force=False))
                files = _written_files(path, outcome)
                if not files:
                    progress.succeed(f"{repo_id}: already configured, no pull request needed")
                    return ProcessResult.ok(repo_id)

                stage = Stage.SUBMIT
                progress.update(f"Opening pull request for {repo_id}...")
                url = self.hosting.open_pull_request(meta, self.branch, files, PR_TITLE, _pr_body(analysis, files))
        except Exception as e:
            log.debug("%s failed at %s", repo_id, stage.value, exc_info=True)
            message = str(e) or type(e).__name__
            progress.fail(f"{repo_id} ({message})")
            return ProcessResult.failed(repo_id, stage, message)

        progress.succeed(f"{repo_id} → {url}")
        return ProcessResult.ok(repo_id, url)


def _written_files(root: Path, outcome: GenerationOutcome) -> dict[str, str]:
    root = root.resolve()
    files = {}
    for f in outcome.written:
        path = Path(f.path)
        files[path.relative_to(root).as_posix()] = path.read_text(encoding="utf-8")
    return files


def _pr_body(analysis: Analysis, files: Mapping[str, str]) -> str:
    lines = ["Adds configuration for AI coding assistants.", "", "Files:"]
    lines.extend(f"- `{p}`" for p in sorted(files))
    if analysis.languages:
        lines.extend(["", f"Detected languages: {', '.join(analysis.languages)}"])
    if analysis.frameworks:
        lines.append(f"Detected frameworks: {', '.join(analysis.frameworks)}")
    return "\n".join(lines)


def run_batch(
    targets: Sequence[str],
    token: str | None,
    progress: ProgressReporter,
    runner: BatchRunner | None = None,
    branch: str = DEFAULT_BRANCH,
) -> list[ProcessResult]:
    """Process targets against GitHub, cloning into a scratch directory."""
    if not token:
        raise AuthenticationError(
            "GitHub authentication required. Install gh CLI (gh auth login) or set GITHUB_TOKEN."
        )
    if runner is not None:
        return runner.run(targets, progress)

    client = GitHubClient(token)
    try:
        with tempfile.TemporaryDirectory(prefix="primer-") as tmp:
            runner = BatchRunner(
                client,
                lambda meta, dest: clone_repo(meta, token, dest),
                Path(tmp),
                branch=branch,
            )
            return runner.run(targets, progress)
    finally:
        client.close()


def summarize(results: Sequence[ProcessResult]) -> CommandResult[dict[str, Any]]:
    succeeded = sum(1 for r in results if r.success)
    failed = len(results) - succeeded
    return CommandResult(
        status=status_for(succeeded, failed),
        data={
            "total": len(results),
            "succeeded": succeeded,
            "failed": failed,
            "results": [r.to_dict() for r in results],
        },
        errors=tuple(f"{r.repo}: {r.error}" for r in results if not r.success),
    )
