"""Primer CLI - prime repositories for AI-assisted development.

Usage:
    primer analyze [path] [--json]
    primer generate mcp|vscode [path] [--force]
    primer instructions --repo . [--areas]
    primer batch owner/repo-a owner/repo-b --output results.json
    primer eval [--init]
"""

from __future__ import annotations

import logging
import sys
from contextlib import ExitStack
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .analyzer import analyze_repo
from .batch import DEFAULT_BRANCH, read_targets, run_batch, summarize
from .errors import PrimerError
from .evaluator import (
    EVAL_CONFIG_FILENAME,
    default_eval_config_path,
    init_eval_config,
    load_eval_config,
    run_eval,
    summarize_eval,
)
from .generator import ArtifactKind, FileResult, GenerationRequest, generate_configs
from .github import get_github_token
from .instructions import (
    area_instruction_path,
    default_instructions_path,
    generate_area_instructions,
    generate_copilot_instructions,
    write_area_instruction,
    write_instructions,
)
from .model import DEFAULT_MODEL, OLLAMA_BASE_URL, ModelError, OllamaClient
from .models import Analysis, Area
from .output import (
    CommandResult,
    create_progress_reporter,
    output_error,
    output_result,
    status_for,
    write_results,
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(message: str, json_mode: bool) -> None:
    output_error(message, json_mode)
    sys.exit(1)


def _rel(path: str | Path) -> str:
    try:
        return str(Path(path).relative_to(Path.cwd()))
    except ValueError:
        return str(path)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr")
def cli(verbose: bool):
    """Primer - prime repositories for AI-assisted development.

    Analyzes a repository and writes configuration for AI coding
    assistants: MCP manifest, editor settings and instruction files.
    """
    _configure_logging(verbose)


@cli.command()
@click.argument("path", default=".", type=click.Path(file_okay=False))
@click.option("--json", "json_mode", is_flag=True, help="Output the JSON envelope")
def analyze(path: str, json_mode: bool):
    """Analyze a repository: languages, frameworks, entry points and areas."""
    try:
        analysis = analyze_repo(path)
    except (PrimerError, OSError) as e:
        _fail(str(e), json_mode)

    if json_mode:
        output_result(CommandResult.success(analysis), True)
        return
    _print_analysis_summary(analysis, Path(path).resolve().name)


@cli.command()
@click.argument("type_", metavar="TYPE")
@click.argument("path", default=".", type=click.Path(file_okay=False))
@click.option("--force", is_flag=True, help="Overwrite existing files")
@click.option("--json", "json_mode", is_flag=True, help="Output the JSON envelope")
def generate(type_: str, path: str, force: bool, json_mode: bool):
    """Generate a config file. TYPE is one of: mcp, vscode."""
    try:
        kind = ArtifactKind.parse(type_)
        repo_path = Path(path).resolve()
        analysis = analyze_repo(repo_path)
        outcome = generate_configs(GenerationRequest(repo_path, analysis, (kind,), force=force))
    except (PrimerError, OSError) as e:
        _fail(str(e), json_mode)

    if json_mode:
        output_result(CommandResult.success({"type": kind.value, "files": outcome.files}), True)
        return

    if not outcome.files:
        click.echo("No changes made.")
    for f in outcome.files:
        verb = "Wrote" if f.action == "wrote" else "Skipped"
        click.echo(f"{verb} {_rel(f.path)}")


@cli.command()
@click.option("--repo", "repo", default=".", type=click.Path(file_okay=False), help="Repository path")
@click.option("--output", default=None, help="Output path for the root instructions file")
@click.option("--model", "-m", default=DEFAULT_MODEL, envvar="PRIMER_MODEL", help="Ollama model name")
@click.option("--ollama-url", default=OLLAMA_BASE_URL, envvar="OLLAMA_HOST", help="Ollama server URL")
@click.option("--force", is_flag=True, help="Overwrite existing area instruction files")
@click.option("--areas", is_flag=True, help="Also generate per-area instruction files")
@click.option("--areas-only", is_flag=True, help="Only generate per-area instruction files")
@click.option("--area", "area_name", default=None, help="Only generate instructions for this area")
@click.option("--json", "json_mode", is_flag=True, help="Output the JSON envelope")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def instructions(
    repo: str,
    output: str | None,
    model: str,
    ollama_url: str,
    force: bool,
    areas: bool,
    areas_only: bool,
    area_name: str | None,
    json_mode: bool,
    quiet: bool,
):
    """Generate instruction files with a local model.

    The root instructions file and the per-area files are independent
    outputs: --areas writes both, --areas-only or --area writes area
    files only.
    """
    repo_path = Path(repo).resolve()
    progress = create_progress_reporter(json_mode or quiet)
    want_root = not areas_only and not area_name
    want_areas = areas or areas_only or bool(area_name)

    try:
        analysis = analyze_repo(repo_path)
    except (PrimerError, OSError) as e:
        _fail(f"Failed to analyze repository: {e}", json_mode)

    areas_to_write = _select_areas(analysis, area_name, json_mode) if want_areas else []
    files: list[FileResult] = []
    errors: list[str] = []
    succeeded = 0

    with OllamaClient(model=model, base_url=ollama_url) as client:
        if want_root:
            out_path = Path(output).resolve() if output else default_instructions_path(repo_path)
            try:
                content = generate_copilot_instructions(repo_path, client, analysis, progress)
                if not content:
                    raise ModelError("No instructions were generated.")
                write_instructions(out_path, content)
            except (ModelError, OSError) as e:
                errors.append(f"instructions: {e}")
                progress.fail(f"Failed to generate instructions: {e}")
            else:
                succeeded += 1
                files.append(FileResult(str(out_path), "wrote"))
                progress.succeed(f"Updated {_rel(out_path)}")

        for area in areas_to_write:
            existing = area_instruction_path(repo_path, area)
            if existing.exists() and not force:
                succeeded += 1
                files.append(FileResult(str(existing), "skipped"))
                progress.update(f'Skipped "{area.name}" - file exists (use --force to overwrite).')
                continue
            try:
                progress.update(f'Generating for "{area.name}" ({", ".join(area.patterns)})...')
                body = generate_area_instructions(repo_path, area, client, analysis)
                if not body:
                    raise ModelError("no content generated")
                result = write_area_instruction(repo_path, area, body, force=force)
            except (ModelError, OSError) as e:
                errors.append(f"{area.name}: {e}")
                progress.fail(f'Failed for "{area.name}": {e}')
                continue
            succeeded += 1
            files.append(result)
            progress.succeed(f"Wrote {_rel(result.path)}")
    progress.done()

    status = status_for(succeeded, len(errors))
    envelope = CommandResult(status=status, data={"model": model, "files": files}, errors=tuple(errors))
    output_result(envelope, json_mode)
    if not json_mode:
        if quiet:
            for e in errors:
                click.echo(f"Error: {e}", err=True)
        if want_root and not errors:
            click.echo("Please review and share feedback on any unclear or incomplete sections.")
    if errors:
        sys.exit(1)


def _select_areas(analysis: Analysis, area_name: str | None, json_mode: bool) -> list[Area]:
    if not analysis.areas:
        if area_name:
            _fail(f'Area "{area_name}" not found. No areas detected.', json_mode)
        if not json_mode:
            click.echo("No areas detected. Use primer.config.json to define custom areas.")
        return []
    if area_name is None:
        return list(analysis.areas)
    area = analysis.area(area_name)
    if area is None:
        available = ", ".join(a.name for a in analysis.areas)
        _fail(f'Area "{area_name}" not found. Available: {available}', json_mode)
    return [area]


@cli.command()
@click.argument("repos", nargs=-1)
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write results JSON to this file")
@click.option("--branch", default=DEFAULT_BRANCH, show_default=True, help="Branch name for pull requests")
@click.option("--json", "json_mode", is_flag=True, help="Output the JSON envelope")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def batch(repos: tuple[str, ...], output: str | None, branch: str, json_mode: bool, quiet: bool):
    """Configure many GitHub repositories and open a pull request in each.

    REPOS are owner/name identifiers; when none are given they are read
    from stdin, one per line.
    """
    targets = list(repos)
    if not targets:
        stdin = click.get_text_stream("stdin")
        if not stdin.isatty():
            targets = read_targets(stdin)

    progress = create_progress_reporter(json_mode or quiet)
    try:
        results = run_batch(targets, get_github_token(), progress, branch=branch)
    except PrimerError as e:
        _fail(str(e), json_mode)

    summary, file_error = _write_results_file(summarize(results), output, results)
    if json_mode:
        output_result(summary, True)
    else:
        data = summary.data
        click.echo(f"\nBatch complete: {data['succeeded']} succeeded, {data['failed']} failed")
        for r in results:
            if r.success:
                click.echo(f"  ✓ {r.repo}" + (f" → {r.pr_url}" if r.pr_url else ""))
            else:
                click.echo(f"  ✗ {r.repo} ({r.error})")
        if file_error:
            click.echo(f"Error: {file_error}", err=True)

    if summary.errors:
        sys.exit(1)


def _write_results_file(
    summary: CommandResult[Any], output: str | None, results: Sequence[Any]
) -> tuple[CommandResult[Any], str | None]:
    """Write the results file if requested. A failed write becomes an envelope error."""
    if not output:
        return summary, None
    try:
        write_results(output, results)
    except OSError as e:
        message = f"Failed to write results to {output}: {e.strerror or e}"
        status = "partial" if summary.status == "success" else summary.status
        return replace(summary, status=status, errors=summary.errors + (message,)), message
    return summary, None


@cli.command("eval")
@click.argument("config_path", required=False, type=click.Path(dir_okay=False))
@click.option("--repo", "repo", default=".", type=click.Path(file_okay=False), help="Repository path")
@click.option("--model", "-m", default=DEFAULT_MODEL, envvar="PRIMER_MODEL", help="Model that answers the cases")
@click.option("--judge-model", default=None, envvar="PRIMER_JUDGE_MODEL", help="Model that grades answers [default: --model]")
@click.option("--ollama-url", default=OLLAMA_BASE_URL, envvar="OLLAMA_HOST", help="Ollama server URL")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write results JSON to this file")
@click.option("--init", "init_", is_flag=True, help=f"Create a starter {EVAL_CONFIG_FILENAME}")
@click.option("--json", "json_mode", is_flag=True, help="Output the JSON envelope")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def eval_command(
    config_path: str | None,
    repo: str,
    model: str,
    judge_model: str | None,
    ollama_url: str,
    output: str | None,
    init_: bool,
    json_mode: bool,
    quiet: bool,
):
    """Check how well the instructions file guides a model.

    Each case in CONFIG_PATH (default: primer.eval.json in the repository)
    is answered with and without the instructions, then graded by a judge.
    """
    repo_path = Path(repo).resolve()
    if init_:
        try:
            created = init_eval_config(repo_path)
        except (PrimerError, OSError) as e:
            _fail(str(e), json_mode)
        if json_mode:
            output_result(CommandResult.success({"outputPath": str(created)}), True)
        else:
            click.echo(f"Created {_rel(created)}")
            click.echo("Edit the file to add your own test cases, then run 'primer eval' to test.")
        return

    try:
        config = load_eval_config(config_path or default_eval_config_path(repo_path))
    except PrimerError as e:
        _fail(str(e), json_mode)

    progress = create_progress_reporter(json_mode or quiet)
    with ExitStack() as stack:
        answerer = stack.enter_context(OllamaClient(model=model, base_url=ollama_url))
        judge = answerer
        if judge_model and judge_model != model:
            judge = stack.enter_context(OllamaClient(model=judge_model, base_url=ollama_url))
        try:
            results = run_eval(config, repo_path, answerer, judge, progress)
        except (PrimerError, OSError) as e:
            _fail(str(e), json_mode)

    summary, file_error = _write_results_file(summarize_eval(results), output, results)
    if json_mode:
        output_result(summary, True)
    else:
        data = summary.data
        click.echo(
            f"\nEval complete: {data['passed']} passed, {data['failed']} failed, {data['errored']} errored"
        )
        for r in results:
            if r.error:
                click.echo(f"  ! {r.id} ({r.error})")
            else:
                mark = "✓" if r.passed else "✗"
                click.echo(f"  {mark} {r.id} [preferred: {r.preferred}] {r.rationale}".rstrip())
        if file_error:
            click.echo(f"Error: {file_error}", err=True)

    if summary.errors:
        sys.exit(1)


def _print_analysis_summary(analysis: Analysis, name: str) -> None:
    """Print a compact summary of the analysis."""
    table = Table(title=f"Repository Analysis: {name}", show_header=False, border_style="dim")
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Languages", ", ".join(analysis.languages) or "-")
    table.add_row("Frameworks", ", ".join(analysis.frameworks) or "-")
    if analysis.entry_points:
        table.add_row("Entry points", ", ".join(analysis.entry_points[:8]))
    console.print(table)

    if not analysis.areas:
        console.print("[dim]No areas detected.[/]")
        return
    areas = Table(title="Areas", border_style="dim")
    areas.add_column("Name", style="cyan")
    areas.add_column("Applies to")
    areas.add_column("Description")
    for a in analysis.areas:
        areas.add_row(a.name, ", ".join(a.patterns), a.description)
    console.print(areas)


if __name__ == "__main__":
    cli()
