"""Result envelope and progress reporting shared by all commands.

Machine-readable mode prints exactly one JSON envelope on stdout;
human mode prints free text and sends progress to stderr.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Literal, Protocol, Sequence, TypeVar

import click
from rich.console import Console
from rich.markup import escape

T = TypeVar("T")

Status = Literal["success", "partial", "error"]


@dataclass(frozen=True)
class CommandResult(Generic[T]):
    """Uniform result envelope: {ok, status, data, errors?}."""

    status: Status
    data: T
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status != "error"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "ok": self.ok,
            "status": self.status,
            "data": _to_jsonable(self.data),
        }
        if self.errors:
            d["errors"] = list(self.errors)
        return d

    @classmethod
    def success(cls, data: T) -> CommandResult[T]:
        return cls(status="success", data=data)

    @classmethod
    def error(cls, message: str) -> CommandResult[None]:
        return CommandResult(status="error", data=None, errors=(message,))


def status_for(succeeded: int, failed: int) -> Status:
    """Classify a batch-shaped outcome."""
    if failed == 0:
        return "success"
    if succeeded > 0:
        return "partial"
    return "error"


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


class ProgressReporter(Protocol):
    """Informational progress sink. Calls never influence control flow."""

    def update(self, message: str) -> None: ...

    def succeed(self, message: str) -> None: ...

    def fail(self, message: str) -> None: ...

    def done(self) -> None: ...


class HumanProgressReporter:
    """Writes progress lines to the diagnostic stream."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True, highlight=False)

    def update(self, message: str) -> None:
        self.console.print(f"  {message}", style="dim", markup=False)

    def succeed(self, message: str) -> None:
        self.console.print(f"[green]✓[/] {escape(message)}")

    def fail(self, message: str) -> None:
        self.console.print(f"[red]✗[/] {escape(message)}")

    def done(self) -> None:
        pass


class SilentProgressReporter:
    """Discards all progress; used for JSON and quiet modes."""

    def update(self, message: str) -> None:
        pass

    def succeed(self, message: str) -> None:
        pass

    def fail(self, message: str) -> None:
        pass

    def done(self) -> None:
        pass


def create_progress_reporter(quiet: bool) -> ProgressReporter:
    return SilentProgressReporter() if quiet else HumanProgressReporter()


def output_result(result: CommandResult[Any], json_mode: bool) -> None:
    """Print the envelope in JSON mode; human mode prints its own summary."""
    if json_mode:
        click.echo(json.dumps(result.to_dict(), indent=2))


def output_error(message: str, json_mode: bool) -> None:
    if json_mode:
        output_result(CommandResult.error(message), True)
    else:
        click.echo(f"Error: {message}", err=True)


def write_results(path: str | Path, results: Sequence[Any]) -> None:
    """Write per-unit results as a pretty-printed JSON list."""
    Path(path).write_text(json.dumps([r.to_dict() for r in results], indent=2) + "\n", encoding="utf-8")
