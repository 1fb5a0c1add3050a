"""Instruction evaluation (primer.eval.json).

Each case asks the model the same question with and without the
repository instructions; a judge model grades the answers against the
case's expectation. Cases are independent: a model failure is recorded
on that case and the run continues.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from .errors import NotFoundError, ValidationError
from .instructions import INSTRUCTIONS_PATH
from .model import ModelError, TextGenerator
from .output import CommandResult, ProgressReporter, SilentProgressReporter, status_for
from .prompts import EVAL_ANSWER_SYSTEM, JUDGE_SYSTEM, eval_answer_system, judge_prompt

log = logging.getLogger(__name__)

EVAL_CONFIG_FILENAME = "primer.eval.json"

EVAL_SCAFFOLD = {
    "instructionFile": INSTRUCTIONS_PATH.as_posix(),
    "cases": [
        {
            "id": "project-overview",
            "prompt": "Summarize what this project does and list the main entry points.",
            "expectation": "Should mention the primary purpose and key files/directories.",
        },
        {
            "id": "tech-stack",
            "prompt": "What languages and frameworks does this project use?",
            "expectation": "Should correctly identify the main languages and frameworks.",
        },
        {
            "id": "build-commands",
            "prompt": "How do I build and test this project?",
            "expectation": "Should provide the correct build and test commands from package.json or equivalent.",
        },
    ],
}

VERDICTS = ("pass", "fail")
PREFERENCES = ("with", "without", "tie")


@dataclass(frozen=True)
class EvalCase:
    id: str
    prompt: str
    expectation: str


@dataclass(frozen=True)
class EvalConfig:
    instruction_file: str
    cases: tuple[EvalCase, ...]


@dataclass(frozen=True)
class CaseResult:
    """Outcome of one case: a verdict from the judge, or the error that stopped it."""

    id: str
    verdict: str | None = None
    preferred: str | None = None
    rationale: str = ""
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.verdict == "pass"

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"id": self.id, "error": self.error}
        return {
            "id": self.id,
            "verdict": self.verdict,
            "preferred": self.preferred,
            "rationale": self.rationale,
        }


def default_eval_config_path(repo_path: str | Path) -> Path:
    return Path(repo_path).resolve() / EVAL_CONFIG_FILENAME


def init_eval_config(repo_path: str | Path) -> Path:
    """Write the starter config. Refuses to replace an existing file."""
    path = default_eval_config_path(repo_path)
    try:
        with open(path, "x", encoding="utf-8") as f:
            f.write(json.dumps(EVAL_SCAFFOLD, indent=2) + "\n")
    except FileExistsError:
        raise ValidationError(f"{EVAL_CONFIG_FILENAME} already exists at {path}") from None
    return path


def parse_eval_config(data: object, source: str = EVAL_CONFIG_FILENAME) -> EvalConfig:
    if not isinstance(data, dict):
        raise ValidationError(f"{source}: expected a JSON object")
    instruction_file = data.get("instructionFile", INSTRUCTIONS_PATH.as_posix())
    if not isinstance(instruction_file, str) or not instruction_file:
        raise ValidationError(f"{source}: 'instructionFile' must be a path")
    raw_cases = data.get("cases")
    if not isinstance(raw_cases, list) or not raw_cases:
        raise ValidationError(f"{source}: 'cases' must be a non-empty list")

    cases: list[EvalCase] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_cases):
        if not isinstance(raw, dict):
            raise ValidationError(f"{source}: cases[{i}] must be an object")
        fields = {k: raw.get(k) for k in ("id", "prompt", "expectation")}
        missing = [k for k, v in fields.items() if not isinstance(v, str) or not v.strip()]
        if missing:
            raise ValidationError(f"{source}: cases[{i}] needs {', '.join(missing)}")
        if fields["id"] in seen:
            raise ValidationError(f"{source}: duplicate case id {fields['id']!r}")
        seen.add(fields["id"])
        cases.append(EvalCase(**fields))
    return EvalConfig(instruction_file=instruction_file, cases=tuple(cases))


def load_eval_config(path: str | Path) -> EvalConfig:
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(f"Eval config not found: {path}. Run 'primer eval --init' to create one.")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path}: invalid JSON ({e.msg} at line {e.lineno})") from e
    return parse_eval_config(data, source=str(path))


def run_eval(
    config: EvalConfig,
    repo_path: str | Path,
    answerer: TextGenerator,
    judge: TextGenerator,
    progress: ProgressReporter | None = None,
) -> list[CaseResult]:
    """Evaluate every case in order. The instruction file must exist."""
    progress = progress or SilentProgressReporter()
    instructions_path = Path(repo_path).resolve() / config.instruction_file
    if not instructions_path.is_file():
        raise NotFoundError(
            f"Instruction file not found: {instructions_path}. Run 'primer instructions' first."
        )
    instructions = instructions_path.read_text(encoding="utf-8", errors="replace")

    results = []
    for case in config.cases:
        progress.update(f"Evaluating {case.id}...")
        result = evaluate_case(case, instructions, answerer, judge)
        if result.error:
            progress.fail(f"{case.id} ({result.error})")
        else:
            progress.succeed(f"{case.id}: {result.verdict}")
        results.append(result)
    progress.done()
    return results


def evaluate_case(case: EvalCase, instructions: str, answerer: TextGenerator, judge: TextGenerator) -> CaseResult:
    try:
        with_answer = answerer.generate(case.prompt, system=eval_answer_system(instructions))
        without_answer = answerer.generate(case.prompt, system=EVAL_ANSWER_SYSTEM)
        grading = judge.generate(
            judge_prompt(case.prompt, case.expectation, with_answer, without_answer),
            system=JUDGE_SYSTEM,
        )
        verdict, preferred, rationale = parse_judgement(grading)
    except ModelError as e:
        log.debug("Case %s failed", case.id, exc_info=True)
        return CaseResult(case.id, error=str(e))
    return CaseResult(case.id, verdict=verdict, preferred=preferred, rationale=rationale)


def parse_judgement(text: str) -> tuple[str, str, str]:
    """Extract (verdict, preferred, rationale) from the judge's reply."""
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise ModelError("Judge reply contained no JSON object")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ModelError(f"Judge reply was not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ModelError("Judge reply was not a JSON object")

    verdict = str(data.get("verdict", "")).lower()
    if verdict not in VERDICTS:
        raise ModelError(f"Judge returned an unknown verdict: {data.get('verdict')!r}")
    preferred = str(data.get("preferred", "tie")).lower()
    if preferred not in PREFERENCES:
        preferred = "tie"
    return verdict, preferred, str(data.get("rationale", ""))


def summarize_eval(results: Sequence[CaseResult]) -> CommandResult[dict[str, Any]]:
    graded = [r for r in results if not r.error]
    errored = len(results) - len(graded)
    passed = sum(1 for r in graded if r.passed)
    return CommandResult(
        status=status_for(len(graded), errored),
        data={
            "total": len(results),
            "passed": passed,
            "failed": len(graded) - passed,
            "errored": errored,
            "results": list(results),
        },
        errors=tuple(f"{r.id}: {r.error}" for r in results if r.error),
    )
