"""Prompt templates for instruction generation.

Each template takes the analysis summary and produces a focused prompt
for the text generator.
"""

from __future__ import annotations

SYSTEM_PROMPT = """You write instructions for AI coding assistants working in a repository.
Be precise and actionable. Prefer concrete commands, paths and conventions
observed in the provided data over generic advice.
Output markdown only, without a YAML frontmatter block."""


def copilot_instructions_prompt(context: str, readme_excerpt: str = "") -> str:
    """Prompt for the repository-wide instructions file."""
    return f"""Write the repository-wide instructions file for AI coding assistants.

REPOSITORY ANALYSIS:
{context}

{f"README EXCERPT:{chr(10)}{readme_excerpt[:1500]}" if readme_excerpt else ""}

Use this structure:

# Copilot Instructions

## Project Overview
<2-3 sentences: what the project does and how it is organized>

## Tech Stack
<languages, frameworks and key libraries>

## Build, Test and Run
<exact commands, taken from the manifests where possible>

## Conventions
<naming, layout, error handling and testing conventions to follow>

## Areas
<one line per area: where it lives and what belongs there>

Keep it under 500 words."""


def area_instructions_prompt(area_name: str, patterns: str, description: str, context: str, files: str) -> str:
    """Prompt for instructions scoped to one area of the repository."""
    return f"""Write instructions for AI coding assistants editing files in the "{area_name}" area.

AREA:
Name: {area_name}
Applies to: {patterns}
Purpose: {description or "not specified"}

FILES IN THIS AREA (sample):
{files or "(none found)"}

REPOSITORY ANALYSIS:
{context}

Cover what this area is responsible for, the conventions that apply only
here, and the commands to validate changes to it. Do not repeat
repository-wide guidance.

Keep it under 300 words."""


# --- Evaluation ---

EVAL_ANSWER_SYSTEM = """You are an AI coding assistant answering questions about a repository.
Answer concisely and concretely."""

JUDGE_SYSTEM = """You grade answers from AI coding assistants.
Reply with a single JSON object and nothing else."""


def eval_answer_system(instructions: str) -> str:
    """System prompt for the answer that has the repository instructions."""
    return f"""{EVAL_ANSWER_SYSTEM}

Follow these repository instructions:

{instructions}"""


def judge_prompt(question: str, expectation: str, with_instructions: str, without_instructions: str) -> str:
    """Prompt asking the judge to grade one case."""
    return f"""QUESTION:
{question}

EXPECTATION:
{expectation}

ANSWER A (with repository instructions):
{with_instructions}

ANSWER B (without repository instructions):
{without_instructions}

Decide whether answer A meets the expectation, and which answer is better.
Respond with JSON only:
{{"verdict": "pass" or "fail", "preferred": "with", "without" or "tie", "rationale": "<one sentence>"}}"""
