# src/pending_choice/choice/prompts.py

"""
Prompt rendering and tolerant JSON decoding for option extraction.

The template below is a wire contract with the model: task blocks are
numbered by candidate position (1-based), every task lists ABORT last,
and the reply must be a JSON object inside a ```json fenced block.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from typing import Any

from ..tasks.task_models import ABORT_DESCRIPTION, ABORT_OPTION, Candidate

OPTION_EXTRACTION_TEMPLATE = """# Task: Extract selected task and option from user message

# Available Tasks:
{tasks}

# Recent Messages:
{recent_messages}

# Instructions:
1. Review the user's message and identify which task and option they are selecting
2. Match against the available tasks and their options, including ABORT
3. Return the task ID and selected option name exactly as listed above
4. If no clear selection is made, return null for both fields

Return in JSON format:
```json
{{
  "taskId": number | null,
  "selectedOption": "OPTION_NAME" | null
}}
```

Make sure to include the ```json``` tags around the JSON object."""

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def _format_task_block(candidate: Candidate) -> str:
    lines = [f"Task {candidate.position}: {candidate.task.name}", "Available options:"]
    lines.extend(f"- {opt.name}: {opt.description}" for opt in candidate.options)
    lines.append(f"- {ABORT_OPTION}: {ABORT_DESCRIPTION}")
    return "\n".join(lines) + "\n"


def compose_option_prompt(candidates: Sequence[Candidate], recent_messages: str) -> str:
    tasks = "\n".join(_format_task_block(c) for c in candidates)
    return OPTION_EXTRACTION_TEMPLATE.format(
        tasks=tasks,
        recent_messages=(recent_messages or "").strip(),
    )


def format_options_listing(candidates: Sequence[Candidate]) -> str:
    """User-facing list of every pending task and its options, ABORT included."""
    parts = ["Please select a valid option from one of these tasks:", ""]
    for c in candidates:
        parts.append(f"{c.position}. **{c.task.name}**:")
        for opt in c.options:
            if opt.description and opt.description != opt.name:
                parts.append(f"- {opt.name}: {opt.description}")
            else:
                parts.append(f"- {opt.name}")
        parts.append(f"- {ABORT_OPTION}")
        parts.append("")
    return "\n".join(parts).rstrip() + "\n"


def _first_json_object(text: str) -> dict[str, Any] | None:
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            val, _end = decoder.raw_decode(text, idx)
        except ValueError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(val, dict):
            return val
        idx = text.find("{", idx + 1)
    return None


def parse_json_object_from_text(text: str | None) -> dict[str, Any] | None:
    """
    Find a JSON object in free-form model output.

    Fenced ```json blocks win; otherwise the first well-formed object
    anywhere in the text is returned. None if nothing parses.
    """
    if not text:
        return None

    for m in _FENCED_JSON_RE.finditer(text):
        obj = _first_json_object(m.group(1))
        if obj is not None:
            return obj

    return _first_json_object(text)
