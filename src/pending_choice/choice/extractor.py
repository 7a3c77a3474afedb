# src/pending_choice/choice/extractor.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..core.ports import ModelService
from ..tasks.task_models import Candidate, Decision, Task
from .prompts import compose_option_prompt, parse_json_object_from_text

logger = logging.getLogger(__name__)

_NULL_WORDS = {"", "null", "none"}


def build_candidates(tasks: Iterable[Task]) -> list[Candidate]:
    """Keep tasks that have options; number them 1..n in store order."""
    out: list[Candidate] = []
    for task in tasks:
        options = task.options
        if not options:
            continue
        out.append(Candidate(position=len(out) + 1, task=task, options=options))
    return out


def _coerce_task_id(raw: Any) -> int | None:
    # bool is an int subclass; "true" is not a position.
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str):
        s = raw.strip()
        if s.startswith("#"):
            s = s[1:]
        # str.isdigit() also accepts "²" and other digits int() rejects.
        return int(s) if s.isascii() and s.isdigit() else None
    return None


def _coerce_option(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    s = raw.strip()
    if s.lower() in _NULL_WORDS:
        return None
    return s


def decision_from_payload(payload: dict[str, Any] | None) -> Decision:
    """Shape-check a parsed payload. Never raises; bad fields become None."""
    if not payload:
        return Decision()
    return Decision(
        task_id=_coerce_task_id(payload.get("taskId")),
        selected_option=_coerce_option(payload.get("selectedOption")),
    )


class OptionExtractor:
    """
    Turns a free-form reply into a Decision via the model service.

    Only the model call itself may raise; decoding failures are folded into
    an empty Decision so the caller falls back to listing the options.
    """

    def __init__(
        self,
        model: ModelService,
        *,
        temperature: float = 0.0,
        max_tokens: int = 128,
        stop_sequences: Sequence[str] = (),
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.stop_sequences = list(stop_sequences)

    async def extract(self, candidates: Sequence[Candidate], message_text: str) -> Decision:
        if not candidates:
            return Decision()

        prompt = compose_option_prompt(candidates, message_text)
        raw = await self.model.complete(
            prompt,
            stop_sequences=self.stop_sequences,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        payload = parse_json_object_from_text(raw)
        if payload is None:
            logger.info("Option extraction: no JSON object in model output. Raw=%r", (raw or "")[:500])
            return Decision()

        decision = decision_from_payload(payload)
        logger.debug("Option extraction decision=%s payload=%r", decision, payload)
        return decision
