# src/pending_choice/llm/offline.py

from __future__ import annotations

from collections.abc import Sequence


class OfflineModelService:
    """
    Offline deterministic model service used for demos when no external API is configured.

    Behavior:
    - Option extraction prompts -> a null decision, so the engine lists the options
    - Anything else -> a short notice
    """

    async def complete(
        self,
        prompt: str,
        *,
        stop_sequences: Sequence[str] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        if "extract selected task and option" in (prompt or "").lower():
            return '```json\n{"taskId": null, "selectedOption": null}\n```'
        return "Offline demo mode: no external LLM is configured."
