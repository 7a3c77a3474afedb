# src/pending_choice/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

_BAD_MODEL_COOLDOWN_SECONDS = 3600.0


class ModelServiceError(RuntimeError):
    """The model service could not produce a completion."""


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set CHOICE_OPENROUTER_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "LLM is not configured (no models). Set CHOICE_LLM_MODELS in .env."
    if "LLM base URL is not set" in msg:
        return "LLM is not configured (missing base URL). Set CHOICE_OPENROUTER_BASE_URL in .env."
    return msg


def _message_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    return content or ""


class OpenRouterModelService:
    """
    OpenAI-compatible completion client (OpenRouter by default).

    Behavior:
    - Tries models in the order from settings (CHOICE_LLM_MODELS).
    - 404 (model not available) -> cooldown for an hour, try next.
    - Rate limit / network issues / empty output -> try next.
    - Auth issues -> fail fast (no retries across models).
    SDK-level retries are disabled so fallback across models stays quick.
    """

    def __init__(self, settings: Any) -> None:
        api_key = getattr(settings, "openrouter_api_key", None)
        base_url = getattr(settings, "openrouter_base_url", "") or ""

        if not api_key or not str(api_key).strip():
            raise ModelServiceError("LLM API key is not set. Set CHOICE_OPENROUTER_API_KEY in your .env.")
        if not base_url.strip():
            raise ModelServiceError("LLM base URL is not set. Set CHOICE_OPENROUTER_BASE_URL in your .env.")

        self.models: list[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m.strip()]
        if not self.models:
            raise ModelServiceError("LLM model list is empty. Set CHOICE_LLM_MODELS in your .env.")

        self.headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})

        connect = float(getattr(settings, "llm_connect_timeout_seconds", 5.0))
        read = float(getattr(settings, "llm_read_timeout_seconds", 25.0))
        self.timeout = httpx.Timeout(connect=connect, read=read, write=10.0, pool=connect)
        self._client = AsyncOpenAI(
            base_url=str(base_url),
            api_key=str(api_key),
            timeout=self.timeout,
            max_retries=0,
        )
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

    async def close(self) -> None:
        await self._client.close()

    async def complete(
        self,
        prompt: str,
        *,
        stop_sequences: Sequence[str] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {}
        if stop_sequences:
            kwargs["stop"] = list(stop_sequences)
        if temperature is not None:
            kwargs["temperature"] = float(temperature)
        if max_tokens is not None:
            kwargs["max_tokens"] = int(max_tokens)

        last_error: Exception | None = None
        now = time.monotonic()

        for model in self.models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            try:
                response = await self._client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    extra_headers=self.headers or None,
                    **kwargs,
                )
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise ModelServiceError(
                        "LLM authentication failed. Check your API key (CHOICE_OPENROUTER_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + _BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            text = _message_text(response)
            if text.strip():
                logger.debug("LLM: completion from model=%s in %.2fs", model, time.monotonic() - t0)
                return text

            last_error = ModelServiceError(f"Model returned no content: {model}")
            logger.info("LLM: empty completion from model=%s, trying next", model)

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise ModelServiceError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise ModelServiceError("LLM network/timeout error. Try again later or change models.") from last_error
            raise ModelServiceError("All LLM models failed.") from last_error

        raise ModelServiceError("All LLM models are cooling down after errors.")
