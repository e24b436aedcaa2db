"""Inference client — the boundary to the chat-completions provider.

The client is built once by the host process and injected into the turn
orchestrator. Any provider failure surfaces as ``InferenceError``; retries and
timeouts belong to the SDK client configured here.
"""

from __future__ import annotations

from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from sitebrain.config import Settings, get_settings
from sitebrain.core.errors import InferenceError
from sitebrain.core.logging import get_logger

logger = get_logger(__name__)


class InferenceClient(Protocol):
    """Generates a reply for an ordered list of chat messages."""

    async def generate(self, messages: list[dict], model: str | None = None) -> str: ...


class OpenAIInferenceClient:
    """Chat-completions client for any OpenAI-compatible endpoint."""

    def __init__(self, client: AsyncOpenAI, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    @property
    def default_model(self) -> str:
        return self._settings.llm_model

    async def generate(self, messages: list[dict], model: str | None = None) -> str:
        model_id = model or self.default_model
        try:
            completion = await self._client.chat.completions.create(
                model=model_id,
                messages=messages,
                temperature=self._settings.llm_temperature,
                max_tokens=self._settings.llm_max_tokens,
                presence_penalty=self._settings.llm_presence_penalty,
                frequency_penalty=self._settings.llm_frequency_penalty,
            )
        except OpenAIError as e:
            raise InferenceError(str(e), model=model_id) from e

        choice = completion.choices[0] if completion.choices else None
        content = choice.message.content if choice and choice.message else None

        if completion.usage:
            logger.debug(
                "llm_call_completed",
                model=model_id,
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
            )
        return content or ""


def build_inference_client(settings: Settings | None = None) -> OpenAIInferenceClient:
    """Construct the process-wide inference client. Call once at startup."""
    settings = settings or get_settings()
    if not settings.llm_api_key:
        raise InferenceError("OPENROUTER_API_KEY or OPENAI_API_KEY is required")

    client = AsyncOpenAI(
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_seconds,
    )
    return OpenAIInferenceClient(client, settings)
