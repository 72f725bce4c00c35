"""
Chat-completion backends for AI feedback analysis.

Exactly one backend is active for the lifetime of the process; it is chosen
once in ``create_backend`` from the configured credentials.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import AsyncAzureOpenAI, AsyncOpenAI

from feedback_insights.config import Settings
from feedback_insights.exceptions import ConfigurationError
from feedback_insights.models import ModelUsed

logger = logging.getLogger(__name__)

COMPLETION_PARAMS: Dict[str, Any] = {
    "temperature": 0.3,
    "max_tokens": 800,
    "top_p": 0.95,
    "frequency_penalty": 0.5,
    "presence_penalty": 0.5,
}


@dataclass(frozen=True)
class Completion:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


def _completion_from_response(response: Any) -> Completion:
    choices = getattr(response, "choices", None) or []
    text = ""
    if choices:
        text = (choices[0].message.content or "").strip()

    # Not every deployment reports usage.
    usage = getattr(response, "usage", None)
    return Completion(
        text=text,
        prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
        completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
    )


class CompletionBackend(ABC):
    """A provider that turns chat messages into one completion."""

    model_used: ModelUsed

    @abstractmethod
    async def complete(self, messages: List[Dict[str, str]]) -> Completion:
        """Send ``messages`` and return the first choice."""


class OpenAIBackend(CompletionBackend):
    model_used = ModelUsed.OPENAI

    def __init__(self, api_key: str, model: str = "gpt-4", client: Optional[AsyncOpenAI] = None):
        if not api_key and client is None:
            raise ConfigurationError("OpenAI API key not configured")
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def complete(self, messages: List[Dict[str, str]]) -> Completion:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            **COMPLETION_PARAMS,
        )
        return _completion_from_response(response)


class AzureOpenAIBackend(CompletionBackend):
    model_used = ModelUsed.AZURE

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str = "gpt-4",
        api_version: str = "2024-02-01",
        client: Optional[AsyncAzureOpenAI] = None,
    ):
        if client is None and (not api_key or not endpoint):
            raise ConfigurationError("Azure OpenAI credentials not properly configured")
        self.deployment = deployment
        self._client = client or AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version,
        )

    async def complete(self, messages: List[Dict[str, str]]) -> Completion:
        response = await self._client.chat.completions.create(
            model=self.deployment,
            messages=messages,
            **COMPLETION_PARAMS,
        )
        return _completion_from_response(response)


def create_backend(settings: Settings) -> Optional[CompletionBackend]:
    """
    Pick the AI backend from configured credentials.

    Returns:
        Azure OpenAI when AZURE_OPENAI_KEY is set, OpenAI when OPENAI_API_KEY
        is set, otherwise None (keyword heuristics only).

    Raises:
        ConfigurationError: If the Azure key is set without an endpoint
    """
    if settings.AZURE_OPENAI_KEY:
        backend: CompletionBackend = AzureOpenAIBackend(
            api_key=settings.AZURE_OPENAI_KEY,
            endpoint=settings.AZURE_OPENAI_ENDPOINT,
            deployment=settings.AZURE_OPENAI_DEPLOYMENT,
            api_version=settings.AZURE_OPENAI_API_VERSION,
        )
        logger.info("Azure OpenAI client initialized (deployment=%s)", settings.AZURE_OPENAI_DEPLOYMENT)
        return backend

    if settings.OPENAI_API_KEY:
        backend = OpenAIBackend(api_key=settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL)
        logger.info("OpenAI client initialized (model=%s)", settings.OPENAI_MODEL)
        return backend

    logger.warning("No AI backend configured; falling back to keyword heuristics")
    return None
