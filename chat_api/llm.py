"""AI reply clients.

The chat handler only needs ``generate_reply(prompt) -> str``. The provider
behind it is picked by ``AI_PROVIDER`` so it can be swapped without touching
the handlers.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from openai import OpenAI, AzureOpenAI
from openai.types.chat import ChatCompletionMessageParam

from .config import (
    AI_PROVIDER, openai_api_key, openai_model,
    azure_openai_api_key, azure_openai_endpoint, azure_openai_deployment,
    azure_openai_api_version, gemini_api_key, gemini_model, MAX_COMPLETION_TOKENS,
)

logger = logging.getLogger(__name__)


class EmptyReplyError(RuntimeError):
    """The provider answered but produced no text."""


class AIReplyClient(ABC):
    """Submit a prompt, receive a completion string."""

    provider = "unknown"

    @abstractmethod
    def generate_reply(self, prompt: str) -> str:
        pass


class OpenAIReplyClient(AIReplyClient):
    """Chat completions through an OpenAI or Azure OpenAI client."""

    provider = "openai"

    def __init__(self, client: Any, model: str, max_completion_tokens: Optional[int] = None):
        self._client = client
        self.model = model
        self.max_completion_tokens = max_completion_tokens

    def generate_reply(self, prompt: str) -> str:
        messages_payload: List[ChatCompletionMessageParam] = [
            {"role": "user", "content": prompt},
        ]
        kwargs: Dict[str, Any] = {}
        if self.max_completion_tokens:
            kwargs["max_completion_tokens"] = self.max_completion_tokens

        resp = self._client.chat.completions.create(
            model=self.model,
            messages=messages_payload,
            **kwargs
        )

        usage = getattr(resp, "usage", None)
        if usage:
            logger.info(f"LLM tokens used - prompt: {getattr(usage, 'prompt_tokens', None)}, "
                        f"completion: {getattr(usage, 'completion_tokens', None)}, "
                        f"total: {getattr(usage, 'total_tokens', None)}")

        content = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not content:
            raise EmptyReplyError(f"{self.provider} returned an empty reply")
        return content


class AzureOpenAIReplyClient(OpenAIReplyClient):
    provider = "azure_openai"


class GeminiReplyClient(AIReplyClient):
    """Single-shot text generation through google-genai."""

    provider = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-2.0-flash",
                 client: Any = None, max_completion_tokens: Optional[int] = None):
        if client is None:
            from google import genai
            client = genai.Client(api_key=api_key)
        self._client = client
        self.model = model
        self.max_completion_tokens = max_completion_tokens

    def generate_reply(self, prompt: str) -> str:
        kwargs: Dict[str, Any] = {}
        if self.max_completion_tokens:
            kwargs["config"] = {"max_output_tokens": self.max_completion_tokens}

        resp = self._client.models.generate_content(model=self.model, contents=prompt, **kwargs)

        usage = getattr(resp, "usage_metadata", None)
        if usage:
            logger.info(f"LLM tokens used - prompt: {getattr(usage, 'prompt_token_count', None)}, "
                        f"completion: {getattr(usage, 'candidates_token_count', None)}, "
                        f"total: {getattr(usage, 'total_token_count', None)}")

        content = (getattr(resp, "text", None) or "").strip()
        if not content:
            raise EmptyReplyError("gemini returned an empty reply")
        return content


def create_ai_client(provider: Optional[str] = None) -> AIReplyClient:
    """Build the configured AI reply client.

    Raises RuntimeError when the selected provider has no credentials.
    """
    provider = (provider or AI_PROVIDER).lower()
    logger.info(f"Configuring AI reply provider: {provider}")

    if provider == "openai":
        if not openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is not defined in the environment variables")
        # upstream failures surface immediately, no SDK-level retries
        client = OpenAI(api_key=openai_api_key, max_retries=0)
        return OpenAIReplyClient(client, openai_model, MAX_COMPLETION_TOKENS)

    if provider == "azure_openai":
        if not (azure_openai_api_key and azure_openai_endpoint and azure_openai_deployment):
            raise RuntimeError(
                "AZURE_OPENAI_API_KEY, AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_DEPLOYMENT must be set"
            )
        client = AzureOpenAI(
            api_key=azure_openai_api_key,
            api_version=azure_openai_api_version or "2024-02-01",
            azure_endpoint=azure_openai_endpoint,
            max_retries=0,
        )
        return AzureOpenAIReplyClient(client, azure_openai_deployment, MAX_COMPLETION_TOKENS)

    if provider == "gemini":
        if not gemini_api_key:
            raise RuntimeError("GEMINI_API_KEY is not defined in the environment variables")
        return GeminiReplyClient(gemini_api_key, gemini_model, max_completion_tokens=MAX_COMPLETION_TOKENS)

    raise RuntimeError(f"Unknown AI_PROVIDER '{provider}'")
