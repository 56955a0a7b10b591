"""
rag-context LLM Client
======================

Abstract chat client plus the OpenAI implementation.

The LLM answers a conversation under a system prompt that carries the
retrieved context block.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

import openai

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """One chat completion."""
    content: str
    model: str
    tokens_input: int
    tokens_output: int
    cost_usd: float

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


class LLMClient(ABC):
    """Abstract chat client."""

    @abstractmethod
    async def chat(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Answer the last message of a conversation."""


class OpenAIClient(LLMClient):
    """
    Client for OpenAI chat completions.

    Models:
    - gpt-4o-mini (default, cheap)
    - gpt-4o
    """

    # Pricing per 1M tokens (USD)
    PRICING = {
        "gpt-4o": {"input": 2.5, "output": 10.0},
        "gpt-4o-mini": {"input": 0.15, "output": 0.6},
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self._client = client

        if not self.api_key and client is None:
            logger.warning("OPENAI_API_KEY not set - chat disabled")

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        pricing = self.PRICING.get(self.model, {"input": 2.5, "output": 10.0})
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
        return round(cost, 6)

    async def chat(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> LLMResponse:
        if not self.api_key and self._client is None:
            raise ValueError("OPENAI_API_KEY required")

        payload = []
        if system:
            payload.append({"role": "system", "content": system})
        payload.extend({"role": m["role"], "content": m["content"]} for m in messages)

        response = await self._get_client().chat.completions.create(
            model=self.model,
            messages=payload,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return LLMResponse(
            content=content,
            model=self.model,
            tokens_input=input_tokens,
            tokens_output=output_tokens,
            cost_usd=self._calculate_cost(input_tokens, output_tokens),
        )


def get_llm_client(model: Optional[str] = None, settings=None) -> LLMClient:
    """
    Factory for the configured LLM client.

    Raises:
        ValueError: no OpenAI key is configured
    """
    from ..config import get_settings

    settings = settings or get_settings()
    if not settings.openai.api_key:
        raise ValueError("No LLM API key found. Set OPENAI_API_KEY or GPT_API_KEY")

    return OpenAIClient(api_key=settings.openai.api_key, model=model or settings.openai.chat_model)
