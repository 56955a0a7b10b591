"""
Tests for the chat LLM client.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from rag_context.ai.llm_client import OpenAIClient, get_llm_client


def completion(content="Twice a day.", prompt_tokens=100, completion_tokens=20):
    return Mock(
        choices=[Mock(message=Mock(content=content))],
        usage=Mock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class TestOpenAIClient:
    """Tests for OpenAIClient.chat."""

    def setup_method(self):
        self.sdk = MagicMock()
        self.sdk.chat.completions.create = AsyncMock(return_value=completion())
        self.client = OpenAIClient(api_key="sk-test", client=self.sdk)

    def test_system_prompt_first(self):
        asyncio.run(self.client.chat(
            [{"role": "user", "content": "How often to feed?"}],
            system="Use the context.",
        ))

        kwargs = self.sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [
            {"role": "system", "content": "Use the context."},
            {"role": "user", "content": "How often to feed?"},
        ]

    def test_response_and_cost(self):
        response = asyncio.run(self.client.chat([{"role": "user", "content": "q"}]))

        assert response.content == "Twice a day."
        assert response.total_tokens == 120
        assert response.cost_usd == pytest.approx((100 * 0.15 + 20 * 0.6) / 1_000_000)

    def test_requires_key(self):
        client = OpenAIClient(api_key=None)

        with pytest.raises(ValueError):
            asyncio.run(client.chat([{"role": "user", "content": "q"}]))


class TestGetLLMClient:
    """Tests for the client factory."""

    def test_uses_configured_model(self):
        settings = Mock()
        settings.openai.api_key = "sk-test"
        settings.openai.chat_model = "gpt-4o"

        client = get_llm_client(settings=settings)

        assert isinstance(client, OpenAIClient)
        assert client.model == "gpt-4o"

    def test_no_key(self):
        settings = Mock()
        settings.openai.api_key = None

        with pytest.raises(ValueError, match="No LLM API key"):
            get_llm_client(settings=settings)
