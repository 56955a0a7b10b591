"""
RAG Embedder
============

Generates embeddings using OpenAI text-embedding-3-small.
1536 dimensions, optimized for cost/latency.

No retries: a failed or malformed embedding surfaces as EmbeddingError
and the caller decides whether the run or request fails.
"""

import asyncio
import logging
import math
import os
from typing import List, Optional

import openai

from .errors import EmbeddingError
from .models import EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)


class RAGEmbedder:
    """
    Generates embeddings using OpenAI text-embedding-3-small.

    Cost: ~$0.00002 per 1K tokens
    Dimensions: 1536
    Max tokens: 8191
    """

    MODEL = "text-embedding-3-small"
    DIMENSIONS = EMBEDDING_DIMENSIONS

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_concurrent: int = 8,
        timeout: float = 30.0,
        client=None,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY") or os.getenv("GPT_API_KEY")
        if not self.api_key and client is None:
            raise ValueError("OpenAI API key required for embeddings")

        self.model = model or self.MODEL
        self.max_concurrent = max_concurrent
        self.timeout = timeout

        self._client = client
        self._total_tokens = 0
        self._total_requests = 0

    @classmethod
    def from_settings(cls, settings=None) -> "RAGEmbedder":
        from ..config import get_settings

        cfg = (settings or get_settings()).openai
        return cls(
            api_key=cfg.api_key,
            model=cfg.embedding_model,
            max_concurrent=cfg.max_concurrent_embeddings,
            timeout=cfg.request_timeout,
        )

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding vector for a single text.

        Raises:
            EmbeddingError: service unreachable, timed out, or returned
                a vector of the wrong shape
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text.replace("\n", " "),
                dimensions=self.DIMENSIONS,
            )
        except openai.APITimeoutError as e:
            raise EmbeddingError(f"Embedding request timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            raise EmbeddingError(f"Embedding service error: {e}") from e

        try:
            embedding = response.data[0].embedding
        except (AttributeError, IndexError, TypeError) as e:
            raise EmbeddingError("Embedding response contained no vector") from e

        vector = self._validate(embedding)

        usage = getattr(response, "usage", None)
        self._total_tokens += getattr(usage, "total_tokens", 0) or 0
        self._total_requests += 1
        return vector

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts concurrently, preserving input order.

        At most `max_concurrent` requests are in flight. The first failure
        cancels the remaining requests and propagates.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def embed_with_limit(text: str) -> List[float]:
            async with semaphore:
                return await self.embed(text)

        tasks = [asyncio.ensure_future(embed_with_limit(t)) for t in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    def _validate(self, embedding) -> List[float]:
        if not isinstance(embedding, (list, tuple)):
            raise EmbeddingError(f"Embedding is not a list: {type(embedding).__name__}")
        if len(embedding) != self.DIMENSIONS:
            raise EmbeddingError(
                f"Embedding has {len(embedding)} dimensions, expected {self.DIMENSIONS}"
            )
        for value in embedding:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise EmbeddingError(f"Embedding contains a non-numeric value: {value!r}")
        return [float(v) for v in embedding]

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def total_requests(self) -> int:
        return self._total_requests

    @property
    def estimated_cost(self) -> float:
        """Estimated cost in USD."""
        # text-embedding-3-small: $0.00002 per 1K tokens
        return (self._total_tokens / 1000) * 0.00002
