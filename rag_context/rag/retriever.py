"""
RAG Retriever
=============

Turns a user query into grounding context:
1. Normalize the query (drop question words and subject names)
2. Embed it
3. Similarity search for the top-k candidates
4. Keep candidates scoring at or above min_score
5. Assemble a character-bounded context block (or return the raw results)
"""

import asyncio
import logging
from typing import FrozenSet, List, Optional, Union

from .embedder import RAGEmbedder
from .models import RetrievalResult
from .query_preprocessing import DEFAULT_STOPWORDS, build_stopwords, preprocess_query
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


CONTEXT_SEPARATOR = "\n\n---\n\n"


def assemble_context(
    results: List[RetrievalResult],
    max_characters: int,
    separator: str = CONTEXT_SEPARATOR,
) -> str:
    """
    Join chunk texts in descending score order within a character budget.

    Greedy by whole chunk: accumulation stops at the first chunk that would
    push the block past max_characters. Chunks are never cut.
    """
    parts: List[str] = []
    length = 0
    for result in sorted(results, key=lambda r: r.score, reverse=True):
        chunk = result.chunk
        if not chunk:
            continue
        added = len(chunk) + (len(separator) if parts else 0)
        if length + added > max_characters:
            break
        parts.append(chunk)
        length += added
    return separator.join(parts)


class RAGRetriever:
    """
    Retrieves relevant chunks from the vector index.
    """

    def __init__(
        self,
        embedder: Optional[RAGEmbedder] = None,
        index: Optional[VectorIndex] = None,
        index_name: Optional[str] = None,
        top_k: int = 10,
        stopwords: FrozenSet[str] = DEFAULT_STOPWORDS,
    ):
        if index is None:
            from .vector_index import PgVectorIndex
            index = PgVectorIndex()
        self.embedder = embedder or RAGEmbedder()
        self.index = index
        self.index_name = index_name or "rag-context"
        self.top_k = top_k
        self.stopwords = stopwords

    @classmethod
    def from_settings(cls, settings=None) -> "RAGRetriever":
        from ..config import get_settings

        settings = settings or get_settings()
        return cls(
            embedder=RAGEmbedder.from_settings(settings),
            index_name=settings.vector_index.index_name,
            top_k=settings.retrieval.top_k,
            stopwords=build_stopwords(settings.retrieval.subject_stopwords),
        )

    async def get_context(
        self,
        query: str,
        namespace: str = "",
        max_characters: int = 3000,
        min_score: float = 0.7,
        return_chunks_only: bool = True,
    ) -> Union[str, List[RetrievalResult]]:
        """
        Retrieve grounding context for a query.

        Args:
            query: Raw user query
            namespace: Index namespace to search
            max_characters: Budget for the assembled context block
            min_score: Similarity threshold (inclusive)
            return_chunks_only: True for a context string, False for the
                filtered results (diagnostic use)

        Returns:
            Context block ("" when nothing passes the threshold) or the
            filtered RetrievalResults ordered by descending score

        Raises:
            EmbeddingError, VectorIndexError
        """
        normalized = preprocess_query(query, self.stopwords)
        vector = await self.embedder.embed(normalized)

        matches = await self.get_matches(vector, namespace)
        kept = sorted(
            (m for m in matches if m.score >= min_score),
            key=lambda m: m.score,
            reverse=True,
        )

        logger.info(
            f"Retrieved {len(matches)} candidates, kept {len(kept)} "
            f"(min_score={min_score}) for query: {normalized[:50]}",
            extra={"index_name": self.index_name, "namespace": namespace, "count": len(kept)},
        )

        if not return_chunks_only:
            return kept
        return assemble_context(kept, max_characters)

    async def get_matches(self, vector: List[float], namespace: str = "") -> List[RetrievalResult]:
        """Top-k similarity search with metadata."""
        return await asyncio.to_thread(
            self.index.query, self.index_name, vector, self.top_k, namespace, True,
        )
