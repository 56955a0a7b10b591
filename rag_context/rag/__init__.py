"""
rag-context RAG Module
======================

Crawl -> chunk -> embed -> index, and query -> context retrieval.

Architecture:
- pgvector for vector storage (one registry row per named index)
- OpenAI text-embedding-3-small for embeddings (1536 dimensions)
- Records keyed by MD5 of the chunk text, so re-ingestion overwrites
"""

from .chunker import RAGChunker
from .crawler import Crawler
from .embedder import RAGEmbedder
from .errors import (
    AccessFailure,
    CrawlError,
    DocumentAccessError,
    EmbeddingError,
    FetchError,
    RAGError,
    VectorIndexError,
)
from .ingestion import RAGIngestion, SeedRequest, seed
from .maintenance import ClearResult, clear_namespace
from .models import (
    Chunk,
    Document,
    IndexRecord,
    MarkdownSplit,
    RecursiveSplit,
    RetrievalResult,
    SplittingMethod,
)
from .query_preprocessing import build_stopwords, preprocess_query
from .retriever import RAGRetriever, assemble_context
from .vector_index import PgVectorIndex, VectorIndex

__all__ = [
    "RAGChunker",
    "Crawler",
    "RAGEmbedder",
    "RAGIngestion",
    "RAGRetriever",
    "SeedRequest",
    "seed",
    "ClearResult",
    "clear_namespace",
    "assemble_context",
    "build_stopwords",
    "preprocess_query",
    "VectorIndex",
    "PgVectorIndex",
    "Chunk",
    "Document",
    "IndexRecord",
    "RetrievalResult",
    "RecursiveSplit",
    "MarkdownSplit",
    "SplittingMethod",
    "RAGError",
    "FetchError",
    "CrawlError",
    "EmbeddingError",
    "VectorIndexError",
    "DocumentAccessError",
    "AccessFailure",
]
