"""
RAG Data Models
===============

Dataclasses shared by the crawler, chunker, ingestion and retrieval.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


EMBEDDING_DIMENSIONS = 1536

# Upper bound on any text stored in record metadata
MAX_METADATA_BYTES = 36000


class SplittingMethod(str, Enum):
    """Chunking strategies."""
    RECURSIVE = "recursive"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class RecursiveSplit:
    """Split on paragraph, line, sentence and word boundaries."""
    chunk_size: int = 1000
    chunk_overlap: int = 200

    method: ClassVar[SplittingMethod] = SplittingMethod.RECURSIVE

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be non-negative and smaller than chunk_size")


@dataclass(frozen=True)
class MarkdownSplit:
    """Split at markdown structure first (headings, lists, rules, code fences)."""

    # Fixed sizes; caller-supplied size/overlap do not apply to this strategy
    chunk_size: ClassVar[int] = 1000
    chunk_overlap: ClassVar[int] = 200

    method: ClassVar[SplittingMethod] = SplittingMethod.MARKDOWN


SplitStrategy = Union[RecursiveSplit, MarkdownSplit]


def split_strategy(method: Union[str, SplittingMethod], chunk_size: int = 1000, chunk_overlap: int = 200) -> SplitStrategy:
    """Build a SplitStrategy from the string discriminator used by callers."""
    method = SplittingMethod(method)
    if method is SplittingMethod.RECURSIVE:
        return RecursiveSplit(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    return MarkdownSplit()


@dataclass
class Document:
    """Raw text of one crawled page or exported document."""
    content: str
    source_url: str


@dataclass
class Chunk:
    """A bounded slice of a Document, identified by its content hash."""
    text: str
    source_url: str
    content_hash: str

    # Page content truncated for metadata storage
    page_excerpt: str = ""
    chunk_index: int = 0


@dataclass
class IndexRecord:
    """The persisted unit in the vector index."""
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: Chunk, values: List[float]) -> "IndexRecord":
        return cls(
            id=chunk.content_hash,
            values=values,
            metadata={
                "chunk": chunk.text,
                "text": chunk.page_excerpt,
                "url": chunk.source_url,
                "hash": chunk.content_hash,
            },
        )


@dataclass
class RetrievalResult:
    """An index record with its similarity score (higher = more similar)."""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    values: Optional[List[float]] = None

    @property
    def chunk(self) -> str:
        return self.metadata.get("chunk") or ""

    @property
    def url(self) -> Optional[str]:
        return self.metadata.get("url")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "score": self.score, "metadata": self.metadata}
