"""
RAG Chunker
===========

Splits page text into chunks for embedding.

Rules:
- Recursive strategy: caller-chosen size/overlap, separators from
  paragraph down to word
- Markdown strategy: structural boundaries first, fixed 1000/200 sizing
- Chunk text and page excerpt are capped at 36000 UTF-8 bytes
- Stable chunking (same input = same chunks = same hashes)
"""

import hashlib
import logging
from typing import List, Optional

from langchain_text_splitters import MarkdownTextSplitter, RecursiveCharacterTextSplitter

from .models import (
    MAX_METADATA_BYTES,
    Chunk,
    Document,
    MarkdownSplit,
    RecursiveSplit,
    SplitStrategy,
)

logger = logging.getLogger(__name__)


# Paragraph, line, sentence, word, character
RECURSIVE_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


def truncate_by_bytes(text: str, max_bytes: int = MAX_METADATA_BYTES) -> str:
    """
    Truncate text to at most max_bytes of UTF-8.

    A multi-byte character straddling the limit is dropped whole.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def content_hash(text: str) -> str:
    """MD5 hex digest of the text; the record id in the vector index."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


class RAGChunker:
    """
    Splits documents into overlapping chunks and stamps each one with
    its source URL and content hash.
    """

    def __init__(self, strategy: Optional[SplitStrategy] = None):
        self.strategy = strategy or MarkdownSplit()

    def split(self, content: str, source_url: str, strategy: Optional[SplitStrategy] = None) -> List[Chunk]:
        """
        Split raw content into chunks.

        Args:
            content: Page text
            source_url: URL the text came from
            strategy: Overrides the chunker's default strategy

        Returns:
            List of Chunk objects (empty for blank content)
        """
        if not content or not content.strip():
            logger.debug(f"Skipping empty content from {source_url}")
            return []

        strategy = strategy or self.strategy
        splitter = self._build_splitter(strategy)
        page_excerpt = truncate_by_bytes(content)

        chunks = []
        for piece in splitter.split_text(content):
            if not piece.strip():
                continue
            text = truncate_by_bytes(piece)
            chunks.append(Chunk(
                text=text,
                source_url=source_url,
                content_hash=content_hash(text),
                page_excerpt=page_excerpt,
                chunk_index=len(chunks),
            ))

        logger.debug(
            f"Split {source_url} into {len(chunks)} chunks ({strategy.method.value})"
        )
        return chunks

    def split_document(self, document: Document, strategy: Optional[SplitStrategy] = None) -> List[Chunk]:
        return self.split(document.content, document.source_url, strategy)

    @staticmethod
    def _build_splitter(strategy: SplitStrategy):
        if isinstance(strategy, RecursiveSplit):
            return RecursiveCharacterTextSplitter(
                chunk_size=strategy.chunk_size,
                chunk_overlap=strategy.chunk_overlap,
                length_function=len,
                separators=RECURSIVE_SEPARATORS,
            )
        if isinstance(strategy, MarkdownSplit):
            return MarkdownTextSplitter(
                chunk_size=MarkdownSplit.chunk_size,
                chunk_overlap=MarkdownSplit.chunk_overlap,
            )
        raise TypeError(f"Unsupported split strategy: {strategy!r}")
