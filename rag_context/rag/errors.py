"""
RAG Errors
==========

Failure taxonomy for ingestion and retrieval.

Page-level failures (FetchError, DocumentAccessError on a linked page) are
recoverable inside a crawl; everything else aborts the operation it
occurred in.
"""

from enum import Enum
from typing import Optional


class RAGError(Exception):
    """Base exception for the retrieval-augmented pipeline."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class FetchError(RAGError):
    """A single page could not be retrieved."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")


class CrawlError(RAGError):
    """The crawl produced no usable pages (or the seed itself failed)."""

    def __init__(self, seed_url: str, message: str):
        self.seed_url = seed_url
        super().__init__(message)


class EmbeddingError(RAGError):
    """The embedding service failed or returned a malformed vector."""
    pass


class VectorIndexError(RAGError):
    """Index creation, upsert, query or delete failed."""

    def __init__(self, message: str, index_name: Optional[str] = None, namespace: Optional[str] = None):
        self.index_name = index_name
        self.namespace = namespace
        context = []
        if index_name is not None:
            context.append(f"index={index_name}")
        if namespace is not None:
            context.append(f"namespace={namespace or '(default)'}")
        if context:
            message = f"{message} [{', '.join(context)}]"
        super().__init__(message)


class AccessFailure(str, Enum):
    """Why a hosted document could not be exported."""
    NOT_FOUND = "not_found"                  # deleted or wrong id
    PERMISSION_DENIED = "permission_denied"  # not shared with the service account
    NOT_CONFIGURED = "not_configured"        # no usable service account credentials
    UNKNOWN = "unknown"


class DocumentAccessError(RAGError):
    """Hosted-document export was denied or the document does not exist."""

    REMEDIATION = {
        AccessFailure.NOT_FOUND: "Make sure the document exists and the link is correct.",
        AccessFailure.PERMISSION_DENIED: "Share the document with the service account email.",
        AccessFailure.NOT_CONFIGURED: "Set GOOGLE_SERVICE_ACCOUNT_KEY to a valid service account JSON.",
        AccessFailure.UNKNOWN: "Check the export service status and retry.",
    }

    def __init__(self, doc_id: str, reason: AccessFailure, detail: Optional[str] = None):
        self.doc_id = doc_id
        self.reason = reason
        message = f"Cannot export document {doc_id} ({reason.value}). {self.REMEDIATION[reason]}"
        if detail:
            message += f" Detail: {detail}"
        super().__init__(message)
