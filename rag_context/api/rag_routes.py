"""
rag-context RAG API Routes
==========================

Endpoints:
    POST /api/context     - Scored sources for a query (diagnostic)
    POST /api/clearIndex  - Delete every record in the configured namespace
    POST /api/chat        - Answer the last message from retrieved context

Failures are logged with full detail; callers get a generic error body.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..ai.llm_client import LLMClient, get_llm_client
from ..config import Settings, get_settings
from ..rag.maintenance import clear_namespace
from ..rag.prompt import build_system_prompt
from ..rag.retriever import RAGRetriever, assemble_context
from ..rag.vector_index import PgVectorIndex, VectorIndex
from .models import (
    ChatRequest,
    ChatResponse,
    ClearIndexResponse,
    ContextRequest,
    ContextResponse,
    ErrorResponse,
    SourceRecord,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["RAG"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_app_settings() -> Settings:
    return get_settings()


def get_vector_index() -> VectorIndex:
    return PgVectorIndex()


def get_retriever(
    settings: Settings = Depends(get_app_settings),
    index: VectorIndex = Depends(get_vector_index),
) -> Optional[RAGRetriever]:
    """Retriever over the request's index, or None when embeddings are not configured."""
    try:
        retriever = RAGRetriever.from_settings(settings)
    except ValueError as e:
        logger.warning(f"Retrieval disabled: {e}")
        return None
    retriever.index = index
    return retriever


def get_chat_client(settings: Settings = Depends(get_app_settings)) -> Optional[LLMClient]:
    """Configured chat client, or None when no key is set."""
    try:
        return get_llm_client(settings=settings)
    except ValueError as e:
        logger.warning(f"Chat disabled: {e}")
        return None


def _sources(results) -> list:
    return [SourceRecord(**r.to_dict()) for r in results]


# =============================================================================
# CONTEXT ENDPOINT
# =============================================================================

@router.post(
    "/context",
    response_model=ContextResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_context(
    request: ContextRequest,
    settings: Settings = Depends(get_app_settings),
    retriever: Optional[RAGRetriever] = Depends(get_retriever),
):
    """
    Scored records above the similarity threshold, highest first.

    Uses the diagnostic character budget; records are identified by
    their content hash.
    """
    query = request.text
    if not query.strip():
        return JSONResponse(status_code=400, content={"error": "No query provided"})

    namespace = request.namespace if request.namespace is not None else settings.vector_index.namespace
    try:
        if retriever is None:
            raise ValueError("Embeddings are not configured")
        results = await retriever.get_context(
            query,
            namespace=namespace,
            max_characters=settings.retrieval.diagnostic_max_characters,
            min_score=settings.retrieval.min_score,
            return_chunks_only=False,
        )
    except Exception:
        logger.exception("Context retrieval failed", extra={"namespace": namespace})
        return JSONResponse(status_code=500, content={"error": "Failed to get context"})

    return ContextResponse(context=_sources(results))


# =============================================================================
# CLEAR INDEX ENDPOINT
# =============================================================================

@router.post("/clearIndex", response_model=ClearIndexResponse)
async def clear_index(
    settings: Settings = Depends(get_app_settings),
    index: VectorIndex = Depends(get_vector_index),
):
    """
    Delete every record in the configured namespace.

    A missing index counts as success (nothing to clear).
    """
    index_name = settings.vector_index.index_name
    if not index_name:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "VECTOR_INDEX_NAME environment variable is not set"},
        )

    namespace = settings.vector_index.namespace
    logger.info(
        f"Clearing {index_name}/{namespace or '(default)'}",
        extra={"index_name": index_name, "namespace": namespace},
    )
    try:
        result = clear_namespace(index, index_name, namespace)
    except Exception as e:
        logger.exception("Clearing index failed", extra={"index_name": index_name, "namespace": namespace})
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e) or "Failed to clear index"},
        )

    return ClearIndexResponse(success=result.success, message=result.message)


# =============================================================================
# CHAT ENDPOINT
# =============================================================================

@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={500: {"model": ErrorResponse}},
)
async def chat(
    request: ChatRequest,
    settings: Settings = Depends(get_app_settings),
    retriever: Optional[RAGRetriever] = Depends(get_retriever),
    llm: Optional[LLMClient] = Depends(get_chat_client),
):
    """
    Answer the last message grounded in retrieved context.

    With no context above the threshold the model is still called and
    instructed to say it does not know.
    """
    question = request.messages[-1].text
    try:
        if llm is None:
            raise ValueError("No chat model configured")
        if retriever is None:
            raise ValueError("Embeddings are not configured")
        results = []
        if question.strip():
            results = await retriever.get_context(
                question,
                namespace=settings.vector_index.namespace,
                max_characters=settings.retrieval.max_characters,
                min_score=settings.retrieval.min_score,
                return_chunks_only=False,
            )
        context = assemble_context(results, settings.retrieval.max_characters)

        response = await llm.chat(
            [{"role": m.role, "content": m.text} for m in request.messages],
            system=build_system_prompt(context),
        )
    except Exception:
        logger.exception("Chat request failed")
        return JSONResponse(status_code=500, content={"error": "Failed to process chat request"})

    logger.info(f"Answered with {len(results)} sources ({response.total_tokens} tokens)")
    return ChatResponse(answer=response.content, sources=_sources(results))
