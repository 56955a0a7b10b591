"""
rag-context FastAPI Application
===============================

REST API over the context index.

Endpoints:
    GET  /api/health      - Health check
    POST /api/context     - Scored sources for a query
    POST /api/clearIndex  - Clear the configured namespace
    POST /api/chat        - Grounded answer

Usage:
    uvicorn rag_context.api.main:app --reload --port 8000

    Or with CLI:
    python -m rag_context.api.main
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from .. import __version__, db
from ..config import get_settings
from ..logging_config import setup_logging_from_settings
from .models import HealthResponse
from .rag_routes import router as rag_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging_from_settings()
    logger.info("Starting rag-context API...")

    # Initialize DB pool
    db.get_pool()

    yield

    # Cleanup
    db.close_pool()
    logger.info("Shutting down rag-context API...")


# Create FastAPI app
app = FastAPI(
    title="rag-context API",
    description="Retrieval-augmented context over crawled documents",
    version=__version__,
    lifespan=lifespan,
)

# CORS configuration
# In production, set CORS_ORIGINS env var (comma-separated)
_default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra_origins = os.getenv("CORS_ORIGINS", "")
if _extra_origins:
    _default_origins.extend([o.strip() for o in _extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=_default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rag_router)


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Reports database connectivity (and pgvector version) plus whether an
    embedding key is configured.
    """
    db_health = db.check_health()
    embeddings = "configured" if get_settings().openai.api_key else "not_configured"

    healthy = db_health["status"] == "connected" and embeddings == "configured"

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        database=db_health["status"],
        database_version=db_health.get("version"),
        pgvector=db_health.get("pgvector"),
        embeddings=embeddings,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rag_context.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=False,
    )
