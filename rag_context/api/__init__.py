"""rag-context HTTP API (FastAPI)."""
