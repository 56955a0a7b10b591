"""
rag-context Configuration Module
================================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    OPENAI_API_KEY: OpenAI key for embeddings and chat (GPT_API_KEY also accepted)
    OPENAI_EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
    OPENAI_CHAT_MODEL: Answering model (default: gpt-4o-mini)

    DATABASE_HOST / DATABASE_PORT / DATABASE_NAME / DATABASE_USER / DATABASE_PASSWORD:
        PostgreSQL (pgvector) connection

    VECTOR_INDEX_NAME: Target index (default: rag-context)
    VECTOR_NAMESPACE: Namespace inside the index (default: "" = default namespace)
    VECTOR_INDEX_CLOUD / VECTOR_INDEX_REGION: Placement recorded on index creation

    CRAWLER_MAX_DEPTH: Link levels followed from the seed (default: 1)
    CRAWLER_MAX_PAGES: Hard cap on fetched pages (default: 100)

    GOOGLE_SERVICE_ACCOUNT_KEY: Service account JSON used to export Google Docs

    RETRIEVAL_MIN_SCORE: Similarity threshold (default: 0.7)
    RETRIEVAL_MAX_CHARACTERS: Context budget for chat (default: 3000)
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
from pathlib import Path
from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Args:
        key: Environment variable name
        default: Default value if not set
        required: If True, raises ValueError when not set

    Returns:
        Environment variable value or default

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get a comma-separated environment variable as a list of stripped items."""
    value = os.getenv(key, default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class OpenAIConfig:
    """OpenAI embedding and chat configuration."""

    api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    embedding_model: str = field(
        default_factory=lambda: get_env("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    )
    chat_model: str = field(default_factory=lambda: get_env("OPENAI_CHAT_MODEL", "gpt-4o-mini"))

    # Concurrent embedding requests during one ingestion run
    max_concurrent_embeddings: int = field(
        default_factory=lambda: get_env_int("OPENAI_MAX_CONCURRENT_EMBEDDINGS", 8)
    )

    # Request timeout in seconds
    request_timeout: float = field(default_factory=lambda: get_env_float("OPENAI_REQUEST_TIMEOUT", 30.0))

    def __post_init__(self):
        if self.max_concurrent_embeddings <= 0:
            raise ValueError("OPENAI_MAX_CONCURRENT_EMBEDDINGS must be positive")


@dataclass
class DatabaseConfig:
    """PostgreSQL (pgvector) database configuration."""

    host: str = field(default_factory=lambda: get_env("DATABASE_HOST", "localhost"))
    port: int = field(default_factory=lambda: get_env_int("DATABASE_PORT", 5432))
    name: str = field(default_factory=lambda: get_env("DATABASE_NAME", "rag_context"))
    user: str = field(default_factory=lambda: get_env("DATABASE_USER", "postgres"))
    password: str = field(default_factory=lambda: get_env("DATABASE_PASSWORD", ""))

    # Connection pool settings
    pool_min_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MIN", 1))
    pool_max_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MAX", 10))

    connect_timeout: int = field(default_factory=lambda: get_env_int("DATABASE_CONNECT_TIMEOUT", 10))

    # SSL mode: disable, allow, prefer, require, verify-ca, verify-full
    ssl_mode: str = field(default_factory=lambda: get_env("DATABASE_SSL_MODE", "prefer"))

    @property
    def connection_dict(self) -> dict:
        """Connection parameters as dictionary for psycopg2."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.name,
            "user": self.user,
            "password": self.password,
            "sslmode": self.ssl_mode,
            "connect_timeout": self.connect_timeout,
        }

    def __post_init__(self):
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("pool_min_size cannot exceed pool_max_size")


@dataclass
class VectorIndexConfig:
    """Vector index placement and naming."""

    index_name: str = field(default_factory=lambda: get_env("VECTOR_INDEX_NAME", "rag-context"))
    namespace: str = field(default_factory=lambda: get_env("VECTOR_NAMESPACE", ""))
    cloud: str = field(default_factory=lambda: get_env("VECTOR_INDEX_CLOUD", "aws"))
    region: str = field(default_factory=lambda: get_env("VECTOR_INDEX_REGION", "us-east-1"))

    # Seconds to wait for a freshly created index to report ready
    ready_timeout: float = field(default_factory=lambda: get_env_float("VECTOR_INDEX_READY_TIMEOUT", 60.0))


@dataclass
class CrawlerConfig:
    """Web crawler bounds."""

    max_depth: int = field(default_factory=lambda: get_env_int("CRAWLER_MAX_DEPTH", 1))
    max_pages: int = field(default_factory=lambda: get_env_int("CRAWLER_MAX_PAGES", 100))
    request_timeout: float = field(default_factory=lambda: get_env_float("CRAWLER_REQUEST_TIMEOUT", 15.0))
    user_agent: str = field(default_factory=lambda: get_env("CRAWLER_USER_AGENT", "rag-context-crawler/1.0"))

    # Extra hosts whose links are followed besides the seed's own origin
    allowed_domains: List[str] = field(default_factory=lambda: get_env_list("CRAWLER_ALLOWED_DOMAINS"))

    # Raw service account JSON for the Google Drive export API
    google_service_account_key: Optional[str] = field(
        default_factory=lambda: get_env("GOOGLE_SERVICE_ACCOUNT_KEY")
    )

    def __post_init__(self):
        if self.max_depth < 0:
            raise ValueError("CRAWLER_MAX_DEPTH cannot be negative")
        if self.max_pages <= 0:
            raise ValueError("CRAWLER_MAX_PAGES must be positive")


@dataclass
class ChunkingConfig:
    """Document splitting configuration."""

    splitting_method: str = field(default_factory=lambda: get_env("CHUNK_SPLITTING_METHOD", "markdown"))
    chunk_size: int = field(default_factory=lambda: get_env_int("CHUNK_SIZE", 1000))
    chunk_overlap: int = field(default_factory=lambda: get_env_int("CHUNK_OVERLAP", 200))

    # Records per upsert request against the vector index
    upsert_batch_size: int = field(default_factory=lambda: get_env_int("UPSERT_BATCH_SIZE", 10))

    def __post_init__(self):
        if self.splitting_method not in ("recursive", "markdown"):
            raise ValueError(
                f"CHUNK_SPLITTING_METHOD must be 'recursive' or 'markdown', got: {self.splitting_method}"
            )
        if self.chunk_size <= 0:
            raise ValueError("CHUNK_SIZE must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("CHUNK_OVERLAP must be non-negative and smaller than CHUNK_SIZE")
        if self.upsert_batch_size <= 0:
            raise ValueError("UPSERT_BATCH_SIZE must be positive")


@dataclass
class RetrievalConfig:
    """Context retrieval tuning."""

    top_k: int = field(default_factory=lambda: get_env_int("RETRIEVAL_TOP_K", 10))
    min_score: float = field(default_factory=lambda: get_env_float("RETRIEVAL_MIN_SCORE", 0.7))

    # Budget for the chat prompt vs. the diagnostic sources endpoint
    max_characters: int = field(default_factory=lambda: get_env_int("RETRIEVAL_MAX_CHARACTERS", 3000))
    diagnostic_max_characters: int = field(
        default_factory=lambda: get_env_int("RETRIEVAL_DIAGNOSTIC_MAX_CHARACTERS", 10000)
    )

    # Deployment-specific subject names stripped from queries
    subject_stopwords: List[str] = field(
        default_factory=lambda: get_env_list("RETRIEVAL_SUBJECT_STOPWORDS", "jaco")
    )

    def __post_init__(self):
        if self.top_k <= 0:
            raise ValueError("RETRIEVAL_TOP_K must be positive")
        if not 0.0 <= self.min_score <= 1.0:
            raise ValueError("RETRIEVAL_MIN_SCORE must be between 0 and 1")
        if self.max_characters <= 0 or self.diagnostic_max_characters <= 0:
            raise ValueError("Retrieval character budgets must be positive")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


@dataclass
class Settings:
    """Main application settings container."""

    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    vector_index: VectorIndexConfig = field(default_factory=VectorIndexConfig)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application metadata
    app_name: str = "rag-context"
    app_version: str = "0.1.0"
    environment: str = field(default_factory=lambda: get_env("ENVIRONMENT", "development"))

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() in ("production", "prod")


def load_settings() -> Settings:
    """
    Load and validate all application settings.

    Raises:
        ValueError: If configuration is invalid
    """
    return Settings()


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
