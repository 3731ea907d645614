from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DB_URL: str = "sqlite:///./jobs.db"
    REQUEST_TIMEOUT: float = 20.0
    USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0 Safari/537.36 JobMatch/0.1"
    )
    LOG_LEVEL: str = "INFO"

    # Remote sponsor provider (disabled when no key is set)
    SPONSOR_API_BASE_URL: str = "https://api.landing.club/v1"
    SPONSOR_API_KEY: Optional[str] = None
    SPONSOR_API_TIMEOUT: float = 5.0
    SPONSOR_SEARCH_LIMIT: int = 5
    SPONSOR_STALE_HOURS: float = 6.0
    REMOTE_SYNC_LIMIT: int = 5
    DEFAULT_SPONSOR_CONFIDENCE: int = 50

    # Visa status derived from a linked sponsor's confidence
    VERIFIED_CONFIDENCE: int = 75
    # Bulk reclassification of stored postings by their own confidence
    RECLASSIFY_VERIFIED_CONFIDENCE: int = 70
    RECLASSIFY_LIKELY_CONFIDENCE: int = 30

    # Embeddings
    OPENAI_API_KEY: Optional[str] = None
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIM: int = 1536

    # Search
    SEARCH_DEFAULT_LIMIT: int = 50
    SEARCH_MAX_LIMIT: int = 100

    # Postings not seen by a crawl for this long are marked inactive
    JOB_STALE_DAYS: int = 14


settings = Settings()
