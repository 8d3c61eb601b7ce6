"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Server settings
    host: str
    port: int
    database_url: str
    admin_token: str | None
    log_level: str
    log_format: str

    # LLM provider settings
    openai_api_key: str | None
    openai_base_url: str
    openai_model: str
    embedding_model: str
    embedding_dimensions: int
    llm_enabled: bool
    llm_timeout_seconds: float

    # Retry policy for external AI calls
    ai_max_retries: int
    ai_retry_delay_seconds: float
    ai_backoff_multiplier: float

    # Content analysis
    analysis_max_content_length: int
    analysis_summary_length: int
    analysis_keyword_count: int
    analysis_batch_size: int
    analysis_max_attempts: int
    analysis_retry_after_minutes: int
    moderation_block_flagged: bool

    # Recommendations
    recs_max_recommendations: int
    recs_min_similarity: float
    recs_retention_days: int

    # Interest profiling
    interest_update_delay_seconds: float
    interest_update_max_pending: int
    interest_cache_hours: int

    # Background jobs
    content_analysis_job_enabled: bool
    content_analysis_interval_minutes: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        host = os.getenv("HOST", "0.0.0.0")
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got: {port_str}")

        database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./learnhub.db")
        admin_token = os.getenv("ADMIN_TOKEN") or None
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_format = os.getenv("LOG_FORMAT", "text").lower()
        if log_format not in ("text", "json"):
            raise ConfigurationError(f"LOG_FORMAT must be text or json, got: {log_format}")

        openai_api_key = os.getenv("OPENAI_API_KEY") or None
        openai_base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
        openai_model = os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview")
        embedding_model = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
        embedding_dimensions = _get_int("EMBEDDING_DIMENSIONS", 1536)
        if embedding_dimensions <= 0:
            raise ConfigurationError("EMBEDDING_DIMENSIONS must be positive")

        llm_enabled = _get_bool("LLM_ENABLED", True)
        llm_timeout_seconds = _get_float("LLM_TIMEOUT_SECONDS", 60.0)

        ai_max_retries = _get_int("AI_MAX_RETRIES", 3)
        if ai_max_retries < 1:
            raise ConfigurationError("AI_MAX_RETRIES must be at least 1")
        ai_retry_delay_seconds = _get_float("AI_RETRY_DELAY_SECONDS", 1.0)
        ai_backoff_multiplier = _get_float("AI_BACKOFF_MULTIPLIER", 2.0)

        analysis_max_content_length = _get_int("ANALYSIS_MAX_CONTENT_LENGTH", 4000)
        analysis_summary_length = _get_int("ANALYSIS_SUMMARY_LENGTH", 200)
        analysis_keyword_count = _get_int("ANALYSIS_KEYWORD_COUNT", 5)
        analysis_batch_size = max(1, _get_int("ANALYSIS_BATCH_SIZE", 5))
        analysis_max_attempts = max(1, _get_int("ANALYSIS_MAX_ATTEMPTS", 3))
        analysis_retry_after_minutes = max(0, _get_int("ANALYSIS_RETRY_AFTER_MINUTES", 60))
        moderation_block_flagged = _get_bool("MODERATION_BLOCK_FLAGGED", False)

        recs_max_recommendations = _get_int("RECS_MAX_RECOMMENDATIONS", 10)
        recs_min_similarity = _get_float("RECS_MIN_SIMILARITY", 0.0)
        recs_retention_days = _get_int("RECS_RETENTION_DAYS", 90)

        interest_update_delay_seconds = _get_float("INTEREST_UPDATE_DELAY_SECONDS", 300.0)
        interest_update_max_pending = max(1, _get_int("INTEREST_UPDATE_MAX_PENDING", 10000))
        interest_cache_hours = _get_int("INTEREST_CACHE_HOURS", 24)

        content_analysis_job_enabled = _get_bool("CONTENT_ANALYSIS_JOB_ENABLED", True)
        content_analysis_interval_minutes = _get_int("CONTENT_ANALYSIS_INTERVAL_MINUTES", 30)

        return cls(
            host=host,
            port=port,
            database_url=database_url,
            admin_token=admin_token,
            log_level=log_level,
            log_format=log_format,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            openai_model=openai_model,
            embedding_model=embedding_model,
            embedding_dimensions=embedding_dimensions,
            llm_enabled=llm_enabled,
            llm_timeout_seconds=llm_timeout_seconds,
            ai_max_retries=ai_max_retries,
            ai_retry_delay_seconds=ai_retry_delay_seconds,
            ai_backoff_multiplier=ai_backoff_multiplier,
            analysis_max_content_length=analysis_max_content_length,
            analysis_summary_length=analysis_summary_length,
            analysis_keyword_count=analysis_keyword_count,
            analysis_batch_size=analysis_batch_size,
            analysis_max_attempts=analysis_max_attempts,
            analysis_retry_after_minutes=analysis_retry_after_minutes,
            moderation_block_flagged=moderation_block_flagged,
            recs_max_recommendations=recs_max_recommendations,
            recs_min_similarity=recs_min_similarity,
            recs_retention_days=recs_retention_days,
            interest_update_delay_seconds=interest_update_delay_seconds,
            interest_update_max_pending=interest_update_max_pending,
            interest_cache_hours=interest_cache_hours,
            content_analysis_job_enabled=content_analysis_job_enabled,
            content_analysis_interval_minutes=content_analysis_interval_minutes,
        )


config = Config.from_env()
