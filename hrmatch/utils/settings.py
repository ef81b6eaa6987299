"""
Runtime settings for batch matching, loaded from the environment
"""
import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from hrmatch.models.models import MatrixMode
from hrmatch.utils.logging_config import get_logger

logger = get_logger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name) or default
    return [part.strip() for part in raw.split(",") if part.strip()]


class LimitSettings(BaseModel):
    """Upper bounds on a single batch request"""
    max_jd_files: int = Field(default=10, description="Maximum JD files per request")
    max_resume_files: int = Field(default=10, description="Maximum resume files per request")
    max_combinations: int = Field(default=50, description="Maximum JD x resume pairs per request")


class FileSettings(BaseModel):
    """Upload validation bounds"""
    max_size: int = Field(default=50 * 1024 * 1024, description="Maximum file size in bytes")
    min_size: int = Field(default=100, description="Minimum file size in bytes")
    allowed_extensions: List[str] = Field(default_factory=lambda: [".pdf"], description="Accepted file extensions")


class ProcessingSettings(BaseModel):
    """Concurrency and scheduling of the two batch phases"""
    extraction_concurrency: int = Field(default=1, description="Parallel extractions per chunk")
    match_concurrency: int = Field(default=3, description="Parallel pair scorings per chunk")
    matrix_mode: MatrixMode = Field(default=MatrixMode.ROW_MAJOR, description="Matrix scheduling mode")


class MatchingSettings(BaseModel):
    """Score threshold handling"""
    minimum_score: int = Field(default=60, description="Minimum score for a relevant match")
    filter_low_scores: bool = Field(default=False, description="Drop matches below minimum_score from results")


class CacheSettings(BaseModel):
    """Content-addressable cache backend and TTLs"""
    backend: str = Field(default="memory", description="'mongo' or 'memory'")
    extraction_ttl_seconds: int = Field(default=60 * 60 * 24, description="TTL for JD/resume extractions")
    match_ttl_seconds: int = Field(default=60 * 60 * 12, description="TTL for pairwise match results")
    mongo_uri: str = Field(default="mongodb://localhost:27017", description="MongoDB connection string")
    db_name: str = Field(default="hrmatch_db", description="MongoDB database name")
    collection: str = Field(default="llm_cache", description="Collection holding cache entries")


class InferenceSettings(BaseModel):
    """Text-generation provider settings"""
    provider: str = Field(default="groq", description="'groq' or 'ollama'")
    api_keys: List[str] = Field(default_factory=list, description="API keys rotated on rate limits")
    models: List[str] = Field(default_factory=lambda: ["openai/gpt-oss-120b"], description="Models tried in order")
    base_url: str = Field(default="https://api.groq.com/openai/v1", description="Provider base URL")
    max_requests_per_window: int = Field(default=30, description="Requests allowed per key per window")
    window_seconds: float = Field(default=60.0, description="Rate-limit window length")
    max_attempts: Optional[int] = Field(default=None, description="Attempts per model, defaults to max(2*keys, 3)")
    timeout: int = Field(default=120, description="HTTP timeout in seconds")


class LoggingSettings(BaseModel):
    enable_progress: bool = True
    progress_interval: int = 5


class MatchSettings(BaseModel):
    """Aggregated configuration for the matching engine"""
    limits: LimitSettings = Field(default_factory=LimitSettings)
    files: FileSettings = Field(default_factory=FileSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls) -> "MatchSettings":
        load_dotenv()

        provider = os.getenv("LLM_PROVIDER", "groq").lower()
        if provider == "ollama":
            inference = InferenceSettings(
                provider="ollama",
                api_keys=[],
                models=_env_list("LLM_MODEL", "llava:7b"),
                base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            )
        else:
            inference = InferenceSettings(
                provider="groq",
                api_keys=_env_list("GROQ_API_KEYS", os.getenv("GROQ_API_KEY", "")),
                models=_env_list("GROQ_MODEL", "openai/gpt-oss-120b"),
                base_url=os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1"),
            )
        inference.max_requests_per_window = _env_int("RATE_LIMIT_MAX_REQUESTS", 30)
        inference.window_seconds = float(_env_int("RATE_LIMIT_WINDOW_SECONDS", 60))
        if os.getenv("LLM_MAX_ATTEMPTS"):
            inference.max_attempts = _env_int("LLM_MAX_ATTEMPTS", 3)

        return cls(
            limits=LimitSettings(
                max_jd_files=_env_int("MAX_JD_FILES", 10),
                max_resume_files=_env_int("MAX_RESUME_FILES", 10),
                max_combinations=_env_int("MAX_COMBINATIONS", 50),
            ),
            files=FileSettings(
                max_size=_env_int("MAX_FILE_SIZE", 50 * 1024 * 1024),
                min_size=_env_int("MIN_FILE_SIZE", 100),
                allowed_extensions=[e.lower() for e in _env_list("ALLOWED_FILE_EXTENSIONS", ".pdf")],
            ),
            processing=ProcessingSettings(
                extraction_concurrency=_env_int("EXTRACTION_CONCURRENCY", 1),
                match_concurrency=_env_int("MATCH_CONCURRENCY", 3),
                matrix_mode=MatrixMode.ROW_MAJOR if _env_bool("PROCESS_ROW_BY_ROW", True) else MatrixMode.FLATTENED,
            ),
            matching=MatchingSettings(
                minimum_score=_env_int("MINIMUM_MATCH_SCORE", 60),
                filter_low_scores=_env_bool("FILTER_LOW_SCORES", False),
            ),
            cache=CacheSettings(
                backend=os.getenv("CACHE_BACKEND", "memory").lower(),
                extraction_ttl_seconds=_env_int("EXTRACTION_CACHE_TTL", 60 * 60 * 24),
                match_ttl_seconds=_env_int("MATCH_CACHE_TTL", 60 * 60 * 12),
                mongo_uri=os.getenv("MONGO_DETAILS", "mongodb://localhost:27017"),
                db_name=os.getenv("DB_NAME", "hrmatch_db"),
                collection=os.getenv("CACHE_COLLECTION", "llm_cache"),
            ),
            inference=inference,
            logging=LoggingSettings(
                enable_progress=_env_bool("ENABLE_PROGRESS_LOGGING", True),
                progress_interval=max(1, _env_int("PROGRESS_LOG_INTERVAL", 5)),
            ),
        )


def validate_config(config: MatchSettings) -> List[str]:
    """Return a list of problems with the configuration, empty when valid"""
    errors: List[str] = []

    if config.limits.max_jd_files < 1:
        errors.append("max_jd_files must be at least 1")
    if config.limits.max_resume_files < 1:
        errors.append("max_resume_files must be at least 1")
    if config.limits.max_combinations < 1:
        errors.append("max_combinations must be at least 1")

    if config.files.max_size < config.files.min_size:
        errors.append("max_size must be greater than min_size")
    if not config.files.allowed_extensions:
        errors.append("At least one file extension must be allowed")

    for name in ("extraction_concurrency", "match_concurrency"):
        value = getattr(config.processing, name)
        if value < 1:
            errors.append(f"{name} must be at least 1")
        elif value > 10:
            errors.append(f"{name} should not exceed 10 to prevent API rate limits")

    if not 0 <= config.matching.minimum_score <= 100:
        errors.append("minimum_score must be between 0 and 100")

    if config.cache.backend not in ("mongo", "memory"):
        errors.append("cache backend must be 'mongo' or 'memory'")
    if config.inference.provider not in ("groq", "ollama"):
        errors.append("inference provider must be 'groq' or 'ollama'")
    if not config.inference.models:
        errors.append("At least one inference model must be configured")

    return errors


@lru_cache(maxsize=1)
def get_settings() -> MatchSettings:
    settings = MatchSettings.from_env()
    problems = validate_config(settings)
    for problem in problems:
        logger.error(f"Configuration problem: {problem}")
    return settings
