"""Settings schema for the grammar engine.

Validation, coercion and defaults for every configuration field. Values from
files, the environment and code all pass through `GrammarSettings` once the
resolver has merged them.
"""

from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hybrid_grammar import constants

RemoteBackend = Literal["mock", "http", "gemini"]


class GrammarSettings(BaseSettings):
    """Pydantic settings for the engine, read from ``HYBRID_GRAMMAR_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="HYBRID_GRAMMAR_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Analysis ---

    language: str = Field(default="en", min_length=1)

    # --- Remote services ---

    remote_backend: RemoteBackend = Field(
        default="mock",
        description="Which remote collaborator to use: mock, http or gemini",
    )
    api_key: str | None = Field(default=None, description="Credential for the remote backend")
    model: str = Field(default=constants.DEFAULT_MODEL, min_length=1)
    endpoint_url: str | None = Field(default=None, description="Base URL for the http backend")
    remote_timeout_seconds: float = Field(default=constants.REMOTE_TIMEOUT_SECONDS, gt=0)
    remote_retries: int = Field(default=constants.REMOTE_RETRIES, ge=0)

    # --- Decision policy ---

    price_per_1k_tokens: float = Field(default=constants.PRICE_PER_1K_TOKENS, gt=0)
    max_cost_per_check: float = Field(default=constants.MAX_COST_PER_CHECK, gt=0)
    max_client_words: int = Field(default=constants.MAX_CLIENT_WORDS, gt=0)

    # --- Result cache ---

    cache_enabled: bool = True
    cache_max_size: int = Field(default=constants.GRAMMAR_CACHE_MAX_SIZE, gt=0)
    cache_ttl_seconds: float = Field(default=constants.GRAMMAR_CACHE_TTL_SECONDS, gt=0)
    cache_compression_threshold_bytes: int = Field(
        default=constants.CACHE_COMPRESSION_THRESHOLD, gt=0
    )
    cache_sweep_interval_seconds: float = Field(
        default=constants.CACHE_SWEEP_INTERVAL_SECONDS, gt=0
    )
    cache_persist_path: str | None = Field(
        default=None, description="JSON file for cache persistence; None disables it"
    )

    # --- Admission control ---

    daily_cost_limit_free: float = Field(default=constants.DAILY_COST_LIMIT_FREE, gt=0)
    daily_cost_limit_premium: float = Field(default=constants.DAILY_COST_LIMIT_PREMIUM, gt=0)
    max_concurrent_free: int = Field(default=constants.MAX_CONCURRENT_FREE, gt=0)
    max_concurrent_premium: int = Field(default=constants.MAX_CONCURRENT_PREMIUM, gt=0)
    queue_timeout_ms: float = Field(default=constants.QUEUE_TIMEOUT_MS, gt=0)

    # --- Metrics ---

    metrics_max_age_seconds: float = Field(default=constants.METRICS_MAX_AGE_SECONDS, gt=0)
    metrics_max_stored: int = Field(default=constants.METRICS_MAX_STORED, gt=0)
    max_processing_time_ms: float = Field(default=constants.MAX_PROCESSING_TIME_MS, gt=0)
    max_queue_wait_ms: float = Field(default=constants.MAX_QUEUE_WAIT_MS, gt=0)
    min_cache_hit_rate: float = Field(default=constants.MIN_CACHE_HIT_RATE, ge=0, le=100)

    @field_validator("remote_backend", mode="before")
    @classmethod
    def parse_backend(cls, v: Any) -> Any:
        """Accept backend names in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("cache_persist_path", "endpoint_url", "api_key", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_backend_requirements(self) -> "GrammarSettings":
        """The gemini backend needs a key and the http backend needs a URL."""
        if self.remote_backend == "gemini" and not self.api_key:
            raise ValueError(
                "api_key is required when remote_backend='gemini'. "
                "Set HYBRID_GRAMMAR_API_KEY, provide it in a config file, "
                "or pass it programmatically."
            )
        if self.remote_backend == "http" and not self.endpoint_url:
            raise ValueError(
                "endpoint_url is required when remote_backend='http'. "
                "Set HYBRID_GRAMMAR_ENDPOINT_URL or provide it in a config file."
            )
        return self

    @classmethod
    def defaults(cls) -> dict[str, Any]:
        """Field defaults, without reading the environment."""
        return {
            name: field.get_default(call_default_factory=True)
            for name, field in cls.model_fields.items()
        }

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
