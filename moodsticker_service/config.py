import re
from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional


class MoodstickerSettings(BaseSettings):
    """Moodsticker service configuration.

    Cache files, rate limits and session timeouts for the resolution
    pipeline, plus the OpenAI-compatible endpoint used for classification
    and label embeddings. Leaving ``llm_api_key`` and ``llm_base_url``
    unset runs the service without a connector (fallback labels only).
    """

    cache_path: Optional[str] = "data/emotion_cache.json"
    cache_version_path: Optional[str] = None
    hot_cache_capacity: int = 100
    persisted_cache_capacity: int = 1000
    cache_ttl_days: int = 7
    labels_version: int = 1

    min_request_interval_ms: int = 10000
    session_timeout_ms: int = 60000

    label_store_path: Optional[str] = None
    allowed_labels_path: Optional[str] = None
    strict_label_matching: bool = False
    match_top_k: int = 3
    precompute_on_startup: bool = True

    llm_base_url: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_embedding_model: str = "text-embedding-3-small"
    llm_timeout_s: float = 30.0

    service_port: int = 8200
    service_token: Optional[str] = None

    model_config = {"env_prefix": "", "case_sensitive": False}

    @field_validator("llm_model", "llm_embedding_model")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        if not re.match(r"^[A-Za-z0-9_.:/-]+$", v):
            raise ValueError(f"Invalid model name: {v!r}")
        return v

    @field_validator(
        "hot_cache_capacity",
        "persisted_cache_capacity",
        "cache_ttl_days",
        "match_top_k",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("min_request_interval_ms", "session_timeout_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(days=self.cache_ttl_days)

    @property
    def connector_enabled(self) -> bool:
        """True if an API key or a custom endpoint (e.g. a local Ollama) is configured."""
        return bool(self.llm_api_key) or bool(self.llm_base_url)

    def version_path(self) -> Optional[str]:
        """Return the version tag file path.

        Defaults to ``<cache_path stem>.version`` next to the cache file.
        """
        if self.cache_version_path:
            return self.cache_version_path
        if not self.cache_path:
            return None
        return str(Path(self.cache_path).with_suffix(".version"))
