"""
Pipeline Configuration for the Compliance RAG core

One dataclass carries every tunable of the retrieval and ingestion
pipeline. Defaults match the production deployment (UK employment
guidance); ``from_env()`` applies per-deployment overrides.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional


# Environment variable -> config field
ENV_OVERRIDES = {
    "COMPLIANCE_JURISDICTION": "jurisdiction",
    "RETRIEVAL_CANDIDATE_LIMIT": "candidate_limit",
    "RELEVANCE_THRESHOLD": "relevance_threshold",
    "RETRIEVAL_FINAL_TOP_K": "final_top_k",
    "CHUNK_MAX_CHARS": "max_chunk_chars",
    "REALTIME_MAX_URLS": "max_fallback_urls",
    "REALTIME_URL_DELAY": "url_delay_seconds",
    "REALTIME_CHUNK_DELAY": "chunk_delay_seconds",
    "SEED_CHUNK_DELAY": "seed_delay_seconds",
    "STALENESS_DAYS": "staleness_days",
    "HTTP_TIMEOUT_SECONDS": "request_timeout_seconds",
    "CRAWLER_USER_AGENT": "user_agent",
    "USE_RERANKING": "use_reranking",
    "RERANKER_MODEL": "reranker_model",
}


@dataclass
class PipelineConfig:
    """Retrieval, ranking and ingestion settings."""
    # Deployment scope
    jurisdiction: str = "UK"

    # Relevance gate
    candidate_limit: int = 12
    relevance_threshold: float = 0.7
    final_top_k: int = 6
    use_reranking: bool = True
    reranker_model: Optional[str] = None  # falls back to AZURE_OPENAI_CHAT_DEPLOYMENT

    # Extraction / chunking
    max_chunk_chars: int = 3000  # ~1000 tokens
    min_extracted_chars: int = 100
    min_paragraph_chars: int = 50
    request_timeout_seconds: float = 30.0
    user_agent: str = "Mozilla/5.0 (compatible; HR-Compliance-Bot/1.0)"

    # Real-time fallback
    max_fallback_urls: int = 2
    url_delay_seconds: float = 2.0
    chunk_delay_seconds: float = 0.5
    discovery_result_count: int = 5

    # Seeding / maintenance
    seed_delay_seconds: float = 1.0
    staleness_days: int = 30

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a config from defaults, environment variables, then explicit overrides.

        Args:
            **overrides: Field values that win over the environment

        Returns:
            Validated PipelineConfig
        """
        types = {f.name: f.type for f in fields(cls)}
        values = {}
        for env_var, name in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            values[name] = _coerce(raw, types[name])
        values.update(overrides)

        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError for settings the pipeline cannot honour."""
        if not 0.0 <= self.relevance_threshold <= 1.0:
            raise ValueError(f"relevance_threshold must be in [0, 1], got {self.relevance_threshold}")
        for name in ("candidate_limit", "final_top_k", "max_chunk_chars", "max_fallback_urls"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.final_top_k > self.candidate_limit:
            raise ValueError(
                f"final_top_k ({self.final_top_k}) cannot exceed candidate_limit ({self.candidate_limit})"
            )
        if not self.jurisdiction:
            raise ValueError("jurisdiction is required")


def _coerce(raw: str, annotation) -> object:
    """Convert an environment string to the field's declared type."""
    if annotation is bool:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if annotation is int:
        return int(raw)
    if annotation is float:
        return float(raw)
    return raw
