"""
Embedding Service for Compliance RAG

Turns text into fixed-dimension vectors with token-usage accounting.
Default provider is OpenAI / Azure OpenAI (text-embedding-3-small at 1536
dimensions); Voyage AI is available as an alternative.

Architecture:
    BaseEmbeddingService  -- batching, query cache, dimension checks, usage split
        OpenAIEmbeddingService    -- OpenAI or Azure OpenAI embeddings endpoint
        VoyageEmbeddingService    -- Voyage AI embeddings

Failures are raised as EmbeddingServiceError and never retried here; callers
decide whether a failure is fatal to their step.
"""

import os
import hashlib
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Union

from .errors import EmbeddingServiceError, Ok, Result, capture

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "openai"  # "openai" or "voyage"
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 96
    max_tokens_per_batch: int = 100000
    chars_per_token: float = 4.0
    use_cache: bool = True
    cache_size: int = 512  # query embeddings kept in memory


@dataclass(frozen=True)
class EmbeddingResult:
    """One vector plus the share of token usage attributed to its input."""
    embedding: list[float]
    prompt_tokens: float
    total_tokens: float


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Subclasses implement:
    - _init_client(): create the provider client (leave None if unconfigured)
    - _call_provider(texts, input_type): return (vectors, prompt_tokens, total_tokens)
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self._client = None
        self._cache: OrderedDict[str, list[float]] = OrderedDict()
        self._init_client()

    def _init_client(self):
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _call_provider(self, texts: list[str], input_type: str) -> tuple[list[list[float]], int, int]:
        raise NotImplementedError("Subclasses must implement _call_provider()")

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into batches respecting both item count and token limits."""
        batches = []
        current_batch = []
        current_tokens = 0.0
        cpt = self.config.chars_per_token

        for text in texts:
            est_tokens = len(text) / cpt
            if current_batch and (
                len(current_batch) >= self.config.batch_size
                or current_tokens + est_tokens > self.config.max_tokens_per_batch
            ):
                batches.append(current_batch)
                current_batch = []
                current_tokens = 0.0
            current_batch.append(text)
            current_tokens += est_tokens

        if current_batch:
            batches.append(current_batch)

        return batches

    def embed(self, texts: Union[str, list[str]], input_type: Optional[str] = None) -> list[EmbeddingResult]:
        """
        Embed one or many texts.

        Args:
            texts: A single string or a list of strings
            input_type: Provider input type; defaults to the document type

        Returns:
            One EmbeddingResult per input, in input order

        Raises:
            EmbeddingServiceError: client missing, upstream failure or bad vector shape
        """
        if isinstance(texts, str):
            texts = [texts]
        if not texts:
            return []

        if not self._client:
            raise EmbeddingServiceError(
                f"{self._provider_name} client not initialized. Check {self._env_var_name}."
            )

        input_type = input_type or self._doc_input_type
        results: list[EmbeddingResult] = []
        for batch in self._create_batches(texts):
            results.extend(self._embed_batch(batch, input_type))
        return results

    def _embed_batch(self, texts: list[str], input_type: str) -> list[EmbeddingResult]:
        try:
            vectors, prompt_tokens, total_tokens = self._call_provider(texts, input_type)
        except EmbeddingServiceError:
            raise
        except Exception as e:
            logger.error(f"{self._provider_name} embedding failed: {e}")
            raise EmbeddingServiceError(f"{self._provider_name} embedding failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                f"{self._provider_name} returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        for vector in vectors:
            if len(vector) != self.config.dimensions:
                raise EmbeddingServiceError(
                    f"Expected {self.config.dimensions}-dimensional vectors, got {len(vector)}"
                )

        # Usage is reported per request; attribute it evenly
        n = len(texts)
        return [
            EmbeddingResult(
                embedding=list(vector),
                prompt_tokens=prompt_tokens / n,
                total_tokens=total_tokens / n,
            )
            for vector in vectors
        ]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed passage texts and return bare vectors."""
        results = self.embed(texts, input_type=self._doc_input_type)
        if texts:
            logger.info(f"Embedded {len(texts)} documents with {self._provider_name}")
        return [r.embedding for r in results]

    def embed_query(self, query: str) -> list[float]:
        """Embed a search query, using the in-memory cache when enabled."""
        cache_key = self._get_cache_key(query, self._query_input_type)
        if self.config.use_cache and cache_key in self._cache:
            logger.debug("Query embedding cache hit")
            self._cache.move_to_end(cache_key)
            return self._cache[cache_key]

        embedding = self.embed([query], input_type=self._query_input_type)[0].embedding

        if self.config.use_cache:
            self._cache[cache_key] = embedding
            while len(self._cache) > self.config.cache_size:
                self._cache.popitem(last=False)
        return embedding

    def try_embed(self, text: str) -> Result:
        """Embed a single passage text, returning Ok(EmbeddingResult) or Err."""
        result = capture(self.embed, [text], self._doc_input_type)
        if result.is_ok:
            return Ok(result.value[0])
        return result

    def _get_cache_key(self, text: str, input_type: str) -> str:
        content = f"{self.config.model}:{input_type}:{text}"
        return hashlib.sha256(content.encode()).hexdigest()[:32]

    @property
    def dimensions(self) -> int:
        return self.config.dimensions


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embeddings via the OpenAI API, or Azure OpenAI when AZURE_OPENAI_ENDPOINT is set.

    On Azure the model name is the embedding deployment
    (AZURE_OPENAI_EMBEDDING_DEPLOYMENT).
    """

    _provider_name = "OpenAI"
    _env_var_name = "OPENAI_API_KEY or AZURE_OPENAI_API_KEY"

    def _init_client(self):
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        try:
            if azure_endpoint:
                from openai import AzureOpenAI
                api_key = os.getenv("AZURE_OPENAI_API_KEY")
                if not api_key:
                    logger.warning("AZURE_OPENAI_API_KEY not found. Embeddings will fail.")
                    return
                self._client = AzureOpenAI(
                    api_key=api_key,
                    azure_endpoint=azure_endpoint,
                    api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-06-01"),
                )
                self.config.model = os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT", self.config.model)
                self._provider_name = "Azure OpenAI"
            else:
                from openai import OpenAI
                api_key = os.getenv("OPENAI_API_KEY")
                if not api_key:
                    logger.warning("OPENAI_API_KEY not found. Embeddings will fail.")
                    return
                self._client = OpenAI(api_key=api_key)
            logger.info(f"{self._provider_name} embedding client initialized with model {self.config.model}")
        except ImportError:
            logger.error("openai package not installed. Run: pip install openai")
            raise

    def _call_provider(self, texts, input_type):
        response = self._client.embeddings.create(
            model=self.config.model,
            input=texts,
            dimensions=self.config.dimensions,
        )
        vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
        return vectors, response.usage.prompt_tokens, response.usage.total_tokens


class VoyageEmbeddingService(BaseEmbeddingService):
    """Embedding service using Voyage AI (document/query input types)."""

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        api_key = os.getenv("VOYAGE_API_KEY")
        if not api_key:
            logger.warning(
                "VOYAGE_API_KEY not found. Embeddings will fail. "
                "Get an API key at https://dash.voyageai.com/"
            )
            return

        try:
            import voyageai
            self._client = voyageai.Client(api_key=api_key)
            logger.info(f"Voyage AI client initialized with model {self.config.model}")
        except ImportError:
            logger.error("voyageai package not installed. Run: pip install voyageai")
            raise

    def _call_provider(self, texts, input_type):
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        # Voyage reports a single total; there is no separate prompt count
        return response.embeddings, response.total_tokens, response.total_tokens


def get_embedding_service(provider: Optional[str] = None) -> BaseEmbeddingService:
    """
    Factory for the configured embedding provider.

    Args:
        provider: "openai" (default) or "voyage"; falls back to EMBEDDING_PROVIDER

    Returns:
        Configured embedding service
    """
    provider = (provider or os.getenv("EMBEDDING_PROVIDER", "openai")).lower()
    dimensions = int(os.getenv("EMBEDDING_DIMENSIONS", "0")) or None

    if provider == "voyage":
        config = EmbeddingConfig(
            provider="voyage",
            model=os.getenv("VOYAGE_EMBEDDING_MODEL", "voyage-3"),
            dimensions=dimensions or 1024,
            batch_size=128,
            chars_per_token=2.0,  # Voyage tokenizes more aggressively
        )
        return VoyageEmbeddingService(config)

    config = EmbeddingConfig(
        provider="openai",
        model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
        dimensions=dimensions or 1536,
    )
    return OpenAIEmbeddingService(config)
