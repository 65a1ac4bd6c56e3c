"""
Compliance RAG - Retrieval & Real-Time Ingestion for UK employment guidance

This module provides:
- Similarity search over curated GOV.UK / ACAS passages (PostgreSQL + pgvector)
- A relevance gate with bounded listwise LLM reranking
- On-demand discovery, extraction and ingestion when the store has no coverage
- Batch seeding and staleness refresh of the passage store

Answer generation and the HTTP surface live outside this package; they
consume RetrievalOrchestrator.retrieve().
"""

from .config import PipelineConfig
from .errors import (
    EmbeddingServiceError,
    ExtractionError,
    InvalidQueryError,
    PipelineError,
    RerankingUnavailable,
    SearchUnavailable,
)
from .models import Passage, PassageRecord, RetrievalFilters, RetrievalOutcome, Topic
from .embeddings import get_embedding_service
from .vector_store import VectorStore, VectorStoreConfig
from .extractor import ContentExtractor
from .chunker import PassageChunker
from .topics import classify_topic
from .reranker import ListwiseReranker
from .retriever import RelevanceGate
from .discovery import DocumentDiscovery
from .realtime import RealTimeIngestor
from .orchestrator import RetrievalOrchestrator
from .ingestion import SEED_URLS, SeedIngestor

__all__ = [
    "PipelineConfig",
    "PipelineError",
    "EmbeddingServiceError",
    "SearchUnavailable",
    "ExtractionError",
    "RerankingUnavailable",
    "InvalidQueryError",
    "Topic",
    "RetrievalFilters",
    "PassageRecord",
    "Passage",
    "RetrievalOutcome",
    "get_embedding_service",
    "VectorStore",
    "VectorStoreConfig",
    "ContentExtractor",
    "PassageChunker",
    "classify_topic",
    "ListwiseReranker",
    "RelevanceGate",
    "DocumentDiscovery",
    "RealTimeIngestor",
    "RetrievalOrchestrator",
    "SEED_URLS",
    "SeedIngestor",
]

__version__ = "0.1.0"
