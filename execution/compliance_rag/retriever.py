"""
Relevance Gate for passage retrieval

Pipeline:
1. Embed the query and run one similarity search (candidate_limit rows)
2. Keep candidates at or above the relevance threshold
3. Nothing passed: degrade to the top final_top_k by raw similarity
4. More than final_top_k passed: one listwise reranking call picks the best

The gate returns at most final_top_k passages, ordered by relevance, and
issues at most one reranking call per request.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import PipelineConfig
from .errors import capture
from .models import CandidatePassage, RetrievalFilters
from .reranker import ListwiseReranker
from .vector_store import sort_candidates

logger = logging.getLogger(__name__)


@dataclass
class GateResult:
    """Selected passages plus how they were chosen."""
    passages: list[CandidatePassage]
    candidates_seen: int = 0
    passed_threshold: int = 0
    reranked: bool = False


class RelevanceGate:
    """Similarity search + threshold filter + bounded reranking."""

    def __init__(
        self,
        vector_store,
        embedding_service,
        reranker: Optional[ListwiseReranker] = None,
        config: Optional[PipelineConfig] = None,
    ):
        """
        Args:
            vector_store: Store exposing ``search(vector, filters, limit) -> Result``
            embedding_service: Embedder exposing ``embed_query(text)``
            reranker: Listwise reranker; None disables reranking
            config: Pipeline configuration
        """
        self.store = vector_store
        self.embeddings = embedding_service
        self.reranker = reranker
        self.config = config or PipelineConfig()

    def retrieve(self, query: str, filters: RetrievalFilters) -> GateResult:
        """Run search and the gate policy. Failures degrade to an empty result."""
        embedded = capture(self.embeddings.embed_query, query)
        if not embedded.is_ok:
            logger.warning(f"Query embedding failed, treating as no results: {embedded.error.message}")
            return GateResult(passages=[])

        found = self.store.search(embedded.value, filters, limit=self.config.candidate_limit)
        if not found.is_ok:
            logger.warning(f"Search unavailable, treating as no results: {found.error.message}")
            return GateResult(passages=[])

        return self.select(query, found.value)

    def select(self, query: str, candidates: list[CandidatePassage]) -> GateResult:
        """Apply threshold, degradation and reranking to one candidate set."""
        ordered = sort_candidates(candidates)
        top_k = self.config.final_top_k
        passed = [c for c in ordered if c.similarity_score >= self.config.relevance_threshold]

        if not passed:
            if ordered:
                logger.info(
                    f"No candidates above {self.config.relevance_threshold}; "
                    f"returning top {min(top_k, len(ordered))} by similarity"
                )
            return GateResult(passages=ordered[:top_k], candidates_seen=len(ordered))

        if len(passed) <= top_k:
            return GateResult(
                passages=passed,
                candidates_seen=len(ordered),
                passed_threshold=len(passed),
            )

        if self.reranker is None or not self.config.use_reranking:
            selected, reranked = passed[:top_k], False
        else:
            selected, reranked = self.reranker.rerank(query, passed, top_k), True

        return GateResult(
            passages=selected,
            candidates_seen=len(ordered),
            passed_threshold=len(passed),
            reranked=reranked,
        )
