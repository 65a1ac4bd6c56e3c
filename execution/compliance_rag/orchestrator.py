"""
Retrieval Orchestrator

Entry point composing the relevance gate and the real-time fallback:

    Searching --(results)--> Done
    Searching --(empty)--> FallbackIngesting --(stored rows)--> Researching --> Done
                                             --(nothing)------------------> Done

Researching re-runs the gate exactly once. The orchestrator never raises
for "no knowledge found"; only malformed input (empty query, unknown
topic) raises InvalidQueryError.
"""

import time
import logging
from typing import Callable, Optional, Union

from .config import PipelineConfig
from .errors import InvalidQueryError
from .models import (
    Passage,
    RetrievalFilters,
    RetrievalOutcome,
    RetrievalState,
    Topic,
)
from .realtime import RealTimeIngestor
from .reranker import ListwiseReranker
from .retriever import RelevanceGate

logger = logging.getLogger(__name__)


class RetrievalOrchestrator:
    """
    Composes search, gating, reranking and the real-time fallback.

    All collaborators are injected; nothing is constructed at module scope.
    """

    def __init__(
        self,
        vector_store,
        embedding_service,
        reranker: Optional[ListwiseReranker] = None,
        fallback: Optional[RealTimeIngestor] = None,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or PipelineConfig()
        self.gate = RelevanceGate(vector_store, embedding_service, reranker, self.config)
        self.fallback = fallback or RealTimeIngestor(
            vector_store, embedding_service, config=self.config, sleep=sleep,
        )

    def retrieve(
        self,
        query: str,
        topic: Optional[Union[Topic, str]] = None,
        jurisdiction: Optional[str] = None,
    ) -> RetrievalOutcome:
        """
        Retrieve up to ``final_top_k`` passages for a question.

        Args:
            query: Question text (required)
            topic: Optional explicit topic; also used as the search filter
            jurisdiction: Defaults to the deployment jurisdiction

        Returns:
            RetrievalOutcome with the ordered passages and the fallback flag

        Raises:
            InvalidQueryError: empty query or a topic outside the taxonomy
        """
        if not query or not query.strip():
            raise InvalidQueryError("Question is required")
        try:
            filters = RetrievalFilters(
                jurisdiction=jurisdiction or self.config.jurisdiction,
                topic=topic or None,
            )
        except ValueError as e:
            raise InvalidQueryError(f"Invalid filters: {e}") from e

        start = time.perf_counter()
        states = [RetrievalState.SEARCHING]
        selected = self.gate.retrieve(query, filters).passages
        used_realtime = False

        if not selected:
            states.append(RetrievalState.FALLBACK_INGESTING)
            stored = self._run_fallback(query, filters.topic)
            if stored:
                used_realtime = True
                states.append(RetrievalState.RESEARCHING)
                selected = self.gate.retrieve(query, filters).passages

        states.append(RetrievalState.DONE)
        outcome = RetrievalOutcome(
            passages=[Passage.from_record(c.record) for c in selected],
            used_realtime_retrieval=used_realtime,
            passage_ids=[c.id for c in selected],
            states=states,
        )

        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"retrieval query={query[:80]!r} topic={filters.topic.value if filters.topic else None} "
            f"passage_ids={outcome.passage_ids} latency_ms={latency_ms} "
            f"used_realtime={used_realtime}"
        )
        return outcome

    def _run_fallback(self, query: str, topic: Optional[Topic]) -> int:
        """Number of newly stored rows; any fallback failure counts as zero."""
        try:
            return len(self.fallback.ingest(query, topic).records)
        except Exception as e:
            logger.error(f"Real-time fallback failed: {e}")
            return 0
