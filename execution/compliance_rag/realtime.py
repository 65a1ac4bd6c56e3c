"""
Real-Time Ingestion Fallback

Triggered when the primary store has nothing for a query:
discover URLs -> skip already-stored URLs -> extract -> paragraph chunking
-> embed each chunk -> upsert. Work is capped at ``max_fallback_urls`` new
URLs, processed sequentially with politeness delays between URL fetches
and between chunk embeddings.

Failures are scoped to the item they occur in: a bad URL is skipped, a
bad chunk is skipped, and the rest of the batch continues.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .chunker import ChunkConfig, PassageChunker
from .config import PipelineConfig
from .discovery import DiscoveredUrl, DocumentDiscovery
from .extractor import ContentExtractor
from .models import PassageRecord, Topic
from .topics import resolve_topic

logger = logging.getLogger(__name__)


@dataclass
class FallbackResult:
    """Rows written by one fallback run."""
    topic: Topic
    records: list[PassageRecord] = field(default_factory=list)
    urls_discovered: int = 0
    urls_skipped_existing: int = 0
    urls_failed: int = 0
    chunks_failed: int = 0
    tokens_used: float = 0.0


class RealTimeIngestor:
    """Discovers, fetches and stores fresh content for a query."""

    def __init__(
        self,
        vector_store,
        embedding_service,
        extractor: Optional[ContentExtractor] = None,
        chunker: Optional[PassageChunker] = None,
        discovery: Optional[DocumentDiscovery] = None,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or PipelineConfig()
        self.store = vector_store
        self.embeddings = embedding_service
        self.extractor = extractor or ContentExtractor(self.config)
        self.chunker = chunker or PassageChunker(ChunkConfig(
            max_chars=self.config.max_chunk_chars,
            min_paragraph_chars=self.config.min_paragraph_chars,
        ))
        self.discovery = discovery or DocumentDiscovery(config=self.config)
        self._sleep = sleep

    def ingest(self, query: str, topic: Optional[Topic] = None) -> FallbackResult:
        """
        Run one fallback pass for ``query``.

        Args:
            query: The user's question (used for discovery and topic inference)
            topic: Explicit topic; inferred from the query when omitted

        Returns:
            FallbackResult whose ``records`` are the newly stored passages
        """
        effective_topic = resolve_topic(query, topic)
        logger.info(f"Real-time retrieval for '{query[:80]}' (topic: {effective_topic.value})")
        result = FallbackResult(topic=effective_topic)

        discovered = self.discovery.discover(query)
        result.urls_discovered = len(discovered)
        if not discovered:
            logger.info("No candidate URLs discovered")
            return result

        accepted = self._select_new_urls(discovered, result)
        for i, item in enumerate(accepted):
            if i > 0:
                self._sleep(self.config.url_delay_seconds)
            try:
                self._ingest_url(item, effective_topic, result)
            except Exception as e:
                logger.error(f"Real-time ingestion failed for {item.url}: {e}")
                result.urls_failed += 1

        logger.info(
            f"Real-time retrieval stored {len(result.records)} passages from "
            f"{len(accepted) - result.urls_failed}/{len(accepted)} URLs "
            f"(~{result.tokens_used:.0f} embedding tokens)"
        )
        return result

    def _select_new_urls(self, discovered: list[DiscoveredUrl], result: FallbackResult) -> list[DiscoveredUrl]:
        """First ``max_fallback_urls`` URLs that have no stored passages yet."""
        accepted = []
        for item in discovered:
            if len(accepted) >= self.config.max_fallback_urls:
                break
            exists = self.store.url_exists(item.url)
            if not exists.is_ok:
                # Unknown state: do not risk overwriting fresher rows
                logger.warning(f"Skipping {item.url}: {exists.error.message}")
                continue
            if exists.value:
                logger.info(f"Content already stored for {item.url}, skipping")
                result.urls_skipped_existing += 1
                continue
            accepted.append(item)
        return accepted

    def _ingest_url(self, item: DiscoveredUrl, topic: Topic, result: FallbackResult) -> None:
        logger.info(f"Fetching real-time content from {item.url}")
        extracted = self.extractor.extract(item.url)
        if not extracted.is_ok:
            result.urls_failed += 1
            return

        page = extracted.value
        chunks = self.chunker.chunk(page.main_text, strategy="paragraphs")
        for j, chunk in enumerate(chunks):
            if j > 0:
                self._sleep(self.config.chunk_delay_seconds)

            embedded = self.embeddings.try_embed(chunk.text)
            if not embedded.is_ok:
                logger.error(f"Embedding failed for {item.url} [{chunk.label}]: {embedded.error.message}")
                result.chunks_failed += 1
                continue
            result.tokens_used += embedded.value.total_tokens

            record = PassageRecord(
                title=page.title or item.title,
                url=item.url,
                jurisdiction=self.config.jurisdiction,
                topic=topic,
                section=chunk.label,
                content=chunk.text,
            )
            stored = self.store.upsert(record, embedded.value.embedding)
            if not stored.is_ok:
                logger.error(stored.error.message)
                result.chunks_failed += 1
                continue

            result.records.append(stored.value)
            logger.info(f"Real-time ingested {item.url} [{chunk.label}]")
