"""
Batch seeding of the passage store from curated guidance pages.

Each seed URL is extracted, chunked by h2/h3 headings (paragraph packing
when a page has no headings), embedded chunk by chunk and upserted under
the seed's topic. A failed page or chunk is recorded in the report and
skipped; it never stops the batch.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .chunker import ChunkConfig, PassageChunker
from .config import PipelineConfig
from .extractor import ContentExtractor
from .models import PassageRecord, Topic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedUrl:
    url: str
    topic: Topic
    title: str = ""


SEED_URLS: tuple[SeedUrl, ...] = (
    # TUPE
    SeedUrl("https://www.gov.uk/transfers-takeovers", Topic.TUPE, "TUPE transfers and takeovers"),
    SeedUrl("https://www.acas.org.uk/tupe", Topic.TUPE, "TUPE - ACAS guidance"),
    # Statutory Sick Pay
    SeedUrl("https://www.gov.uk/statutory-sick-pay", Topic.SICK, "Statutory Sick Pay (SSP)"),
    SeedUrl("https://www.acas.org.uk/absence-from-work/time-off-sick", Topic.SICK, "Time off sick - ACAS"),
    # Maternity/Paternity
    SeedUrl("https://www.gov.uk/maternity-pay-leave", Topic.MATERNITY_PATERNITY, "Maternity pay and leave"),
    SeedUrl("https://www.gov.uk/paternity-pay-leave", Topic.MATERNITY_PATERNITY, "Paternity pay and leave"),
    SeedUrl(
        "https://www.acas.org.uk/maternity-paternity-and-adoption-leave",
        Topic.MATERNITY_PATERNITY,
        "Maternity, paternity and adoption - ACAS",
    ),
    # Holiday entitlement
    SeedUrl("https://www.gov.uk/holiday-entitlement-rights", Topic.HOLIDAY, "Holiday entitlement"),
    SeedUrl("https://www.acas.org.uk/checking-holiday-entitlement", Topic.HOLIDAY, "Checking holiday entitlement - ACAS"),
    # Employment contracts
    SeedUrl("https://www.gov.uk/employment-contracts-and-conditions", Topic.EMPLOYMENT, "Employment contracts"),
    # Right to work / visas
    SeedUrl("https://www.gov.uk/legal-right-work-uk", Topic.VISAS, "Right to work in the UK"),
    SeedUrl("https://www.gov.uk/check-job-applicant-right-to-work", Topic.VISAS, "Check right to work"),
    # Redundancy
    SeedUrl("https://www.gov.uk/redundancy-your-rights", Topic.REDUNDANCY, "Redundancy rights"),
    # Disciplinaries
    SeedUrl(
        "https://www.acas.org.uk/disciplinary-procedure-step-by-step",
        Topic.DISCIPLINARY,
        "Disciplinary procedures - ACAS",
    ),
)


@dataclass
class IngestionReport:
    urls_ok: int = 0
    urls_failed: list[str] = field(default_factory=list)
    chunks_stored: int = 0
    chunks_failed: int = 0
    tokens_used: float = 0.0

    def summary(self) -> str:
        return (
            f"{self.urls_ok} URLs ingested, {len(self.urls_failed)} failed; "
            f"{self.chunks_stored} chunks stored, {self.chunks_failed} failed; "
            f"~{self.tokens_used:.0f} embedding tokens"
        )


class SeedIngestor:
    """Ingests a list of SeedUrls into the passage store."""

    def __init__(
        self,
        vector_store,
        embedding_service,
        extractor: Optional[ContentExtractor] = None,
        chunker: Optional[PassageChunker] = None,
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
        self._sleep = sleep

    def ingest_all(self, seeds=SEED_URLS) -> IngestionReport:
        report = IngestionReport()
        logger.info(f"Starting seed ingestion of {len(seeds)} URLs")
        for seed in seeds:
            self.ingest_url(seed, report)
        logger.info(f"Seed ingestion complete: {report.summary()}")
        return report

    def ingest_url(self, seed: SeedUrl, report: Optional[IngestionReport] = None) -> IngestionReport:
        """Extract, chunk, embed and upsert one seed page."""
        report = report if report is not None else IngestionReport()
        logger.info(f"Ingesting {seed.url}")

        extracted = self.extractor.extract(seed.url)
        if not extracted.is_ok:
            report.urls_failed.append(seed.url)
            return report

        page = extracted.value
        chunks = self.chunker.chunk(page.main_text, markup=page.structured_markup, strategy="auto")
        logger.info(f"Found {len(chunks)} chunks in {seed.url}")

        for i, chunk in enumerate(chunks):
            if i > 0:
                self._sleep(self.config.seed_delay_seconds)

            embedded = self.embeddings.try_embed(chunk.text)
            if not embedded.is_ok:
                logger.error(f"Embedding failed for {seed.url} [{chunk.label}]: {embedded.error.message}")
                report.chunks_failed += 1
                continue
            report.tokens_used += embedded.value.total_tokens

            record = PassageRecord(
                title=seed.title or page.title,
                url=seed.url,
                jurisdiction=self.config.jurisdiction,
                topic=seed.topic,
                section=chunk.label,
                content=chunk.text,
            )
            stored = self.store.upsert(record, embedded.value.embedding)
            if not stored.is_ok:
                logger.error(stored.error.message)
                report.chunks_failed += 1
                continue

            report.chunks_stored += 1
            logger.info(f"Ingested {seed.url} [{chunk.label}]")

        report.urls_ok += 1
        return report


def refresh_content(
    vector_store,
    ingestor: SeedIngestor,
    staleness_days: int = 30,
    seeds=SEED_URLS,
) -> dict:
    """
    Purge passages older than the staleness window, then re-seed.

    Returns:
        Row counts before, after the purge and at the end, plus the report
    """
    before = vector_store.count()
    logger.info(f"Passages before refresh: {before}")
    purged = vector_store.purge_stale(older_than_days=staleness_days)
    after_purge = vector_store.count()
    logger.info(f"Passages after purge: {after_purge}")
    report = ingestor.ingest_all(seeds)
    final = vector_store.count()
    logger.info(f"Passages after refresh: {final}")
    return {
        "before": before,
        "purged": purged,
        "after_purge": after_purge,
        "final": final,
        "report": report,
    }
