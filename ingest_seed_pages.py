"""
Seed the passage store from the curated GOV.UK / ACAS guidance pages.

Pipeline per URL:
- Extractor: requests + trafilatura main text, BeautifulSoup article markup
- Chunker: h2/h3 heading sections (paragraph packing when no headings)
- Embeddings: EMBEDDING_PROVIDER (OpenAI / Azure OpenAI by default)
- Storage: PostgreSQL + pgvector, upsert on (url, section)

Usage:
    python ingest_seed_pages.py
    python ingest_seed_pages.py --init-schema
    python ingest_seed_pages.py --topic Holiday --delay 0.5
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    arg_parser = argparse.ArgumentParser(description="Seed the compliance passage store")
    arg_parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the pgvector extension, table and indexes first",
    )
    arg_parser.add_argument(
        "--topic",
        type=str,
        default=None,
        help="Only ingest seed pages for this topic (e.g. Holiday, TUPE)",
    )
    arg_parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between chunk embeddings (default: SEED_CHUNK_DELAY or 1.0)",
    )
    args = arg_parser.parse_args()

    from execution.compliance_rag.config import PipelineConfig
    from execution.compliance_rag.embeddings import get_embedding_service
    from execution.compliance_rag.ingestion import SEED_URLS, SeedIngestor
    from execution.compliance_rag.models import Topic
    from execution.compliance_rag.vector_store import VectorStore, VectorStoreConfig

    overrides = {"seed_delay_seconds": args.delay} if args.delay is not None else {}
    config = PipelineConfig.from_env(**overrides)

    seeds = SEED_URLS
    if args.topic:
        try:
            topic = Topic(args.topic)
        except ValueError:
            logger.error(f"Unknown topic: {args.topic}. Choose from: {', '.join(t.value for t in Topic)}")
            sys.exit(1)
        seeds = tuple(s for s in SEED_URLS if s.topic == topic)
        if not seeds:
            logger.error(f"No seed pages for topic {topic.value}")
            sys.exit(1)

    embedding_service = get_embedding_service()
    store = VectorStore(VectorStoreConfig(embedding_dimensions=embedding_service.dimensions))
    store.connect()
    if args.init_schema:
        store.initialize_schema()

    ingestor = SeedIngestor(store, embedding_service, config=config)

    start_time = time.time()
    report = ingestor.ingest_all(seeds)
    elapsed = time.time() - start_time
    store.close()

    print("\n" + "=" * 60)
    print("SEED INGESTION COMPLETE")
    print("=" * 60)
    print(f"URLs ingested:   {report.urls_ok}/{len(seeds)}")
    print(f"Chunks stored:   {report.chunks_stored} ({report.chunks_failed} failed)")
    print(f"Embedding usage: ~{report.tokens_used:.0f} tokens")
    print(f"Time elapsed:    {elapsed:.1f}s")
    for url in report.urls_failed:
        print(f"  FAILED: {url}")
    print("=" * 60)


if __name__ == "__main__":
    main()
