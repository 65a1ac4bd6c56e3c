"""
Refresh the passage store: purge passages past the staleness window,
then re-run seed ingestion.

Usage:
    python refresh_content.py
    python refresh_content.py --days 14
"""

import sys
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

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
    arg_parser = argparse.ArgumentParser(description="Purge stale passages and re-seed")
    arg_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Staleness window in days (default: STALENESS_DAYS or 30)",
    )
    args = arg_parser.parse_args()

    from execution.compliance_rag.config import PipelineConfig
    from execution.compliance_rag.embeddings import get_embedding_service
    from execution.compliance_rag.ingestion import SeedIngestor, refresh_content
    from execution.compliance_rag.vector_store import VectorStore, VectorStoreConfig

    config = PipelineConfig.from_env()
    days = args.days if args.days is not None else config.staleness_days

    embedding_service = get_embedding_service()
    store = VectorStore(VectorStoreConfig(embedding_dimensions=embedding_service.dimensions))
    store.connect()

    try:
        counts = refresh_content(
            store,
            SeedIngestor(store, embedding_service, config=config),
            staleness_days=days,
        )
    except Exception as e:
        logger.error(f"Content refresh failed: {e}")
        sys.exit(1)
    finally:
        store.close()

    print("\n" + "=" * 60)
    print("CONTENT REFRESH COMPLETE")
    print("=" * 60)
    print(f"Passages before:      {counts['before']}")
    print(f"Purged (> {days} days): {counts['purged']}")
    print(f"After purge:          {counts['after_purge']}")
    print(f"Final count:          {counts['final']}")
    print(f"Ingestion:            {counts['report'].summary()}")
    print("=" * 60)


if __name__ == "__main__":
    main()
