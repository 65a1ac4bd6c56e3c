"""
Run a question set through the retrieval orchestrator and record, per
question, how many passages came back, whether the real-time fallback
ran, and the latency.

Input is a JSON list of {"question": ..., "topic": ...} objects.

Usage:
    python run_retrieval_eval.py --questions eval/questions_uk.json
    python run_retrieval_eval.py --questions q.json --output eval.csv --no-rerank
"""

import csv
import sys
import json
import time
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

CSV_FIELDS = ["q", "num_passages", "used_realtime", "latency_ms"]


def run_evaluation(orchestrator, questions: list[dict], pause_seconds: float = 1.0, sleep=time.sleep) -> list[dict]:
    """One row per question; a failed question is recorded with zero passages."""
    from execution.compliance_rag.errors import InvalidQueryError

    rows = []
    for i, item in enumerate(questions, 1):
        question = item.get("question", "")
        logger.info(f"[{i}/{len(questions)}] {question}")
        start = time.perf_counter()
        try:
            outcome = orchestrator.retrieve(question, topic=item.get("topic"))
            num_passages = len(outcome.passages)
            used_realtime = outcome.used_realtime_retrieval
        except InvalidQueryError as e:
            logger.error(f"  Skipped: {e.message}")
            num_passages, used_realtime = 0, False
        latency_ms = int((time.perf_counter() - start) * 1000)

        rows.append({
            "q": question,
            "num_passages": num_passages,
            "used_realtime": used_realtime,
            "latency_ms": latency_ms,
        })
        if i < len(questions):
            sleep(pause_seconds)
    return rows


def summarize(rows: list[dict]) -> dict:
    if not rows:
        return {"total": 0, "answered": 0, "answered_pct": 0.0, "avg_passages": 0.0, "avg_latency_ms": 0.0}
    answered = sum(1 for r in rows if r["num_passages"] > 0)
    return {
        "total": len(rows),
        "answered": answered,
        "answered_pct": answered / len(rows) * 100,
        "avg_passages": sum(r["num_passages"] for r in rows) / len(rows),
        "avg_latency_ms": sum(r["latency_ms"] for r in rows) / len(rows),
    }


def write_csv(rows: list[dict], path: Path) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        writer.writerows(rows)


def main():
    arg_parser = argparse.ArgumentParser(description="Evaluate retrieval over a question set")
    arg_parser.add_argument("--questions", type=str, required=True, help="JSON file of questions")
    arg_parser.add_argument("--output", type=str, default="eval.csv", help="CSV output path")
    arg_parser.add_argument("--no-rerank", action="store_true", help="Disable LLM reranking")
    args = arg_parser.parse_args()

    questions_path = Path(args.questions)
    if not questions_path.exists():
        logger.error(f"Questions file not found: {questions_path}")
        sys.exit(1)
    questions = json.loads(questions_path.read_text(encoding="utf-8"))

    from execution.compliance_rag.config import PipelineConfig
    from execution.compliance_rag.embeddings import get_embedding_service
    from execution.compliance_rag.orchestrator import RetrievalOrchestrator
    from execution.compliance_rag.reranker import ListwiseReranker
    from execution.compliance_rag.vector_store import VectorStore, VectorStoreConfig

    overrides = {"use_reranking": False} if args.no_rerank else {}
    config = PipelineConfig.from_env(**overrides)

    embedding_service = get_embedding_service()
    store = VectorStore(VectorStoreConfig(embedding_dimensions=embedding_service.dimensions))
    store.connect()
    orchestrator = RetrievalOrchestrator(
        store,
        embedding_service,
        reranker=ListwiseReranker(model=config.reranker_model),
        config=config,
    )

    logger.info(f"Running evaluation with {len(questions)} questions")
    rows = run_evaluation(orchestrator, questions)
    store.close()

    output_path = Path(args.output)
    write_csv(rows, output_path)
    summary = summarize(rows)

    print("\n=== Evaluation Summary ===")
    print(f"Total questions:  {summary['total']}")
    print(f"Answered:         {summary['answered']} ({summary['answered_pct']:.1f}%)")
    print(f"Average passages: {summary['avg_passages']:.1f}")
    print(f"Average latency:  {summary['avg_latency_ms']:.0f}ms")
    print(f"\nResults saved to {output_path}")


if __name__ == "__main__":
    main()
