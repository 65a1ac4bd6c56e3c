"""
Listwise LLM Reranker

Asks a chat model to pick the most relevant passages for a query and
return their numbers as a comma-separated list. Unusable answers (call
failure, nothing parseable) fall back to similarity order, so a non-empty
candidate list never produces an empty selection.
"""

import os
import re
import logging
from typing import Optional

from .errors import Err, Ok, RerankingUnavailable, Result
from .models import CandidatePassage
from .vector_store import sort_candidates

logger = logging.getLogger(__name__)

RERANK_PROMPT = """Given this query: "{query}"

Rank these documents by relevance (1 = most relevant):
{documents}

Return only the numbers of the top {top_k} most relevant documents as a comma-separated list."""

PREVIEW_CHARS = 200


def build_rerank_prompt(query: str, candidates: list[CandidatePassage], top_k: int) -> str:
    """Numbered title/section/preview listing of the candidates."""
    documents = "".join(
        f"\n{i}. {c.record.title} - {c.record.section or 'Main'}\n"
        f"{c.record.content[:PREVIEW_CHARS]}...\n"
        for i, c in enumerate(candidates, start=1)
    )
    return RERANK_PROMPT.format(query=query, documents=documents, top_k=top_k)


def parse_ranking(text: Optional[str], candidate_count: int, top_k: int) -> list[int]:
    """
    Turn "3, 1, 7" into zero-based indices.

    Non-numeric tokens, out-of-range numbers and repeats are dropped;
    the result is truncated to ``top_k``.
    """
    if not text:
        return []
    indices = []
    for token in re.split(r"[,\s]+", text.strip()):
        token = token.strip().rstrip(".)]").lstrip("[(#")
        if not token.isdigit():
            continue
        index = int(token) - 1
        if 0 <= index < candidate_count and index not in indices:
            indices.append(index)
    return indices[:top_k]


class ListwiseReranker:
    """Selects the best ``top_k`` candidates with at most one LLM call."""

    def __init__(self, client=None, model: Optional[str] = None, max_tokens: int = 50):
        self._llm_client = client
        self.model = (
            model
            or os.getenv("RERANKER_MODEL")
            or os.getenv("AZURE_OPENAI_CHAT_DEPLOYMENT")
            or "gpt-4o-mini"
        )
        self.max_tokens = max_tokens

    def _get_llm_client(self):
        """Get or create the cached OpenAI (or Azure OpenAI) chat client."""
        if self._llm_client is None:
            azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
            if azure_endpoint:
                from openai import AzureOpenAI
                self._llm_client = AzureOpenAI(
                    api_key=os.getenv("AZURE_OPENAI_API_KEY"),
                    azure_endpoint=azure_endpoint,
                    api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-06-01"),
                    timeout=30.0,
                )
            else:
                from openai import OpenAI
                self._llm_client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"), timeout=30.0)
        return self._llm_client

    def request_ranking(self, query: str, candidates: list[CandidatePassage], top_k: int) -> Result:
        """One ranking call. Ok(list of indices) or Err(RerankingUnavailable)."""
        prompt = build_rerank_prompt(query, candidates, top_k)
        try:
            response = self._get_llm_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
                max_tokens=self.max_tokens,
            )
            content = response.choices[0].message.content
        except Exception as e:
            return Err(RerankingUnavailable(f"Ranking call failed: {e}"))

        indices = parse_ranking(content, len(candidates), top_k)
        if not indices:
            return Err(RerankingUnavailable(f"No usable ranking in response: {content!r}"))
        return Ok(indices)

    def rerank(self, query: str, candidates: list[CandidatePassage], top_k: int = 6) -> list[CandidatePassage]:
        """
        Pick the ``top_k`` most relevant candidates.

        Lists already within ``top_k`` are returned unchanged without a call.
        """
        if len(candidates) <= top_k:
            return list(candidates)

        result = self.request_ranking(query, candidates, top_k)
        if not result.is_ok:
            logger.warning(f"Reranking unavailable ({result.error.message}). Using similarity order.")
            return sort_candidates(candidates)[:top_k]

        logger.info(f"Reranked {len(candidates)} candidates to {len(result.value)}")
        return [candidates[i] for i in result.value]
