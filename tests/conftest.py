"""
Shared fixtures and test utilities for Compliance RAG tests.

Provides a deterministic embedding service, an in-memory vector store,
sample guidance pages and candidate factories so that all tests run
without API keys, databases, or external network access.
"""

import sys
import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# ---------------------------------------------------------------------------
# Sample guidance pages
# ---------------------------------------------------------------------------

HOLIDAY_PARAGRAPHS = [
    "Almost all workers are legally entitled to 5.6 weeks' paid holiday a year, known as statutory leave entitlement or annual leave.",
    "An employer can include bank holidays as part of statutory annual leave, and can control when you take your holiday.",
    "Workers who work irregular hours or part-year accrue holiday at 12.07% of the hours they work in a pay period.",
]

SAMPLE_GOVUK_HTML = f"""
<html>
<head>
  <title>Holiday entitlement - GOV.UK</title>
  <meta property="og:title" content="Holiday entitlement">
</head>
<body>
  <header class="govuk-header"><a href="/">GOV.UK</a></header>
  <nav class="govuk-breadcrumbs"><a href="/">Home</a> &gt; <a href="/employment">Employment</a></nav>
  <div class="cookie-banner">We use cookies to collect information about how you use GOV.UK.</div>
  <main id="content">
    <h1>Holiday entitlement</h1>
    <p>This guide explains how much paid holiday workers are entitled to each year in the UK.</p>
    <h2>Entitlement</h2>
    <p>{HOLIDAY_PARAGRAPHS[0]}</p>
    <h3>Bank holidays</h3>
    <p>{HOLIDAY_PARAGRAPHS[1]}</p>
    <h2>Irregular hours</h2>
    <p>{HOLIDAY_PARAGRAPHS[2]}</p>
  </main>
  <footer><p>All content is available under the Open Government Licence v3.0.</p></footer>
</body>
</html>
"""

SAMPLE_PLAIN_HTML = """
<html><head><title>Working time rules</title></head>
<body><article>
<p>Most workers should not work more than 48 hours a week on average, normally averaged over 17 weeks.</p>
<p>Workers aged under 18 cannot work more than 8 hours a day or 40 hours a week, and cannot opt out.</p>
</article></body></html>
"""


@pytest.fixture
def sample_govuk_html():
    return SAMPLE_GOVUK_HTML


@pytest.fixture
def sample_plain_html():
    return SAMPLE_PLAIN_HTML


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=8, fail_on=None, fail_queries=False):
        self._dimensions = dimensions
        self.fail_on = set(fail_on or [])
        self.fail_queries = fail_queries
        self.query_calls = 0
        self.document_calls = 0

    def embed(self, texts, input_type=None):
        from execution.compliance_rag.embeddings import EmbeddingResult
        from execution.compliance_rag.errors import EmbeddingServiceError

        if isinstance(texts, str):
            texts = [texts]
        results = []
        for text in texts:
            if text in self.fail_on:
                raise EmbeddingServiceError(f"upstream failure for {text[:20]}")
            tokens = float(len(text) // 4)
            results.append(EmbeddingResult(
                embedding=self._deterministic_embedding(text),
                prompt_tokens=tokens,
                total_tokens=tokens,
            ))
        return results

    def embed_documents(self, texts):
        return [r.embedding for r in self.embed(texts)]

    def embed_query(self, query):
        from execution.compliance_rag.errors import EmbeddingServiceError

        self.query_calls += 1
        if self.fail_queries:
            raise EmbeddingServiceError("query embedding unavailable")
        return self._deterministic_embedding(query)

    def try_embed(self, text):
        from execution.compliance_rag.errors import Ok, capture

        self.document_calls += 1
        result = capture(self.embed, [text])
        return Ok(result.value[0]) if result.is_ok else result

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i * 37) % 1000) / 1000.0 + 0.001 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


# ---------------------------------------------------------------------------
# In-memory vector store (no database needed)
# ---------------------------------------------------------------------------

class InMemoryVectorStore:
    """
    In-memory stand-in for VectorStore.

    Cosine similarity via numpy; one row per (url, section); ties ordered
    by numeric id. ``preset`` replaces the computed candidates for tests
    that need exact similarity scores.
    """

    def __init__(self, preset=None):
        self._rows = {}
        self._next_id = 1
        self.preset = preset
        self.search_calls = 0
        self.upsert_calls = 0
        self.fail_search = False
        self.fail_upsert_sections = set()

    def search(self, query_embedding, filters, limit=12):
        from execution.compliance_rag.errors import Err, Ok, SearchUnavailable
        from execution.compliance_rag.models import CandidatePassage
        from execution.compliance_rag.vector_store import sort_candidates

        self.search_calls += 1
        if self.fail_search:
            return Err(SearchUnavailable("connection refused"))
        if self.preset is not None:
            return Ok(sort_candidates(self.preset)[:limit])

        query = np.array(query_embedding, dtype=float)
        candidates = []
        for record, embedding in self._rows.values():
            if record.jurisdiction != filters.jurisdiction:
                continue
            if filters.topic is not None and record.topic != filters.topic:
                continue
            vec = np.array(embedding, dtype=float)
            score = float(np.dot(query, vec) / (np.linalg.norm(query) * np.linalg.norm(vec)))
            candidates.append(CandidatePassage(record=record, similarity_score=score))
        return Ok(sort_candidates(candidates)[:limit])

    def upsert(self, record, embedding):
        from execution.compliance_rag.errors import Err, Ok, SearchUnavailable

        self.upsert_calls += 1
        if record.section in self.fail_upsert_sections:
            return Err(SearchUnavailable(f"Upsert failed for {record.url} [{record.section}]"))
        existing = self._rows.get(record.key)
        if existing is not None:
            row_id = existing[0].id
        else:
            row_id = str(self._next_id)
            self._next_id += 1
        stored = record.model_copy(update={"id": row_id})
        self._rows[record.key] = (stored, list(embedding))
        return Ok(stored)

    def url_exists(self, url):
        from execution.compliance_rag.errors import Ok
        return Ok(any(key[0] == url for key in self._rows))

    def count(self):
        return len(self._rows)

    def purge_stale(self, older_than_days=30, now=None):
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=older_than_days)
        stale = [k for k, (r, _) in self._rows.items() if r.last_refreshed_at < cutoff]
        for key in stale:
            del self._rows[key]
        return len(stale)

    def records(self):
        return [r for r, _ in self._rows.values()]

    def close(self):
        pass


@pytest.fixture
def memory_store():
    return InMemoryVectorStore()


# ---------------------------------------------------------------------------
# Records and candidates
# ---------------------------------------------------------------------------

def make_record(id=None, url="https://www.gov.uk/holiday-entitlement-rights", section="Part 1",
                content="Almost all workers are legally entitled to 5.6 weeks' paid holiday a year.",
                title="Holiday entitlement", topic="Holiday", jurisdiction="UK", **kwargs):
    from execution.compliance_rag.models import PassageRecord
    return PassageRecord(
        id=id, title=title, url=url, jurisdiction=jurisdiction,
        topic=topic, section=section, content=content, **kwargs,
    )


def make_candidates(scores):
    """One CandidatePassage per score; ids 1..n, each on its own URL."""
    from execution.compliance_rag.models import CandidatePassage
    return [
        CandidatePassage(
            record=make_record(
                id=str(i),
                url=f"https://www.gov.uk/page-{i}",
                section=f"Section {i}",
                content=f"Guidance passage number {i} about holiday entitlement.",
            ),
            similarity_score=score,
        )
        for i, score in enumerate(scores, start=1)
    ]


@pytest.fixture
def holiday_scenario_candidates():
    return make_candidates([0.91, 0.85, 0.8, 0.75, 0.72, 0.68, 0.6, 0.4])


# ---------------------------------------------------------------------------
# Fakes for pipeline collaborators
# ---------------------------------------------------------------------------

class StaticDiscovery:
    """Discovery stand-in returning a fixed URL list."""

    def __init__(self, urls):
        self.urls = urls
        self.calls = []

    def discover(self, query):
        from execution.compliance_rag.discovery import DiscoveredUrl
        self.calls.append(query)
        return [u if isinstance(u, DiscoveredUrl) else DiscoveredUrl(url=u) for u in self.urls]


class StaticExtractor:
    """Extractor stand-in: url -> ExtractedPage, or an ExtractionError for unknown URLs."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def extract(self, url):
        from execution.compliance_rag.errors import Err, ExtractionError, Ok
        from execution.compliance_rag.extractor import ExtractedPage

        self.calls.append(url)
        if url not in self.pages:
            return Err(ExtractionError("HTTP 404", url=url, status_code=404))
        title, text = self.pages[url]
        return Ok(ExtractedPage(url=url, title=title, main_text=text, structured_markup=""))


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


def long_text(n_chars, paragraph_chars=400):
    """Paragraph-separated text of roughly ``n_chars`` characters."""
    paragraphs = []
    total = 0
    i = 0
    while total < n_chars:
        body = (f"Paragraph {i} explains statutory employment guidance in plain English. " * 20)
        paragraph = body[:paragraph_chars].strip()
        paragraphs.append(paragraph)
        total += len(paragraph) + 2
        i += 1
    return "\n\n".join(paragraphs)
