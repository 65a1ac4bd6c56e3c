"""
External document discovery for the real-time fallback.

Two independent sources, queried in parallel:
- GOV.UK site search API (keyworded, returns url/title pairs)
- A static keyword -> URL table for ACAS, which has no public search API

A failing source contributes nothing; it never aborts the other.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

import requests

from .config import PipelineConfig

logger = logging.getLogger(__name__)

GOVUK_BASE_URL = "https://www.gov.uk"
GOVUK_SEARCH_URL = f"{GOVUK_BASE_URL}/api/search.json"

ACAS_KEYWORD_TABLE: tuple[tuple[str, str, str], ...] = (
    ("pension", "https://www.acas.org.uk/pensions", "Pensions - ACAS"),
    ("working time", "https://www.acas.org.uk/working-time-rules", "Working time rules - ACAS"),
    ("minimum wage", "https://www.acas.org.uk/national-minimum-wage", "National minimum wage - ACAS"),
    ("discrimination", "https://www.acas.org.uk/discrimination-and-the-law", "Discrimination - ACAS"),
    ("equality", "https://www.acas.org.uk/equality-and-discrimination", "Equality and discrimination - ACAS"),
)


@dataclass(frozen=True)
class DiscoveredUrl:
    url: str
    title: str = ""


class GovUkSearch:
    """Keyword search against the GOV.UK search API."""

    def __init__(self, config: Optional[PipelineConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or PipelineConfig()
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self.config.user_agent})

    def search(self, query: str) -> list[DiscoveredUrl]:
        """Raises requests.RequestException / ValueError on transport or payload errors."""
        resp = self._session.get(
            GOVUK_SEARCH_URL,
            params={
                "q": query,
                "count": self.config.discovery_result_count,
                "fields": "web_url,title",
            },
            timeout=self.config.request_timeout_seconds,
        )
        resp.raise_for_status()
        payload = resp.json()

        found = []
        for item in payload.get("results", []):
            link = item.get("web_url") or item.get("link")
            if not link:
                continue
            url = urljoin(GOVUK_BASE_URL, link)
            if is_usable_govuk_url(url):
                found.append(DiscoveredUrl(url=url, title=item.get("title") or ""))
        return found


def is_usable_govuk_url(url: str) -> bool:
    """Guidance pages only: on gov.uk, not an API route, no fragment."""
    return "gov.uk" in url and "/api/" not in url and "#" not in url


class AcasKeywordTable:
    """Static lookup; the first matching keyword wins."""

    def __init__(self, table: tuple[tuple[str, str, str], ...] = ACAS_KEYWORD_TABLE):
        self.table = table

    def search(self, query: str) -> list[DiscoveredUrl]:
        lowered = query.lower()
        for keyword, url, title in self.table:
            if keyword in lowered:
                return [DiscoveredUrl(url=url, title=title)]
        return []


class DocumentDiscovery:
    """Runs every source concurrently and merges their URLs."""

    def __init__(self, sources: Optional[list] = None, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self.sources = sources if sources is not None else [
            GovUkSearch(self.config),
            AcasKeywordTable(),
        ]

    def discover(self, query: str) -> list[DiscoveredUrl]:
        """
        Query all sources in parallel.

        Returns:
            URLs in source order (first source first), de-duplicated
        """
        if not self.sources:
            return []

        per_source: dict[int, list[DiscoveredUrl]] = {}
        with ThreadPoolExecutor(max_workers=len(self.sources)) as executor:
            future_map = {
                executor.submit(source.search, query): i
                for i, source in enumerate(self.sources)
            }
            for future in as_completed(future_map):
                i = future_map[future]
                try:
                    per_source[i] = future.result()
                except Exception as e:
                    logger.warning(f"Discovery source {type(self.sources[i]).__name__} failed: {e}")
                    per_source[i] = []

        merged = dedupe_urls(
            url for i in range(len(self.sources)) for url in per_source.get(i, [])
        )
        logger.info(f"Discovered {len(merged)} URLs for query: {query[:80]}")
        return merged


def dedupe_urls(urls) -> list[DiscoveredUrl]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen = set()
    unique = []
    for item in urls:
        if item.url in seen:
            continue
        seen.add(item.url)
        unique.append(item)
    return unique
