"""
Content Extractor for guidance pages

Fetches a URL and derives the article title, its main text and the HTML of
the primary article body. Main text comes from trafilatura's readability
heuristics; the article markup (used for heading-based chunking) comes from
a BeautifulSoup pass that strips navigation and page chrome.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests
import trafilatura
from bs4 import BeautifulSoup

from .config import PipelineConfig
from .errors import Err, ExtractionError, Ok, Result

logger = logging.getLogger(__name__)

# Elements that never carry article content
BOILERPLATE_TAGS = (
    "script", "style", "noscript", "template", "nav", "header", "footer",
    "aside", "form", "iframe", "svg", "button",
)
# Class/id fragments of common page chrome (cookie banners, breadcrumbs, menus)
BOILERPLATE_HINTS = re.compile(
    r"cookie|banner|breadcrumb|menu|navigation|nav-|sidebar|related|share|skip-link|feedback",
    re.IGNORECASE,
)
ARTICLE_SELECTORS = ("article", "main", "[role=main]", "#content", ".govuk-main-wrapper")
# Site-name suffix on <title> values, e.g. "Holiday entitlement - GOV.UK"
TITLE_SITE_SUFFIX = re.compile(r"\s*[-|\u2013]\s*GOV\.UK\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ExtractedPage:
    """Readable content derived from one page."""
    url: str
    title: str
    main_text: str
    structured_markup: str


def _make_session(user_agent: str) -> requests.Session:
    """Session with a descriptive client identifier."""
    s = requests.Session()
    s.headers.update({
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-GB,en;q=0.9",
    })
    return s


class ContentExtractor:
    """Fetches pages and extracts their primary article."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or PipelineConfig()
        self._session = session or _make_session(self.config.user_agent)

    def extract(self, url: str) -> Result:
        """
        Fetch ``url`` and extract its article.

        Returns:
            Ok(ExtractedPage), or Err(ExtractionError) for a failed/non-2xx fetch
            or when the derived text is shorter than ``min_extracted_chars``
        """
        try:
            html = self.fetch(url)
            return Ok(self.parse(html, url))
        except ExtractionError as e:
            logger.warning(f"Extraction failed for {url}: {e.message}")
            return Err(e)

    def fetch(self, url: str) -> str:
        """GET the raw markup. Raises ExtractionError on transport errors or non-2xx."""
        try:
            resp = self._session.get(url, timeout=self.config.request_timeout_seconds)
        except requests.RequestException as e:
            raise ExtractionError(f"Request failed: {e}", url=url) from e

        if not 200 <= resp.status_code < 300:
            raise ExtractionError(f"HTTP {resp.status_code}", url=url, status_code=resp.status_code)

        if not resp.encoding:
            resp.encoding = resp.apparent_encoding or "utf-8"
        return resp.text

    def parse(self, html: str, url: str = "") -> ExtractedPage:
        """Derive title, main text and article markup from raw HTML."""
        soup = BeautifulSoup(html, "html.parser")
        title = self._extract_title(soup)
        article = self._select_article(soup)
        structured_markup = str(article) if article is not None else ""

        main_text = trafilatura.extract(
            html,
            include_comments=False,
            include_tables=True,
            include_images=False,
            include_links=False,
            output_format="txt",
        ) or ""
        if not main_text.strip() and article is not None:
            # trafilatura gives up on very short or unusual pages
            main_text = _block_text(article)

        main_text = _normalize_text(main_text)
        if len(main_text) < self.config.min_extracted_chars:
            raise ExtractionError(
                f"Extracted text too short ({len(main_text)} < {self.config.min_extracted_chars} chars)",
                url=url,
            )

        return ExtractedPage(
            url=url,
            title=title,
            main_text=main_text,
            structured_markup=structured_markup,
        )

    def _extract_title(self, soup: BeautifulSoup) -> str:
        og_title = soup.find("meta", attrs={"property": "og:title"})
        if og_title and og_title.get("content"):
            return og_title["content"].strip()
        h1 = soup.find("h1")
        if h1 and h1.get_text(strip=True):
            return h1.get_text(" ", strip=True)
        if soup.title and soup.title.string:
            return TITLE_SITE_SUFFIX.sub("", soup.title.string.strip())
        return ""

    def _select_article(self, soup: BeautifulSoup):
        """Strip boilerplate and return the most likely article container."""
        for tag in soup.find_all(BOILERPLATE_TAGS):
            tag.decompose()
        for tag in soup.find_all(True):
            if tag.decomposed:
                continue
            # Never drop the document scaffolding itself
            if tag.name in ("html", "body", "main", "article"):
                continue
            marker = " ".join(tag.get("class") or []) + " " + (tag.get("id") or "")
            if marker.strip() and BOILERPLATE_HINTS.search(marker):
                tag.decompose()

        for selector in ARTICLE_SELECTORS:
            found = soup.select_one(selector)
            if found is not None and len(found.get_text(strip=True)) > 0:
                return found
        return soup.body or soup


def _block_text(node) -> str:
    """Text of block elements separated by blank lines."""
    blocks = []
    for el in node.find_all(["h1", "h2", "h3", "h4", "p", "li", "td"]):
        text = el.get_text(" ", strip=True)
        if text:
            blocks.append(text)
    return "\n\n".join(blocks) if blocks else node.get_text("\n\n", strip=True)


def _normalize_text(text: str) -> str:
    """Collapse runs of spaces; one blank line between blocks."""
    text = re.sub(r"[ \t\xa0]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    # trafilatura emits one block per line
    text = re.sub(r"\n+", "\n\n", text)
    return text.strip()
