"""
Tests for execution/compliance_rag/extractor.py

Covers: HTTP fetch handling (non-2xx, transport errors), boilerplate
        stripping, title derivation, main-text extraction via trafilatura
        with the BeautifulSoup fallback, and the minimum-length rule.

Network access is mocked via a fake requests session.
"""

from unittest.mock import patch, MagicMock

import pytest
import requests


def _session(status=200, text="", exc=None):
    session = MagicMock()
    if exc is not None:
        session.get.side_effect = exc
    else:
        resp = MagicMock()
        resp.status_code = status
        resp.text = text
        resp.encoding = "utf-8"
        session.get.return_value = resp
    return session


@pytest.fixture
def extractor_factory():
    from execution.compliance_rag.extractor import ContentExtractor

    def _make(**session_kwargs):
        return ContentExtractor(session=_session(**session_kwargs))
    return _make


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

class TestFetch:

    def test_non_2xx_is_extraction_error(self, extractor_factory):
        extractor = extractor_factory(status=404, text="Not found")
        result = extractor.extract("https://www.gov.uk/missing")
        assert not result.is_ok
        assert result.kind == "extraction"
        assert result.error.status_code == 404
        assert result.error.url == "https://www.gov.uk/missing"

    def test_transport_error_is_extraction_error(self, extractor_factory):
        extractor = extractor_factory(exc=requests.ConnectionError("dns failure"))
        result = extractor.extract("https://www.gov.uk/x")
        assert not result.is_ok
        assert "dns failure" in result.error.message

    def test_uses_timeout(self, extractor_factory, sample_govuk_html):
        extractor = extractor_factory(text=sample_govuk_html)
        extractor.extract("https://www.gov.uk/holiday-entitlement-rights")
        assert extractor._session.get.call_args.kwargs["timeout"] == 30.0

    def test_default_session_identifies_bot(self):
        from execution.compliance_rag.extractor import ContentExtractor
        extractor = ContentExtractor()
        assert "HR-Compliance-Bot/1.0" in extractor._session.headers["User-Agent"]


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

class TestParse:

    def test_title_prefers_og_title(self, sample_govuk_html):
        from execution.compliance_rag.extractor import ContentExtractor
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value=None):
            page = ContentExtractor().parse(sample_govuk_html, "https://www.gov.uk/holiday-entitlement-rights")
        assert page.title == "Holiday entitlement"

    @pytest.mark.parametrize("raw_title", [
        "Statutory Sick Pay (SSP) - GOV.UK",
        "Statutory Sick Pay (SSP) | GOV.UK",
        "Statutory Sick Pay (SSP)",
    ])
    def test_document_title_drops_site_suffix(self, sample_plain_html, raw_title):
        from execution.compliance_rag.extractor import ContentExtractor
        html = sample_plain_html.replace("<title>Working time rules</title>", f"<title>{raw_title}</title>")
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value=None):
            page = ContentExtractor().parse(html, "https://www.gov.uk/statutory-sick-pay")
        assert page.title == "Statutory Sick Pay (SSP)"

    def test_markup_strips_boilerplate(self, sample_govuk_html):
        from execution.compliance_rag.extractor import ContentExtractor
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value=None):
            page = ContentExtractor().parse(sample_govuk_html, "u")
        assert "<h2>Entitlement</h2>" in page.structured_markup
        assert "cookies" not in page.structured_markup
        assert "Open Government Licence" not in page.structured_markup
        assert "breadcrumbs" not in page.structured_markup

    def test_trafilatura_text_used_with_blank_lines_between_blocks(self, sample_govuk_html):
        from execution.compliance_rag.extractor import ContentExtractor
        from conftest import HOLIDAY_PARAGRAPHS
        extracted = "\n".join(HOLIDAY_PARAGRAPHS)
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value=extracted) as mock_extract:
            page = ContentExtractor().parse(sample_govuk_html, "u")
        assert page.main_text == "\n\n".join(HOLIDAY_PARAGRAPHS)
        assert mock_extract.call_args.kwargs["include_comments"] is False

    def test_fallback_block_text_when_trafilatura_returns_nothing(self, sample_govuk_html):
        from execution.compliance_rag.extractor import ContentExtractor
        from conftest import HOLIDAY_PARAGRAPHS
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value=None):
            page = ContentExtractor().parse(sample_govuk_html, "u")
        assert HOLIDAY_PARAGRAPHS[0] in page.main_text
        assert "cookies" not in page.main_text
        assert "\n\n" in page.main_text

    def test_short_text_is_extraction_error(self):
        from execution.compliance_rag.extractor import ContentExtractor
        from execution.compliance_rag.errors import ExtractionError
        html = "<html><body><main><p>Page moved.</p></main></body></html>"
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value="Page moved."):
            with pytest.raises(ExtractionError, match="too short"):
                ContentExtractor().parse(html, "https://www.gov.uk/moved")

    def test_extract_end_to_end(self, extractor_factory, sample_plain_html):
        extractor = extractor_factory(text=sample_plain_html)
        with patch("execution.compliance_rag.extractor.trafilatura.extract", return_value=None):
            result = extractor.extract("https://www.acas.org.uk/working-time-rules")
        assert result.is_ok
        page = result.value
        assert page.title == "Working time rules"
        assert len(page.main_text) >= 100
        assert page.url == "https://www.acas.org.uk/working-time-rules"

    def test_normalize_text(self):
        from execution.compliance_rag.extractor import _normalize_text
        assert _normalize_text("  a \t b \n\n\n c\xa0d  ") == "a b\n\nc d"
