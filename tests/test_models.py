"""
Tests for execution/compliance_rag/models.py

Covers: Topic taxonomy, RetrievalFilters validation, PassageRecord parsing
        at the store seam, Passage / RetrievalOutcome serialisation.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError


class TestRetrievalFilters:

    def test_normalises_jurisdiction(self):
        from execution.compliance_rag.models import RetrievalFilters
        assert RetrievalFilters(jurisdiction=" uk ").jurisdiction == "UK"

    def test_coerces_topic_string(self):
        from execution.compliance_rag.models import RetrievalFilters, Topic
        filters = RetrievalFilters(jurisdiction="UK", topic="Maternity/Paternity")
        assert filters.topic is Topic.MATERNITY_PATERNITY

    def test_unknown_topic_rejected(self):
        from execution.compliance_rag.models import RetrievalFilters
        with pytest.raises(ValueError):
            RetrievalFilters(jurisdiction="UK", topic="Astrology")

    def test_jurisdiction_required(self):
        from execution.compliance_rag.models import RetrievalFilters
        with pytest.raises(ValueError, match="jurisdiction"):
            RetrievalFilters(jurisdiction="  ")


class TestPassageRecord:

    def _row(self, **overrides):
        row = {
            "id": 42,
            "title": "Statutory Sick Pay (SSP)",
            "url": "https://www.gov.uk/statutory-sick-pay",
            "jurisdiction": "UK",
            "topic": "Sick",
            "section": "Eligibility",
            "content": "You can get £118.75 per week Statutory Sick Pay if you're too ill to work.",
            "last_refreshed_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
        }
        row.update(overrides)
        return row

    def test_from_row(self):
        from execution.compliance_rag.models import PassageRecord, Topic
        record = PassageRecord.from_row(self._row())
        assert record.id == "42"
        assert record.topic is Topic.SICK
        assert record.key == ("https://www.gov.uk/statutory-sick-pay", "Eligibility")
        assert record.last_refreshed_at.year == 2024

    def test_missing_timestamp_defaults_to_now(self):
        from execution.compliance_rag.models import PassageRecord
        record = PassageRecord.from_row(self._row(last_refreshed_at=None))
        assert record.last_refreshed_at.tzinfo is not None

    def test_null_topic_allowed(self):
        from execution.compliance_rag.models import PassageRecord
        assert PassageRecord.from_row(self._row(topic=None)).topic is None

    @pytest.mark.parametrize("field", ["url", "section", "content", "jurisdiction"])
    def test_blank_required_fields_fail_fast(self, field):
        from execution.compliance_rag.models import PassageRecord
        with pytest.raises(ValidationError):
            PassageRecord.from_row(self._row(**{field: ""}))

    def test_jurisdiction_matches_filter_form(self):
        from execution.compliance_rag.models import PassageRecord
        assert PassageRecord.from_row(self._row(jurisdiction=" uk ")).jurisdiction == "UK"

    def test_unknown_topic_fails(self):
        from execution.compliance_rag.models import PassageRecord
        with pytest.raises(ValidationError):
            PassageRecord.from_row(self._row(topic="Astrology"))

    def test_records_are_immutable(self):
        from execution.compliance_rag.models import PassageRecord
        record = PassageRecord.from_row(self._row())
        with pytest.raises(ValidationError):
            record.content = "changed"


class TestPassageOutput:

    def test_passage_from_record_drops_internal_fields(self):
        from execution.compliance_rag.models import Passage
        from conftest import make_record

        passage = Passage.from_record(make_record(id="7", section="Entitlement"))
        assert passage.to_dict() == {
            "title": "Holiday entitlement",
            "url": "https://www.gov.uk/holiday-entitlement-rights",
            "section": "Entitlement",
            "content": "Almost all workers are legally entitled to 5.6 weeks' paid holiday a year.",
        }

    def test_outcome_to_dict(self):
        from execution.compliance_rag.models import Passage, RetrievalOutcome
        outcome = RetrievalOutcome(
            passages=[Passage("T", "https://www.gov.uk/x", "Part 1", "text")],
            used_realtime_retrieval=True,
        )
        data = outcome.to_dict()
        assert data["used_realtime_retrieval"] is True
        assert data["passages"][0]["section"] == "Part 1"
