"""
Data model for the Compliance RAG pipeline.

PassageRecord is the validated row shape at the vector-store seam;
everything downstream works with typed objects instead of raw rows.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Topic(str, Enum):
    """Fixed topic taxonomy for stored passages."""
    TUPE = "TUPE"
    SICK = "Sick"
    MATERNITY_PATERNITY = "Maternity/Paternity"
    HOLIDAY = "Holiday"
    PENSIONS = "Pensions"
    VISAS = "Visas"
    EMPLOYMENT = "Employment"
    REDUNDANCY = "Redundancy"
    DISCIPLINARY = "Disciplinary"
    WORKING_TIME = "Working Time"
    EQUALITY = "Equality"
    HEALTH_SAFETY = "Health Safety"
    GENERAL = "General"


@dataclass(frozen=True)
class RetrievalFilters:
    """Store filters for one search call."""
    jurisdiction: str
    topic: Optional[Topic] = None

    def __post_init__(self):
        if not self.jurisdiction or not self.jurisdiction.strip():
            raise ValueError("jurisdiction is required")
        object.__setattr__(self, "jurisdiction", self.jurisdiction.strip().upper())
        if self.topic is not None and not isinstance(self.topic, Topic):
            # Raises ValueError for names outside the taxonomy
            object.__setattr__(self, "topic", Topic(self.topic))


class PassageRecord(BaseModel):
    """A stored, retrievable unit of source content."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    title: str
    url: str
    jurisdiction: str
    topic: Optional[Topic] = None
    section: str
    content: str
    last_refreshed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    embedding: Optional[list[float]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("url", "section", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("jurisdiction")
    @classmethod
    def _normalise_jurisdiction(cls, value: str) -> str:
        # Same form RetrievalFilters searches with
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value.strip().upper()

    @classmethod
    def from_row(cls, row: dict) -> "PassageRecord":
        """Parse a database row (dict-like). Raises pydantic.ValidationError on bad rows."""
        data = {
            "id": row.get("id"),
            "title": row.get("title") or "",
            "url": row.get("url"),
            "jurisdiction": row.get("jurisdiction"),
            "topic": row.get("topic"),
            "section": row.get("section"),
            "content": row.get("content"),
        }
        if row.get("last_refreshed_at") is not None:
            data["last_refreshed_at"] = row["last_refreshed_at"]
        return cls.model_validate(data)

    @property
    def key(self) -> tuple[str, str]:
        """Identity key: one row per (url, section)."""
        return (self.url, self.section)


@dataclass(frozen=True)
class CandidatePassage:
    """A PassageRecord scored by a single search call."""
    record: PassageRecord
    similarity_score: float

    @property
    def id(self) -> Optional[str]:
        return self.record.id


@dataclass(frozen=True)
class ChunkUnit:
    """Labeled text segment produced by the chunker."""
    label: str
    text: str


@dataclass(frozen=True)
class Passage:
    """Passage handed to the answer-generation step."""
    title: str
    url: str
    section: str
    content: str

    @classmethod
    def from_record(cls, record: PassageRecord) -> "Passage":
        return cls(
            title=record.title,
            url=record.url,
            section=record.section,
            content=record.content,
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "url": self.url,
            "section": self.section,
            "content": self.content,
        }


class RetrievalState(str, Enum):
    SEARCHING = "searching"
    FALLBACK_INGESTING = "fallback_ingesting"
    RESEARCHING = "researching"
    DONE = "done"


@dataclass
class RetrievalOutcome:
    """Terminal result of one orchestrated retrieval."""
    passages: list[Passage]
    used_realtime_retrieval: bool = False
    passage_ids: list[str] = field(default_factory=list)
    states: list[RetrievalState] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "passages": [p.to_dict() for p in self.passages],
            "used_realtime_retrieval": self.used_realtime_retrieval,
        }
