"""
Passage Chunker

Splits extracted guidance pages into bounded, labeled segments.

Two strategies:
- Heading-based: each h2/h3 starts a chunk labeled with the heading text;
  its body runs until the next heading of the same or higher rank.
- Paragraph-based: paragraphs are packed into a running buffer that is
  closed as "Part N" whenever the next paragraph would overflow the bound.

Either way a non-empty input always yields at least one chunk.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from .models import ChunkUnit

logger = logging.getLogger(__name__)

FULL_CONTENT_LABEL = "Full Content"

# Block elements whose text forms a chunk body
BLOCK_TAGS = ("p", "ul", "ol", "table", "dl", "pre", "blockquote", "h4", "h5", "h6")


@dataclass
class ChunkConfig:
    """Configuration for chunking parameters."""
    max_chars: int = 3000  # ~1000 tokens
    min_paragraph_chars: int = 50  # shorter paragraphs are noise (menus, captions)
    heading_tags: tuple[str, ...] = ("h2", "h3")
    chars_per_token: int = 4


class PassageChunker:
    """Chunks page text (and optionally its markup) into ChunkUnits."""

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()
        self._paragraph_split = re.compile(r"\n\s*\n")

    def chunk(self, text: str, markup: Optional[str] = None, strategy: str = "auto") -> list[ChunkUnit]:
        """
        Chunk a page.

        Args:
            text: Extracted main text
            markup: Article HTML, used by the heading strategy
            strategy: "auto" (headings when available), "headings" or "paragraphs"

        Returns:
            ChunkUnits in document order; never empty for non-empty text
        """
        if strategy not in ("auto", "headings", "paragraphs"):
            raise ValueError(f"Unknown chunking strategy: {strategy}")

        chunks: list[ChunkUnit] = []
        if strategy in ("auto", "headings") and markup:
            chunks = self.chunk_by_headings(markup)
        if not chunks and strategy != "headings":
            chunks = self.chunk_by_paragraphs(text)

        if not chunks and text and text.strip():
            chunks = self._fallback_chunks(text)

        logger.info(
            f"Created {len(chunks)} chunks "
            f"(~{sum(self._estimate_tokens(c.text) for c in chunks)} tokens)"
        )
        return chunks

    def _fallback_chunks(self, text: str) -> list[ChunkUnit]:
        """
        Chunks for text the strategies produced nothing from (only short paragraphs).

        Packs every paragraph under the size bound; a single pack is labeled
        "Full Content", several are labeled "Part N".
        """
        paragraphs = [p.strip() for p in self._paragraph_split.split(text) if p.strip()]
        packed = self._pack(paragraphs)
        logger.info(f"No chunks produced, packing {len(paragraphs)} short paragraphs into {len(packed)} chunks")
        if len(packed) == 1:
            return [ChunkUnit(label=FULL_CONTENT_LABEL, text=packed[0])]
        return [ChunkUnit(label=f"Part {i}", text=body) for i, body in enumerate(packed, start=1)]

    # -------------------------------------------------------------------------
    # Paragraph strategy
    # -------------------------------------------------------------------------

    def chunk_by_paragraphs(self, text: str) -> list[ChunkUnit]:
        """Pack paragraphs into chunks of at most ``max_chars`` labeled "Part N"."""
        if not text:
            return []
        paragraphs = [
            p.strip() for p in self._paragraph_split.split(text)
            if len(p.strip()) > self.config.min_paragraph_chars
        ]
        return [
            ChunkUnit(label=f"Part {i}", text=body)
            for i, body in enumerate(self._pack(paragraphs), start=1)
        ]

    def _pack(self, paragraphs: list[str]) -> list[str]:
        """Greedy accumulation; a chunk closes when the next paragraph would overflow."""
        packed = []
        current = ""
        for paragraph in paragraphs:
            if current and len(current) + len(paragraph) > self.config.max_chars:
                packed.append(current)
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph
        if current.strip():
            packed.append(current)
        return packed

    # -------------------------------------------------------------------------
    # Heading strategy
    # -------------------------------------------------------------------------

    def chunk_by_headings(self, markup: str) -> list[ChunkUnit]:
        """
        One chunk per heading; empty list when the markup has no headings.

        Oversized sections are packed into "<heading> (part N)" chunks.
        Content before the first heading becomes an "Introduction" chunk.
        """
        soup = BeautifulSoup(markup, "html.parser")
        heading_tags = self.config.heading_tags
        blocks = [
            el for el in soup.find_all(list(heading_tags) + list(BLOCK_TAGS))
            if not _has_block_ancestor(el, heading_tags)
        ]
        if not any(el.name in heading_tags for el in blocks):
            return []

        sections: list[tuple[str, list[str]]] = []
        intro = []
        for el in blocks:
            if el.name in heading_tags:
                break
            intro.append(el.get_text(" ", strip=True))
        if any(intro):
            sections.append(("Introduction", intro))

        heading_index = 0
        for i, el in enumerate(blocks):
            if el.name not in heading_tags:
                continue
            heading_index += 1
            rank = heading_tags.index(el.name)
            label = el.get_text(" ", strip=True) or f"Section {heading_index}"
            body = []
            for follower in blocks[i + 1:]:
                if follower.name in heading_tags and heading_tags.index(follower.name) <= rank:
                    break
                body.append(follower.get_text(" ", strip=True))
            sections.append((label, body))

        chunks = []
        seen: dict[str, int] = {}
        for label, body in sections:
            parts = self._pack([b for b in body if b])
            if not parts:
                continue
            label = _unique_label(label, seen)
            if len(parts) == 1:
                chunks.append(ChunkUnit(label=label, text=parts[0]))
            else:
                chunks.extend(
                    ChunkUnit(label=f"{label} (part {n})", text=part)
                    for n, part in enumerate(parts, start=1)
                )
        return chunks

    def _estimate_tokens(self, text: str) -> int:
        return len(text) // self.config.chars_per_token


def _has_block_ancestor(el, heading_tags: tuple[str, ...]) -> bool:
    # Nested blocks (p inside li, table inside blockquote) are read through their ancestor
    for parent in el.parents:
        if parent.name in BLOCK_TAGS or parent.name in heading_tags:
            return True
    return False


def _unique_label(label: str, seen: dict[str, int]) -> str:
    """Labels key stored rows per URL, so repeated headings get a suffix."""
    count = seen.get(label, 0) + 1
    seen[label] = count
    return label if count == 1 else f"{label} ({count})"
