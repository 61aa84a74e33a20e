"""
Markdown chunking for brand documents.

This module provides:
- Heading-based chunking that preserves the heading hierarchy
- Character-based token estimation
- Paragraph, then sentence splitting for sections over the token limit
"""

import logging
import math
import re
from uuid import uuid4

from schemas.config import IngestionConfig
from schemas.models import BrandDocument, DocumentChunk

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*)$")
PARAGRAPH_BREAK = re.compile(r"\n\n+")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough token count, rounded up."""
    return math.ceil(len(text) / chars_per_token)


class MarkdownChunker:
    """
    Heading-aware markdown chunker.

    Each heading starts a new section. A section's chunks carry the ancestor
    headings (outermost first) and, by default, start with the heading line
    itself. Sections over ``max_tokens`` are split on blank lines, then on
    sentence ends; a sentence that is still too long is cut on character
    boundaries. When a section splits into several parts, parts under
    ``min_tokens`` are dropped.
    """

    def __init__(self, config: IngestionConfig | None = None):
        """
        Initialize the chunker.

        Args:
            config: Ingestion configuration
        """
        self.config = config or IngestionConfig()

    def estimate(self, text: str) -> int:
        return estimate_tokens(text, self.config.chars_per_token)

    def chunk_markdown(self, content: str, document: BrandDocument) -> list[DocumentChunk]:
        """
        Split a markdown document into chunks.

        Args:
            content: Markdown content
            document: Document the chunks belong to

        Returns:
            List of DocumentChunk models without embeddings, in document order
        """
        if not content.strip():
            return []

        chunks: list[DocumentChunk] = []

        for level, heading, hierarchy, body in self._sections(content):
            if self.config.include_heading_in_content and heading:
                body = f"{'#' * level} {heading}\n\n{body}"

            parts = self.split_large_content(body)
            for part in parts:
                token_count = self.estimate(part)
                if token_count < self.config.min_tokens and len(parts) > 1:
                    continue

                chunks.append(
                    DocumentChunk(
                        id=str(uuid4()),
                        document_id=document.id,
                        content=part,
                        token_count=token_count,
                        heading_hierarchy=list(hierarchy),
                        chunk_index=len(chunks),
                        brand_id=document.brand_id,
                        document_title=document.title,
                        document_category=document.category,
                        document_slug=document.slug,
                    )
                )

        logger.info(f"Created {len(chunks)} chunks for '{document.title}'")
        return chunks

    def split_large_content(self, content: str) -> list[str]:
        """Split content into parts of at most ``max_tokens`` estimated tokens."""
        max_tokens = self.config.max_tokens
        if self.estimate(content) <= max_tokens:
            return [content]

        parts: list[str] = []
        current = ""

        for paragraph in PARAGRAPH_BREAK.split(content):
            joined = f"{current}\n\n{paragraph}" if current else paragraph
            if self.estimate(joined) <= max_tokens:
                current = joined
                continue

            if current:
                parts.append(current.strip())
            current = ""

            if self.estimate(paragraph) <= max_tokens:
                current = paragraph
                continue

            for sentence in SENTENCE_BREAK.split(paragraph):
                joined = f"{current} {sentence}" if current else sentence
                if self.estimate(joined) <= max_tokens:
                    current = joined
                    continue

                if current:
                    parts.append(current.strip())

                pieces = self._hard_split(sentence)
                parts.extend(piece.strip() for piece in pieces[:-1])
                current = pieces[-1]

        if current.strip():
            parts.append(current.strip())

        return [part for part in parts if part]

    def _hard_split(self, text: str) -> list[str]:
        width = self.config.max_tokens * self.config.chars_per_token
        return [text[i : i + width] for i in range(0, len(text), width)] or [""]

    @staticmethod
    def _sections(content: str) -> list[tuple[int, str, list[str], str]]:
        """(level, heading, hierarchy, body) per heading; level 0 is text before the first heading."""
        stack: list[str | None] = [None] * 6
        level, heading = 0, ""
        lines: list[str] = []
        sections: list[tuple[int, str, list[str], str]] = []

        def flush() -> None:
            body = "\n".join(lines).strip()
            if body:
                hierarchy = [h for h in stack[:level] if h]
                sections.append((level, heading, hierarchy, body))

        for line in content.split("\n"):
            match = HEADING_PATTERN.match(line)
            if not match:
                lines.append(line)
                continue

            flush()
            level = len(match.group(1))
            heading = match.group(2).strip()
            stack[level - 1] = heading
            for i in range(level, 6):
                stack[i] = None
            lines = []

        flush()
        return sections


def summarize_chunks(chunks: list[DocumentChunk]) -> str:
    """One line per chunk with its token count and heading path."""
    total = sum(c.token_count for c in chunks)
    lines = [f"Total chunks: {len(chunks)}", f"Total tokens: {total}"]
    for i, chunk in enumerate(chunks, start=1):
        lines.append(f"{i}. [{chunk.token_count} tokens] {chunk.heading_path or '(intro)'}")
    return "\n".join(lines)


# Singleton instance
_chunker: MarkdownChunker | None = None


def get_chunker(config: IngestionConfig | None = None) -> MarkdownChunker:
    """Get or create the chunker singleton."""
    global _chunker
    if _chunker is None:
        _chunker = MarkdownChunker(config)
    return _chunker
