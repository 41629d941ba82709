"""
Text Chunker

Deterministic recursive splitter producing overlapping passages of at most
``chunk_size`` characters. Splitting tries each separator in order; a segment
that is still too large after the last separator is emitted whole, so content
is never truncated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..config import settings
from ..core.errors import EmptyInputError

logger = logging.getLogger("rag.chunker")


@dataclass(frozen=True)
class Chunk:
    """A chunk of document text and its position in the splitting order."""

    content: str
    sequence_index: int


class Chunker:
    """
    Overlapping fixed-size text splitter.

    Defaults come from settings (150 characters, 20 overlap, word-boundary
    splitting only).
    """

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        separators: Optional[Sequence[str]] = None,
    ) -> None:
        self.chunk_size = chunk_size if chunk_size is not None else settings.chunk_size
        self.chunk_overlap = (
            chunk_overlap if chunk_overlap is not None else settings.chunk_overlap
        )
        self.separators = list(separators if separators is not None else settings.chunk_separators)

        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be in [0, chunk_size={self.chunk_size})"
            )
        if not self.separators:
            raise ValueError("At least one separator is required")

        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            length_function=len,
            separators=self.separators,
        )

    def chunk(self, text: str) -> List[str]:
        """
        Split ``text`` into ordered, non-empty, overlapping chunks.

        Returns an empty list when the text is empty after trimming.
        """
        trimmed = text.strip()
        if not trimmed:
            return []

        chunks = [c.strip() for c in self._splitter.split_text(trimmed) if c.strip()]
        logger.debug(
            "Split %d chars into %d chunks (size=%d, overlap=%d)",
            len(trimmed),
            len(chunks),
            self.chunk_size,
            self.chunk_overlap,
        )
        return chunks

    def chunk_strict(self, text: str) -> List[str]:
        """Like :meth:`chunk` but raises ``EmptyInputError`` on empty input."""
        chunks = self.chunk(text)
        if not chunks:
            raise EmptyInputError("Cannot chunk empty text")
        return chunks

    def chunk_with_positions(self, text: str) -> List[Chunk]:
        return [
            Chunk(content=content, sequence_index=i)
            for i, content in enumerate(self.chunk(text))
        ]
