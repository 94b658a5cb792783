"""Text chunking strategies for document splitting."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple, Optional
import logging

from .models import Chunk, UNKNOWN_YEAR

logger = logging.getLogger(__name__)

# Chunk identifiers depend on these; changing them renumbers stored chunks.
BOUNDARY_RATIO = 0.7
MIN_CHUNK_CHARS = 50
BOUNDARY_CHARS = (".", "\n")


@dataclass
class ChunkMetadata:
    """Metadata for a text chunk."""
    text: str
    char_span: Tuple[int, int]  # Character offsets of the trimmed text in the full text
    full_text: Optional[str] = None  # Full text from which this chunk was extracted


class Chunker(ABC):
    """Base class for text chunking strategies."""

    @abstractmethod
    def chunk_text(self, text: str) -> List[ChunkMetadata]:
        """Split text into chunks.

        Args:
            text: Input text to split

        Returns:
            List of ChunkMetadata objects in document order
        """
        pass

    def chunk_document(
        self,
        source_id: str,
        text: str,
        filename: Optional[str] = None,
        year: str = UNKNOWN_YEAR,
    ) -> List[Chunk]:
        """Split a document and number the kept chunks from 0.

        Args:
            source_id: Identifier of the document, used as the chunk id prefix
            text: Document text
            filename: Source file name (defaults to ``source_id``)
            year: Year token of the document

        Returns:
            List of Chunk objects with consecutive indexes
        """
        metas = self.chunk_text(text)
        return [
            Chunk(
                content=meta.text,
                source_id=source_id,
                index=i,
                filename=filename or source_id,
                year=year,
                char_span=meta.char_span,
                total_chunks=len(metas),
            )
            for i, meta in enumerate(metas)
        ]


class SentenceBoundaryChunker(Chunker):
    """Fixed-size character windows with overlap, cut at sentence ends when possible.

    A window that does not reach the end of the text is shortened to the last
    ``.`` or newline inside it, provided that boundary lies past 70% of the
    window. Trimmed chunks of 50 characters or fewer are dropped.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200):
        """Initialize the chunker.

        Args:
            chunk_size: Maximum number of characters per chunk (default: 1000)
            overlap: Characters shared by consecutive chunks (default: 200)

        Raises:
            ValueError: If chunk_size <= 0 or overlap is outside [0, chunk_size)
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= overlap < chunk_size:
            raise ValueError(
                f"overlap must satisfy 0 <= overlap < chunk_size, got {overlap}"
            )
        self.chunk_size = chunk_size
        self.overlap = overlap

    @classmethod
    def from_config(cls, config) -> "SentenceBoundaryChunker":
        return cls(chunk_size=config.chunk_size, overlap=config.overlap)

    def _find_boundary(self, text: str, start: int, end: int) -> int:
        return max(text.rfind(char, start, end) for char in BOUNDARY_CHARS)

    def chunk_text(self, text: str) -> List[ChunkMetadata]:
        """Split text into overlapping chunks.

        Args:
            text: Text to split

        Returns:
            List of ChunkMetadata objects with spans of the trimmed text
        """
        chunks = []
        start = 0
        length = len(text)

        while start < length:
            end = min(start + self.chunk_size, length)
            chunk_end = end

            if end < length:
                boundary = self._find_boundary(text, start, end)
                if boundary > start + self.chunk_size * BOUNDARY_RATIO:
                    chunk_end = boundary + 1
                    next_start = boundary + 1 - self.overlap
                else:
                    next_start = end - self.overlap
            else:
                next_start = end

            raw = text[start:chunk_end]
            stripped = raw.strip()
            if len(stripped) > MIN_CHUNK_CHARS:
                lead = len(raw) - len(raw.lstrip())
                chunk_start = start + lead
                chunks.append(ChunkMetadata(
                    text=stripped,
                    char_span=(chunk_start, chunk_start + len(stripped)),
                    full_text=text
                ))

            # The cursor must always move forward or the loop never ends.
            start = max(next_start, start + 1)

        logger.debug(f"Split {length} characters into {len(chunks)} chunks")
        return chunks


def split_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> List[str]:
    """Split text into overlapping, trimmed chunk strings.

    Args:
        text: Text to split
        chunk_size: Maximum number of characters per chunk
        overlap: Characters shared by consecutive chunks

    Returns:
        List of chunk strings in document order
    """
    chunker = SentenceBoundaryChunker(chunk_size=chunk_size, overlap=overlap)
    return [chunk.text for chunk in chunker.chunk_text(text)]
