"""Data classes shared by the chunker, the store and the search facade."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import re

import numpy as np

UNKNOWN_YEAR = "unknown"
_YEAR_RE = re.compile(r"(\d{4})")


def extract_year(filename: str) -> str:
    """Return the first 4-digit token of a filename, or ``"unknown"``."""
    match = _YEAR_RE.search(filename)
    return match.group(1) if match else UNKNOWN_YEAR


def make_chunk_id(source_id: str, index: int) -> str:
    """Identifier of the ``index``-th kept chunk of a source document."""
    return f"{source_id}_chunk_{index}"


@dataclass
class Chunk:
    """A piece of a source document, before embedding.

    Attributes:
        content: Trimmed chunk text
        source_id: Identifier of the originating document
        index: Position among the kept chunks of the document
        filename: Name of the source file
        year: Year token parsed from the filename
        char_span: Character offsets of the trimmed text in the document
        total_chunks: Number of kept chunks of the document
    """
    content: str
    source_id: str
    index: int
    filename: str
    year: str = UNKNOWN_YEAR
    char_span: Optional[Tuple[int, int]] = None
    total_chunks: int = 1

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Chunk index must be >= 0, got {self.index}")

    @property
    def id(self) -> str:
        return make_chunk_id(self.source_id, self.index)


@dataclass
class Record:
    """A persisted chunk: content, metadata and its embedding."""
    id: str
    content: str
    filename: str
    year: str
    chunk_index: int
    embedding: np.ndarray
    total_chunks: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding) -> "Record":
        return cls(
            id=chunk.id,
            content=chunk.content,
            filename=chunk.filename,
            year=chunk.year,
            chunk_index=chunk.index,
            embedding=np.asarray(embedding, dtype=np.float64),
            total_chunks=chunk.total_chunks,
        )


@dataclass
class SearchFilter:
    """Optional predicates applied to a similarity search."""
    year: Optional[str] = None
    filename: Optional[str] = None
    min_similarity: Optional[float] = None

    def __post_init__(self):
        if self.min_similarity is not None and not -1.0 <= self.min_similarity <= 1.0:
            raise ValueError(
                f"min_similarity must lie in [-1, 1], got {self.min_similarity}"
            )


@dataclass
class SearchResult:
    """One ranked hit returned by a search."""
    id: str
    content: str
    filename: str
    year: str
    similarity: float
    chunk_index: int
    total_chunks: Optional[int] = None

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"chunkIndex": self.chunk_index, "totalChunks": self.total_chunks}

    @property
    def relevance(self) -> str:
        if self.similarity > 0.8:
            return "high"
        if self.similarity > 0.7:
            return "medium"
        return "low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "filename": self.filename,
            "year": self.year,
            "similarity": self.similarity,
            "metadata": self.metadata,
        }


@dataclass
class StoreStats:
    """Record counts, overall and grouped by year and by file."""
    total_documents: int
    documents_by_year: List[Dict[str, Any]] = field(default_factory=list)
    documents_by_file: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def years(self) -> List[str]:
        return [item["year"] for item in self.documents_by_year]

    def summary(self) -> str:
        return (
            f"Database contains {self.total_documents} document chunks from "
            f"{len(self.documents_by_year)} years ({', '.join(self.years)})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDocuments": self.total_documents,
            "documentsByYear": list(self.documents_by_year),
            "documentsByFile": list(self.documents_by_file),
        }
