"""Ingestion pipeline: source documents to chunks to embeddings to the store."""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List
import logging

from tqdm import tqdm

from .chunkers import Chunker
from .embedders import BaseEmbedder
from .models import Chunk, Record, extract_year
from .store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class SourceDocument:
    """Extracted text of one source file."""
    filename: str
    content: str
    year: str


@dataclass
class IngestionReport:
    """Counts from one ingestion run."""
    documents: int = 0
    chunks: int = 0
    stored: int = 0
    skipped: int = 0


def read_text(path: Path) -> str:
    """Default extractor for plain-text documents."""
    return path.read_text(encoding="utf-8")


def load_documents(
    data_dir: Path,
    extract_text: Callable[[Path], str] = read_text,
    pattern: str = "*.txt",
) -> List[SourceDocument]:
    """Extract text from every matching file in a directory.

    Files that fail to extract are logged and skipped.

    Args:
        data_dir: Directory to scan
        extract_text: Callable returning the text of one file (e.g. a PDF extractor)
        pattern: Glob pattern of files to load

    Returns:
        List of SourceDocument in filename order
    """
    documents = []
    for path in sorted(Path(data_dir).glob(pattern)):
        try:
            content = extract_text(path)
        except Exception as e:
            logger.warning(f"Error processing {path.name}: {str(e)}")
            continue
        year = extract_year(path.name)
        documents.append(SourceDocument(filename=path.name, content=content, year=year))
        logger.info(f"Processed {path.name} ({year}) - {len(content)} characters")
    return documents


class DocumentIngestor:
    """Chunks, embeds and stores source documents."""

    def __init__(
        self,
        chunker: Chunker,
        embedder: BaseEmbedder,
        store: VectorStore,
        batch_size: int = 100,
    ):
        """Initialize the ingestor.

        Args:
            chunker: Chunking strategy
            embedder: Embedder matching the store dimension
            store: Initialized record store
            batch_size: Records embedded and written per transaction
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.chunker = chunker
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size

    def create_chunks(self, documents: List[SourceDocument]) -> List[Chunk]:
        """Chunk every document; a document that cannot be chunked is skipped.

        Args:
            documents: Source documents

        Returns:
            Chunks of all documents, in document order
        """
        chunks: List[Chunk] = []
        for doc in documents:
            try:
                doc_chunks = self.chunker.chunk_document(
                    source_id=doc.filename,
                    text=doc.content,
                    filename=doc.filename,
                    year=doc.year,
                )
            except Exception as e:
                logger.warning(f"Skipping {doc.filename}: {str(e)}")
                continue
            chunks.extend(doc_chunks)

        logger.info(f"Created {len(chunks)} document chunks from {len(documents)} documents")
        return chunks

    async def embed_chunks(self, chunks: List[Chunk]) -> List[Record]:
        """Embed chunks; any embedding failure aborts and propagates.

        Args:
            chunks: Chunks to embed

        Returns:
            Records ready to store, one per chunk
        """
        embeddings = await self.embedder.embed_batch([chunk.content for chunk in chunks])
        return [Record.from_chunk(chunk, embedding) for chunk, embedding in zip(chunks, embeddings)]

    async def ingest(self, documents: List[SourceDocument]) -> IngestionReport:
        """Chunk, embed and store documents in batches.

        Args:
            documents: Source documents

        Returns:
            IngestionReport with document, chunk and record counts

        Raises:
            EmbeddingFailed: If an embedding call fails
            BatchWriteFailed: If a batch cannot be written
        """
        report = IngestionReport(documents=len(documents))
        chunks = self.create_chunks(documents)
        report.chunks = len(chunks)
        report.skipped = len({doc.filename for doc in documents} - {c.filename for c in chunks})

        for start in tqdm(range(0, len(chunks), self.batch_size), desc="Storing batches", disable=not chunks):
            batch = chunks[start:start + self.batch_size]
            records = await self.embed_chunks(batch)
            report.stored += await self.store.store(records)

        logger.info(
            f"Ingestion complete: {report.stored} chunks stored from {report.documents} documents "
            f"({report.skipped} without chunks)"
        )
        return report
