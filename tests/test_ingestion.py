"""Tests for the ingestion pipeline."""
from unittest.mock import Mock

import pytest

from berkshire_rag.chunkers import SentenceBoundaryChunker
from berkshire_rag.embedders import EmbeddingFailed
from berkshire_rag.ingestion import DocumentIngestor, SourceDocument, load_documents
from berkshire_rag.models import extract_year

LETTER = (
    "To the Shareholders of Berkshire Hathaway Inc.: Our gain in net worth during the year was "
    "substantial. Insurance float grew again. We continue to look for businesses we understand. "
) * 20


@pytest.fixture
def chunker():
    return SentenceBoundaryChunker(chunk_size=500, overlap=100)


@pytest.mark.parametrize("filename,year", [
    ("1999ltr.pdf", "1999"),
    ("letter-2021-final.pdf", "2021"),
    ("annual_letter.pdf", "unknown"),
    ("12345.pdf", "1234"),
])
def test_extract_year(filename, year):
    assert extract_year(filename) == year


def test_load_documents_skips_failures(tmp_path):
    (tmp_path / "1998.txt").write_text(LETTER, encoding="utf-8")
    (tmp_path / "2003.txt").write_text("broken", encoding="utf-8")
    (tmp_path / "notes.md").write_text("ignored", encoding="utf-8")

    def extract(path):
        if path.name == "2003.txt":
            raise ValueError("corrupt file")
        return path.read_text(encoding="utf-8")

    documents = load_documents(tmp_path, extract_text=extract)

    assert [doc.filename for doc in documents] == ["1998.txt"]
    assert documents[0].year == "1998"
    assert documents[0].content == LETTER


def test_create_chunks_skips_malformed_documents(chunker, embedder):
    ingestor = DocumentIngestor(chunker, embedder, Mock())
    documents = [
        SourceDocument(filename="1998.pdf", content=LETTER, year="1998"),
        SourceDocument(filename="bad.pdf", content=None, year="unknown"),
        SourceDocument(filename="1999.pdf", content=LETTER, year="1999"),
    ]

    chunks = ingestor.create_chunks(documents)

    assert {chunk.filename for chunk in chunks} == {"1998.pdf", "1999.pdf"}
    first = [chunk for chunk in chunks if chunk.filename == "1998.pdf"]
    assert [chunk.index for chunk in first] == list(range(len(first)))
    assert first[0].id == "1998.pdf_chunk_0"
    assert all(chunk.total_chunks == len(first) for chunk in first)
    assert all(chunk.year == "1998" for chunk in first)


@pytest.mark.asyncio
async def test_ingest_stores_every_chunk(chunker, store, embedder):
    ingestor = DocumentIngestor(chunker, embedder, store, batch_size=3)
    documents = [
        SourceDocument(filename="1998.pdf", content=LETTER, year="1998"),
        SourceDocument(filename="empty.pdf", content="too short", year="unknown"),
    ]

    report = await ingestor.ingest(documents)

    expected = len(chunker.chunk_text(LETTER))
    assert report.documents == 2
    assert report.chunks == expected
    assert report.stored == expected
    assert report.skipped == 1

    stats = await store.stats()
    assert stats.total_documents == expected
    assert stats.documents_by_year == [{"year": "1998", "count": expected}]

    stored = await store.get_chunks("1998.pdf")
    assert [record.id for record in stored] == [f"1998.pdf_chunk_{i}" for i in range(expected)]
    assert all(record.total_chunks == expected for record in stored)


@pytest.mark.asyncio
async def test_reingest_overwrites(chunker, store, embedder):
    ingestor = DocumentIngestor(chunker, embedder, store)
    documents = [SourceDocument(filename="1998.pdf", content=LETTER, year="1998")]

    await ingestor.ingest(documents)
    await ingestor.ingest(documents)

    assert (await store.stats()).total_documents == len(chunker.chunk_text(LETTER))


@pytest.mark.asyncio
async def test_embedding_failure_aborts_ingestion(chunker, store, failing_embedder):
    ingestor = DocumentIngestor(chunker, failing_embedder, store)
    documents = [SourceDocument(filename="1998.pdf", content=LETTER, year="1998")]

    with pytest.raises(EmbeddingFailed):
        await ingestor.ingest(documents)

    assert (await store.stats()).total_documents == 0


def test_batch_size_must_be_positive(chunker, embedder):
    with pytest.raises(ValueError):
        DocumentIngestor(chunker, embedder, Mock(), batch_size=0)
