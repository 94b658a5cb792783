"""Shared fixtures: a deterministic embedder and a SQLite-backed store."""
import hashlib
from typing import List, Sequence

import numpy as np
import pytest
import pytest_asyncio

from berkshire_rag.config import EmbedderConfig, StoreConfig
from berkshire_rag.embedders.base import BaseEmbedder
from berkshire_rag.models import Record
from berkshire_rag.store import open_store

DIMENSION = 8


class HashEmbedder(BaseEmbedder):
    """Deterministic embedder: the vector is seeded by a hash of the text."""

    def __init__(self, config: EmbedderConfig, fail: bool = False):
        super().__init__(config)
        self.fail = fail
        self.calls: List[List[str]] = []

    async def _embed_texts(self, texts: List[str]) -> List[Sequence[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise ConnectionError("upstream unavailable")
        vectors = []
        for text in texts:
            seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:4], "big")
            vectors.append(np.random.RandomState(seed).normal(size=self.dimension))
        return vectors


def unit(i: int, dimension: int = DIMENSION) -> np.ndarray:
    """Basis vector e_i."""
    vector = np.zeros(dimension)
    vector[i] = 1.0
    return vector


def make_record(
    record_id: str,
    embedding,
    year: str = "2020",
    filename: str = "2020.pdf",
    chunk_index: int = 0,
    content: str = None,
) -> Record:
    return Record(
        id=record_id,
        content=content if content is not None else f"content of {record_id}",
        filename=filename,
        year=year,
        chunk_index=chunk_index,
        embedding=np.asarray(embedding, dtype=np.float64),
    )


@pytest.fixture
def embedder_config():
    """Embedder config matching the test store dimension."""
    return EmbedderConfig(name="hash-embedder", type="hash", embedding_size=DIMENSION, max_length=8000)


@pytest.fixture
def embedder(embedder_config):
    return HashEmbedder(embedder_config)


@pytest.fixture
def failing_embedder(embedder_config):
    return HashEmbedder(embedder_config, fail=True)


@pytest.fixture
def store_config(tmp_path):
    """Store config pointing at a fresh SQLite database file."""
    return StoreConfig(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        embedding_dimension=DIMENSION,
    )


@pytest_asyncio.fixture
async def store(store_config):
    """Initialized store; SQLite has no vector type, so this is the scalar store."""
    store = await open_store(store_config)
    yield store
    await store.close()
