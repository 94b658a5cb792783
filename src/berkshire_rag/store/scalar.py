"""Scalar-fallback store: embeddings as JSON arrays, similarity computed in process."""
from typing import List, Optional
import logging

import numpy as np
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncConnection

from ..models import SearchFilter, SearchResult
from ..similarity import cosine_similarity, rank_results
from .base import VectorStore

logger = logging.getLogger(__name__)


class ScalarStore(VectorStore):
    """Store used when the pgvector extension is not available.

    Metadata filters run in SQL; every row that passes them is scored with
    :func:`cosine_similarity` and ranked in Python.
    """

    mode = "scalar"
    pg_column_type = "jsonb"

    def _embedding_type(self):
        return sa.JSON().with_variant(JSONB(), "postgresql")

    def _embedding_index(self, table: sa.Table) -> sa.Index:
        # GIN on PostgreSQL, a plain index elsewhere.
        return sa.Index(
            f"{table.name}_embedding_idx",
            table.c.embedding,
            postgresql_using="gin",
        )

    def _encode_embedding(self, embedding: np.ndarray) -> List[float]:
        return embedding.tolist()

    async def _check_existing_dimension(self, conn: AsyncConnection) -> Optional[int]:
        embedding = await conn.scalar(
            sa.select(self.table.c.embedding)
            .where(self.table.c.embedding.is_not(None))
            .limit(1)
        )
        return len(embedding) if embedding is not None else None

    async def _search(
        self,
        conn: AsyncConnection,
        query: np.ndarray,
        filters: SearchFilter,
        limit: int,
    ) -> List[SearchResult]:
        t = self.table
        stmt = (
            sa.select(*self._result_columns(), t.c.embedding)
            .where(t.c.embedding.is_not(None), *self._filter_clauses(filters))
            .order_by(*self._insertion_order())
        )
        rows = (await conn.execute(stmt)).all()

        scored = [self._to_result(row, cosine_similarity(query, row.embedding)) for row in rows]
        logger.debug(f"Scored {len(scored)} candidate rows in process")
        return rank_results(scored, filters.min_similarity, limit)
