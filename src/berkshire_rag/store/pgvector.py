"""Indexed store: pgvector column, ivfflat index, similarity computed by PostgreSQL."""
from typing import List, Optional
import logging

import numpy as np
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.ext.asyncio import AsyncConnection

from ..models import SearchFilter, SearchResult
from .base import VectorStore

logger = logging.getLogger(__name__)

# pgvector stores vector(N) typmod directly as N.
_DIMENSION_QUERY = sa.text(
    """
    SELECT a.atttypmod
    FROM pg_attribute a
    JOIN pg_class c ON a.attrelid = c.oid
    JOIN pg_namespace n ON c.relnamespace = n.oid
    WHERE n.nspname = current_schema()
      AND c.relname = :table_name
      AND a.attname = 'embedding'
      AND a.attnum > 0
      AND NOT a.attisdropped
    """
)


class PgVectorStore(VectorStore):
    """Store backed by the pgvector extension.

    Search pushes the metadata filters, the similarity threshold and the
    limit into one query ordered by cosine distance (``<=>``).
    """

    mode = "indexed"
    pg_column_type = "vector"

    def _embedding_type(self):
        return Vector(self.dimension)

    def _embedding_index(self, table: sa.Table) -> sa.Index:
        return sa.Index(
            f"{table.name}_embedding_idx",
            table.c.embedding,
            postgresql_using="ivfflat",
            postgresql_with={"lists": self.config.ivfflat_lists},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        )

    def _encode_embedding(self, embedding: np.ndarray) -> np.ndarray:
        return embedding.astype(np.float32)

    async def _check_existing_dimension(self, conn: AsyncConnection) -> Optional[int]:
        typmod = await conn.scalar(_DIMENSION_QUERY, {"table_name": self.config.table_name})
        if typmod is None or typmod <= 0:
            logger.warning(
                f"Could not determine {self.config.table_name}.embedding dimension; "
                "skipping strict validation"
            )
            return None
        return int(typmod)

    def build_search_query(
        self,
        query: np.ndarray,
        filters: SearchFilter,
        limit: int,
    ) -> sa.Select:
        """Similarity query with every predicate pushed down.

        Args:
            query: Query embedding
            filters: Metadata filters and optional similarity threshold
            limit: Maximum number of rows

        Returns:
            Select yielding result columns plus ``similarity``
        """
        t = self.table
        distance = t.c.embedding.cosine_distance(query.astype(np.float32))
        stmt = (
            sa.select(*self._result_columns(), (1 - distance).label("similarity"))
            .where(t.c.embedding.is_not(None), *self._filter_clauses(filters))
        )
        if filters.min_similarity is not None:
            stmt = stmt.where(1 - distance >= filters.min_similarity)
        return stmt.order_by(distance, *self._insertion_order()).limit(limit)

    async def _search(
        self,
        conn: AsyncConnection,
        query: np.ndarray,
        filters: SearchFilter,
        limit: int,
    ) -> List[SearchResult]:
        # Number of ivfflat lists scanned; higher is more exact and slower.
        await conn.execute(sa.text(f"SET LOCAL ivfflat.probes = {int(self.config.ivfflat_probes)}"))
        rows = (await conn.execute(self.build_search_query(query, filters, limit))).all()
        return [self._to_result(row, row.similarity) for row in rows]
