"""Record store contract and the behaviour both storage modes share."""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

import numpy as np
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.types import TypeEngine

from ..config import StoreConfig
from ..models import Record, SearchFilter, SearchResult, StoreStats
from ..similarity import DimensionMismatch, as_vector, check_dimension

logger = logging.getLogger(__name__)

_COLUMN_TYPE_QUERY = sa.text(
    """
    SELECT format_type(a.atttypid, a.atttypmod)
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


class StoreError(Exception):
    """Base exception for record store errors."""
    pass


class StoreUnavailable(StoreError):
    """Raised when the database cannot be reached or queried."""
    pass


class BatchWriteFailed(StoreError):
    """Raised when a batch could not be written; nothing from it was kept."""
    pass


class ExtensionUnavailable(StoreError):
    """The pgvector extension could not be enabled. Triggers the scalar fallback."""
    pass


class VectorStore(ABC):
    """Persists chunk records with their embeddings and answers similarity queries.

    Implementations differ only in how the embedding column is typed and
    indexed and in where similarity is computed.
    """

    mode: str = ""
    # Type name of the embedding column on PostgreSQL, as reported by format_type().
    pg_column_type: str = ""

    def __init__(self, engine: AsyncEngine, config: StoreConfig):
        """Initialize the store.

        Args:
            engine: Async SQLAlchemy engine owning the connection pool
            config: Store configuration
        """
        self.engine = engine
        self.config = config
        self.dimension = config.embedding_dimension
        self.metadata = sa.MetaData()
        self.table = self._build_table()
        self._last_write_at: Optional[datetime] = None
        self._closed = False

    @abstractmethod
    def _embedding_type(self) -> TypeEngine:
        """Column type of the embedding column."""
        pass

    @abstractmethod
    def _embedding_index(self, table: sa.Table) -> sa.Index:
        """Index over the embedding column."""
        pass

    @abstractmethod
    async def _search(
        self,
        conn: AsyncConnection,
        query: np.ndarray,
        filters: SearchFilter,
        limit: int,
    ) -> List[SearchResult]:
        """Run a similarity search on an open connection."""
        pass

    async def _check_existing_dimension(self, conn: AsyncConnection) -> Optional[int]:
        """Dimension of embeddings already in the table, if it can be determined."""
        return None

    async def _check_column_type(self, conn: AsyncConnection) -> None:
        """Reject an existing table whose embedding column belongs to the other storage mode.

        Raises:
            StoreUnavailable: If the column type does not match this store
        """
        if self.engine.dialect.name != "postgresql":
            return
        column_type = await conn.scalar(_COLUMN_TYPE_QUERY, {"table_name": self.config.table_name})
        if column_type is None or column_type.split("(")[0] == self.pg_column_type:
            return
        raise StoreUnavailable(
            f"{self.config.table_name}.embedding has type {column_type}, "
            f"expected {self.pg_column_type} for {self.mode} mode"
        )

    def _encode_embedding(self, embedding: np.ndarray) -> Any:
        return embedding

    def _build_table(self) -> sa.Table:
        name = self.config.table_name
        table = sa.Table(
            name,
            self.metadata,
            sa.Column("id", sa.String(255), primary_key=True),
            sa.Column("content", sa.Text, nullable=False),
            sa.Column("filename", sa.String(255), nullable=False),
            sa.Column("year", sa.String(7), nullable=False),  # fits the "unknown" sentinel
            sa.Column("chunk_index", sa.Integer, nullable=False),
            sa.Column("total_chunks", sa.Integer),
            sa.Column("source", sa.String(100), server_default=self.config.source),
            sa.Column("embedding", self._embedding_type()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        sa.Index(f"{name}_year_idx", table.c.year)
        sa.Index(f"{name}_filename_idx", table.c.filename)
        self._embedding_index(table)
        return table

    def _insert(self):
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(self.table)
        if dialect == "sqlite":
            return sqlite.insert(self.table)
        raise StoreUnavailable(f"Unsupported database dialect: {dialect}")

    def _upsert_statement(self):
        stmt = self._insert()
        return stmt.on_conflict_do_update(
            index_elements=[self.table.c.id],
            set_={
                "content": stmt.excluded.content,
                "embedding": stmt.excluded.embedding,
                "updated_at": stmt.excluded.updated_at,
            },
        )

    def _next_write_times(self, count: int) -> List[datetime]:
        # Strictly increasing per store, even when the clock does not advance.
        now = datetime.now(timezone.utc)
        if self._last_write_at is not None and now <= self._last_write_at:
            now = self._last_write_at + timedelta(microseconds=1)
        stamps = [now + timedelta(microseconds=i) for i in range(count)]
        self._last_write_at = stamps[-1]
        return stamps

    def _filter_clauses(self, filters: SearchFilter) -> List[sa.ColumnElement]:
        clauses = []
        if filters.year:
            clauses.append(self.table.c.year == filters.year)
        if filters.filename:
            clauses.append(self.table.c.filename == filters.filename)
        return clauses

    def _insertion_order(self) -> List[sa.ColumnElement]:
        t = self.table
        return [t.c.created_at, t.c.filename, t.c.chunk_index]

    def _result_columns(self) -> List[sa.ColumnElement]:
        t = self.table
        return [t.c.id, t.c.content, t.c.filename, t.c.year, t.c.chunk_index, t.c.total_chunks]

    @staticmethod
    def _to_result(row, similarity: float) -> SearchResult:
        return SearchResult(
            id=row.id,
            content=row.content,
            filename=row.filename,
            year=row.year,
            similarity=float(similarity),
            chunk_index=row.chunk_index,
            total_chunks=row.total_chunks,
        )

    @staticmethod
    def _to_record(row) -> Record:
        return Record(
            id=row.id,
            content=row.content,
            filename=row.filename,
            year=row.year,
            chunk_index=row.chunk_index,
            embedding=as_vector(row.embedding),
            total_chunks=row.total_chunks,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _read_options(self) -> Dict[str, Any]:
        # One snapshot for every statement of a read.
        if self.engine.dialect.name == "postgresql":
            return {"isolation_level": "REPEATABLE READ"}
        return {}

    def _check_open(self) -> None:
        if self._closed:
            raise StoreUnavailable("Store has been closed")

    async def initialize(self) -> None:
        """Create the table and its indexes if they do not exist.

        Raises:
            StoreUnavailable: If the database cannot be reached or the table
                was created by the other storage mode
            DimensionMismatch: If the table holds embeddings of another dimension
        """
        self._check_open()
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(self.metadata.create_all)
                await self._check_column_type(conn)
                existing = await self._check_existing_dimension(conn)
        except (StoreError, DimensionMismatch):
            raise
        except Exception as e:
            logger.error(f"Error initializing vector database: {str(e)}")
            raise StoreUnavailable(f"Failed to initialize {self.config.table_name}: {str(e)}") from e

        if existing is not None and existing != self.dimension:
            raise DimensionMismatch(self.dimension, existing, f"{self.config.table_name}.embedding")

        logger.info(f"Vector database table {self.config.table_name} initialized ({self.mode} mode)")

    async def store(self, records: Iterable[Record]) -> int:
        """Upsert a batch of records as one transaction.

        Args:
            records: Records to write; an existing id gets new content,
                embedding and updated_at

        Returns:
            int: Number of records written

        Raises:
            DimensionMismatch: If any embedding has the wrong dimension; nothing is written
            BatchWriteFailed: If any upsert fails; the whole batch is rolled back
        """
        self._check_open()
        records = list(records)
        for record in records:
            check_dimension(record.embedding, self.dimension, f"embedding of {record.id}")
        if not records:
            return 0

        # One stamp per row, in submission order.
        rows = [
            {
                "id": record.id,
                "content": record.content,
                "filename": record.filename,
                "year": record.year,
                "chunk_index": record.chunk_index,
                "total_chunks": record.total_chunks,
                "embedding": self._encode_embedding(as_vector(record.embedding)),
                "created_at": written_at,
                "updated_at": written_at,
            }
            for record, written_at in zip(records, self._next_write_times(len(records)))
        ]

        try:
            async with self.engine.begin() as conn:
                await conn.execute(self._upsert_statement(), rows)
        except Exception as e:
            logger.error(f"Error storing documents, batch of {len(records)} rolled back: {str(e)}")
            raise BatchWriteFailed(f"Failed to store batch of {len(records)} records: {str(e)}") from e

        logger.info(f"Stored {len(records)} documents in vector database")
        return len(records)

    async def search(
        self,
        query_vector: Sequence[float],
        filters: Optional[SearchFilter] = None,
        limit: int = 5,
    ) -> List[SearchResult]:
        """Rank stored records by cosine similarity to a query vector.

        Args:
            query_vector: Query embedding
            filters: Optional year / filename / min_similarity predicates
            limit: Maximum number of results

        Returns:
            List of SearchResult, most similar first; empty when nothing qualifies

        Raises:
            DimensionMismatch: If the query vector has the wrong dimension
            StoreUnavailable: If the query fails
        """
        self._check_open()
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        query = as_vector(query_vector)
        check_dimension(query, self.dimension, "query vector")
        filters = filters or SearchFilter()

        try:
            async with self.engine.connect() as conn:
                results = await self._search(conn, query, filters, limit)
        except (StoreError, DimensionMismatch):
            raise
        except Exception as e:
            logger.error(f"Error in vector search: {str(e)}")
            raise StoreUnavailable(f"Vector search failed: {str(e)}") from e

        logger.debug(f"Search returned {len(results)} results (limit={limit}, filters={filters})")
        return results

    async def stats(self) -> StoreStats:
        """Count records overall, per year (descending) and per file (by count).

        Returns:
            StoreStats read from a single transaction
        """
        self._check_open()
        t = self.table
        count = sa.func.count(t.c.id).label("count")
        try:
            async with self.engine.connect() as conn:
                conn = await conn.execution_options(**self._read_options())
                async with conn.begin():
                    total = await conn.scalar(sa.select(sa.func.count()).select_from(t))
                    by_year = await conn.execute(
                        sa.select(t.c.year, count).group_by(t.c.year).order_by(t.c.year.desc())
                    )
                    by_file = await conn.execute(
                        sa.select(t.c.filename, count)
                        .group_by(t.c.filename)
                        .order_by(count.desc(), t.c.filename)
                    )
                    documents_by_year = [{"year": row.year, "count": int(row.count)} for row in by_year]
                    documents_by_file = [
                        {"filename": row.filename, "count": int(row.count)} for row in by_file
                    ]
        except Exception as e:
            logger.error(f"Error getting stats: {str(e)}")
            raise StoreUnavailable(f"Failed to read statistics: {str(e)}") from e

        return StoreStats(
            total_documents=int(total or 0),
            documents_by_year=documents_by_year,
            documents_by_file=documents_by_file,
        )

    async def _fetch_records(self, *clauses, order_by=None) -> List[Record]:
        self._check_open()
        stmt = sa.select(self.table).where(*clauses)
        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        try:
            async with self.engine.connect() as conn:
                rows = (await conn.execute(stmt)).all()
        except Exception as e:
            logger.error(f"Error fetching documents: {str(e)}")
            raise StoreUnavailable(f"Failed to fetch documents: {str(e)}") from e
        return [self._to_record(row) for row in rows]

    async def get(self, record_id: str) -> Optional[Record]:
        """Fetch one record by id, or None."""
        records = await self._fetch_records(self.table.c.id == record_id)
        return records[0] if records else None

    async def get_chunks(self, filename: str) -> List[Record]:
        """All records of a file in chunk order."""
        t = self.table
        return await self._fetch_records(t.c.filename == filename, order_by=[t.c.chunk_index])

    async def get_context(self, record_id: str, window: int = 2) -> List[Record]:
        """A record together with up to ``window`` neighbouring chunks on each side.

        Returns:
            Records of the same file in chunk order; empty if the id is unknown
        """
        if window < 0:
            raise ValueError(f"window must be >= 0, got {window}")
        record = await self.get(record_id)
        if record is None:
            return []
        t = self.table
        return await self._fetch_records(
            t.c.filename == record.filename,
            t.c.chunk_index.between(record.chunk_index - window, record.chunk_index + window),
            order_by=[t.c.chunk_index],
        )

    async def _delete(self, clause, description: str) -> int:
        self._check_open()
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(sa.delete(self.table).where(clause))
        except Exception as e:
            logger.error(f"Error deleting {description}: {str(e)}")
            raise StoreUnavailable(f"Failed to delete {description}: {str(e)}") from e
        logger.info(f"Deleted {result.rowcount} records ({description})")
        return result.rowcount

    async def delete(self, record_ids: Iterable[str]) -> int:
        """Delete records by id in one transaction.

        Returns:
            int: Number of records removed
        """
        record_ids = list(record_ids)
        if not record_ids:
            return 0
        return await self._delete(self.table.c.id.in_(record_ids), f"{len(record_ids)} ids")

    async def delete_file(self, filename: str) -> int:
        """Delete every record of a file."""
        return await self._delete(self.table.c.filename == filename, f"file {filename}")

    async def close(self) -> None:
        """Release all pooled connections. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self.engine.dispose()
        logger.info("Vector store closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
