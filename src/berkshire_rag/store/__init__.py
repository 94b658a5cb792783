"""Record store: contract, both storage modes and the mode-probing factory."""
import logging

import sqlalchemy as sa
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ..config import StoreConfig
from .base import (
    BatchWriteFailed,
    ExtensionUnavailable,
    StoreError,
    StoreUnavailable,
    VectorStore,
)
from .pgvector import PgVectorStore
from .scalar import ScalarStore

logger = logging.getLogger(__name__)


def create_engine(config: StoreConfig) -> AsyncEngine:
    """Async engine with connection pooling for the configured database.

    Raises:
        StoreUnavailable: If the URL is invalid or its driver is missing
    """
    try:
        url = make_url(config.database_url)
        kwargs = {"echo": config.echo_sql, "pool_pre_ping": True}
        if url.get_backend_name() == "postgresql":
            kwargs["pool_size"] = config.pool_size
        return create_async_engine(url, **kwargs)
    except Exception as e:
        raise StoreUnavailable(f"Cannot create engine for {config.database_url}: {str(e)}") from e


async def probe_vector_extension(engine: AsyncEngine) -> None:
    """Enable pgvector, in its own transaction.

    Raises:
        ExtensionUnavailable: If the backend is not PostgreSQL or the
            extension cannot be created
    """
    if engine.dialect.name != "postgresql":
        raise ExtensionUnavailable(f"{engine.dialect.name} has no native vector type")
    try:
        async with engine.begin() as conn:
            await conn.execute(sa.text("CREATE EXTENSION IF NOT EXISTS vector"))
    except Exception as e:
        raise ExtensionUnavailable(f"pgvector extension not available: {str(e)}") from e


async def open_store(config: StoreConfig) -> VectorStore:
    """Connect, pick the storage mode once and initialize the table.

    The pgvector store is used when the extension can be enabled; otherwise
    the scalar store is used and the reason is only logged.

    Args:
        config: Store configuration

    Returns:
        VectorStore: Initialized store

    Raises:
        StoreUnavailable: If the database cannot be reached
    """
    engine = create_engine(config)
    try:
        async with engine.connect() as conn:
            await conn.execute(sa.text("SELECT 1"))
    except Exception as e:
        await engine.dispose()
        logger.error(f"Database connection failed for {engine.url.render_as_string(hide_password=True)}")
        raise StoreUnavailable(f"Cannot connect to database: {str(e)}") from e

    store_cls = PgVectorStore
    if config.force_scalar:
        logger.info("Scalar storage forced by configuration")
        store_cls = ScalarStore
    else:
        try:
            await probe_vector_extension(engine)
            logger.info("pgvector extension enabled")
        except ExtensionUnavailable as e:
            logger.info(f"{e}; using JSON storage for embeddings")
            store_cls = ScalarStore

    store = store_cls(engine, config)
    try:
        await store.initialize()
    except Exception:
        await store.close()
        raise
    return store


__all__ = [
    'BatchWriteFailed',
    'ExtensionUnavailable',
    'PgVectorStore',
    'ScalarStore',
    'StoreError',
    'StoreUnavailable',
    'VectorStore',
    'create_engine',
    'open_store',
    'probe_vector_extension'
]
