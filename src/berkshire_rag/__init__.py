"""Retrieval core for shareholder-letter search: chunking, embedding storage and similarity search."""
from .chunkers import Chunker, ChunkMetadata, SentenceBoundaryChunker, split_text
from .config import Config, load_config, configure_logging
from .embedders import BaseEmbedder, EmbeddingFailed, create_embedder
from .ingestion import DocumentIngestor, SourceDocument, load_documents
from .models import Chunk, Record, SearchFilter, SearchResult, StoreStats, extract_year
from .search import DocumentSearch
from .similarity import DimensionMismatch, cosine_similarity, rank_results
from .store import (
    BatchWriteFailed,
    ExtensionUnavailable,
    StoreUnavailable,
    VectorStore,
    open_store,
)

__all__ = [
    'BaseEmbedder',
    'BatchWriteFailed',
    'Chunk',
    'ChunkMetadata',
    'Chunker',
    'Config',
    'DimensionMismatch',
    'DocumentIngestor',
    'DocumentSearch',
    'EmbeddingFailed',
    'ExtensionUnavailable',
    'Record',
    'SearchFilter',
    'SearchResult',
    'SentenceBoundaryChunker',
    'SourceDocument',
    'StoreStats',
    'StoreUnavailable',
    'VectorStore',
    'configure_logging',
    'cosine_similarity',
    'create_embedder',
    'extract_year',
    'load_config',
    'load_documents',
    'open_store',
    'rank_results',
    'split_text'
]
