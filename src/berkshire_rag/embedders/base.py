"""Base embedder module providing abstract base classes and common functionality."""
from abc import ABC, abstractmethod
from typing import List, Sequence
import numpy as np
import logging

from ..config import EmbedderConfig
from ..similarity import DimensionMismatch

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Base exception for embedding-related errors."""
    pass


class ModelLoadError(EmbeddingError):
    """Raised when model loading fails."""
    pass


class EmbeddingFailed(EmbeddingError):
    """Raised when the upstream embedding call fails."""
    pass


class BaseEmbedder(ABC):
    """Abstract base class for all embedders.

    Subclasses implement :meth:`_embed_texts`; this class truncates input,
    wraps upstream errors and checks the dimension of every vector.
    """

    def __init__(self, config: EmbedderConfig):
        """Initialize the embedder with configuration.

        Args:
            config: EmbedderConfig instance containing model settings
        """
        self.config = config
        self.name = config.name
        self.max_length = config.max_length
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def dimension(self) -> int:
        return self.config.embedding_size

    def _truncate(self, text: str) -> str:
        return text[:self.max_length]

    @abstractmethod
    async def _embed_texts(self, texts: List[str]) -> List[Sequence[float]]:
        """Call the underlying model for already truncated texts.

        Args:
            texts: Non-empty list of texts

        Returns:
            One vector per text, in input order
        """
        pass

    async def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        """Embed several texts with one upstream call.

        Args:
            texts: Texts to embed

        Returns:
            List of embeddings as numpy arrays

        Raises:
            EmbeddingFailed: If the upstream call fails
            DimensionMismatch: If the model returns vectors of the wrong size
        """
        if not texts:
            return []

        try:
            vectors = await self._embed_texts([self._truncate(t) for t in texts])
        except EmbeddingError:
            raise
        except Exception as e:
            self.logger.error(f"Embedding call failed for {len(texts)} texts: {str(e)}")
            raise EmbeddingFailed(f"Failed to embed {len(texts)} texts: {str(e)}") from e

        if len(vectors) != len(texts):
            raise EmbeddingFailed(
                f"Embedder returned {len(vectors)} vectors for {len(texts)} texts"
            )

        embeddings = []
        for vector in vectors:
            embedding = np.asarray(vector, dtype=np.float64)
            if embedding.shape[0] != self.dimension:
                raise DimensionMismatch(self.dimension, embedding.shape[0], f"{self.name} embedding")
            embeddings.append(embedding)
        return embeddings

    async def embed(self, text: str) -> np.ndarray:
        """Embed a single text.

        Args:
            text: Text to embed; truncated to ``max_length`` characters

        Returns:
            Embedding as numpy array
        """
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Release model or client resources. Override in subclasses if needed."""
        pass
