"""OpenAI-based embedder implementation."""
from openai import AsyncOpenAI
from typing import List, Optional, Sequence
import logging

from ..config import EmbedderConfig
from .base import BaseEmbedder, ModelLoadError

logger = logging.getLogger(__name__)


class OpenAIEmbedder(BaseEmbedder):
    """Embedder implementation using the OpenAI embeddings API."""

    def __init__(self, config: EmbedderConfig, client: Optional[AsyncOpenAI] = None):
        """Initialize OpenAI embedder.

        Args:
            config: Configuration for the embedder
            client: Optional preconfigured client; built from ``config.api_key`` otherwise

        Raises:
            ModelLoadError: If the client cannot be created (e.g. no API key)
        """
        super().__init__(config)
        self.api_key = config.api_key
        self.model_name = config.name
        if client is None:
            try:
                client = AsyncOpenAI(api_key=self.api_key)
            except Exception as e:
                raise ModelLoadError(f"Failed to create OpenAI client: {str(e)}") from e
        self.client = client

    async def _embed_texts(self, texts: List[str]) -> List[Sequence[float]]:
        response = await self.client.embeddings.create(
            model=self.model_name,
            input=texts,
        )
        # The API may return items out of order; ``index`` refers to the input.
        data = sorted(response.data, key=lambda item: item.index)
        logger.debug(f"Embedded {len(texts)} texts with {self.model_name}")
        return [item.embedding for item in data]

    async def close(self) -> None:
        await self.client.close()
