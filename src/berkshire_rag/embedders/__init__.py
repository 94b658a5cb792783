"""Embedder interface, implementations and factory."""
from ..config import EmbedderConfig
from .base import BaseEmbedder, EmbeddingError, EmbeddingFailed, ModelLoadError
from .openai import OpenAIEmbedder


def create_embedder(config: EmbedderConfig) -> BaseEmbedder:
    """Build the embedder named by ``config.type``.

    Args:
        config: Embedder configuration

    Returns:
        BaseEmbedder: Ready-to-use embedder

    Raises:
        ValueError: If the embedder type is unknown
    """
    if config.type == "openai":
        return OpenAIEmbedder(config)
    if config.type == "huggingface":
        # Imported lazily: torch is only needed for local models.
        from .huggingface import HuggingFaceEmbedder
        return HuggingFaceEmbedder(config)
    raise ValueError(f"Unknown embedder type: {config.type}")


__all__ = [
    'BaseEmbedder',
    'EmbeddingError',
    'EmbeddingFailed',
    'ModelLoadError',
    'OpenAIEmbedder',
    'create_embedder'
]
