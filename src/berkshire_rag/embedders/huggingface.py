"""HuggingFace-based embedder implementation."""
import torch
from transformers import AutoTokenizer, AutoModel
import numpy as np
from typing import List, Sequence
import asyncio
import logging

from ..config import EmbedderConfig
from .base import BaseEmbedder, ModelLoadError

logger = logging.getLogger(__name__)


class HuggingFaceEmbedder(BaseEmbedder):
    """Embedder implementation using a local HuggingFace model."""

    def __init__(self, config: EmbedderConfig):
        """Initialize HuggingFace embedder.

        Args:
            config: EmbedderConfig instance

        Raises:
            ModelLoadError: If the model or tokenizer cannot be loaded
        """
        super().__init__(config)
        self.tokenizer = None
        self.model = None
        self.device = None
        params = config.additional_params or {}
        self.batch_size = params.get('batch_size', 32)
        # Token limit for the model; max_length applies to characters.
        self.max_tokens = params.get('max_tokens', 512)

        self._initialize_model()

    def _initialize_model(self):
        """Initialize the model and tokenizer."""
        try:
            self.tokenizer = AutoTokenizer.from_pretrained(
                self.config.name,
                trust_remote_code=True
            )
            self.model = AutoModel.from_pretrained(
                self.config.name,
                trust_remote_code=True
            )
            self.device = 'cuda' if torch.cuda.is_available() else 'cpu'
            self.model.to(self.device)
            self.model.eval()
            logger.info(f"Model {self.config.name} loaded successfully on {self.device}")
        except Exception as e:
            raise ModelLoadError(f"Failed to load model: {str(e)}") from e

    def _encode(self, texts: List[str]) -> np.ndarray:
        """Mean-pooled, L2-normalized embeddings for a list of texts."""
        batches = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            inputs = self.tokenizer(
                batch,
                padding=True,
                truncation=True,
                max_length=self.max_tokens,
                return_tensors="pt"
            ).to(self.device)

            with torch.no_grad():
                outputs = self.model(**inputs)
                attention_mask = inputs["attention_mask"]
                token_embeddings = outputs.last_hidden_state
                input_mask_expanded = attention_mask.unsqueeze(-1).expand(token_embeddings.size()).float()
                embeddings_sum = torch.sum(token_embeddings * input_mask_expanded, 1)
                mask_sum = torch.clamp(input_mask_expanded.sum(1), min=1e-9)
                embeddings = (embeddings_sum / mask_sum).cpu().numpy()

            norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
            batches.append(embeddings / np.where(norms == 0, 1.0, norms))

        return np.vstack(batches)

    async def _embed_texts(self, texts: List[str]) -> List[Sequence[float]]:
        # Inference is CPU/GPU bound; keep it off the event loop.
        loop = asyncio.get_running_loop()
        embeddings = await loop.run_in_executor(None, self._encode, texts)
        return list(embeddings)

    async def close(self) -> None:
        if self.model is not None:
            self.model.cpu()
            if torch.cuda.is_available():
                torch.cuda.empty_cache()
            logger.info("Model resources cleaned up")
