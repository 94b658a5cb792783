"""Tests for embedder implementations."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import numpy as np
import pytest

from berkshire_rag.config import EmbedderConfig
from berkshire_rag.embedders import (
    EmbeddingFailed,
    ModelLoadError,
    OpenAIEmbedder,
    create_embedder,
)
from berkshire_rag.similarity import DimensionMismatch


@pytest.fixture
def openai_config():
    """Fixture for OpenAI embedder config."""
    return EmbedderConfig(
        name="text-embedding-3-small",
        type="openai",
        embedding_size=4,
        max_length=8000,
        api_key="test-key"
    )


def embedding_response(*vectors, order=None):
    order = order if order is not None else range(len(vectors))
    return SimpleNamespace(
        data=[SimpleNamespace(index=i, embedding=list(vectors[i])) for i in order]
    )


@pytest.fixture
def mock_client():
    client = Mock()
    client.embeddings.create = AsyncMock()
    client.close = AsyncMock()
    return client


def test_openai_embedder_initialization(openai_config, mock_client):
    embedder = OpenAIEmbedder(openai_config, client=mock_client)
    assert embedder.api_key == "test-key"
    assert embedder.model_name == "text-embedding-3-small"
    assert embedder.dimension == 4


def test_create_embedder_builds_openai_client(openai_config):
    embedder = create_embedder(openai_config)
    assert isinstance(embedder, OpenAIEmbedder)


def test_create_embedder_unknown_type(openai_config):
    with pytest.raises(ValueError):
        create_embedder(openai_config.model_copy(update={"type": "word2vec"}))


@pytest.mark.asyncio
async def test_openai_embed(openai_config, mock_client):
    mock_client.embeddings.create.return_value = embedding_response([0.1, 0.2, 0.3, 0.4])
    embedder = OpenAIEmbedder(openai_config, client=mock_client)

    embedding = await embedder.embed("What did Buffett say about float?")

    assert isinstance(embedding, np.ndarray)
    np.testing.assert_allclose(embedding, [0.1, 0.2, 0.3, 0.4])
    mock_client.embeddings.create.assert_awaited_once_with(
        model="text-embedding-3-small",
        input=["What did Buffett say about float?"],
    )


@pytest.mark.asyncio
async def test_openai_input_is_truncated(openai_config, mock_client):
    mock_client.embeddings.create.return_value = embedding_response([1, 0, 0, 0])
    embedder = OpenAIEmbedder(openai_config, client=mock_client)

    await embedder.embed("x" * 9000)

    sent = mock_client.embeddings.create.call_args.kwargs["input"]
    assert sent == ["x" * 8000]


@pytest.mark.asyncio
async def test_openai_batch_restores_input_order(openai_config, mock_client):
    mock_client.embeddings.create.return_value = embedding_response(
        [1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], order=[2, 0, 1]
    )
    embedder = OpenAIEmbedder(openai_config, client=mock_client)

    embeddings = await embedder.embed_batch(["a", "b", "c"])

    assert [int(np.argmax(e)) for e in embeddings] == [0, 1, 2]


@pytest.mark.asyncio
async def test_openai_failure_raises_embedding_failed(openai_config, mock_client):
    mock_client.embeddings.create.side_effect = RuntimeError("rate limited")
    embedder = OpenAIEmbedder(openai_config, client=mock_client)

    with pytest.raises(EmbeddingFailed, match="rate limited"):
        await embedder.embed("query")
    assert mock_client.embeddings.create.await_count == 1


@pytest.mark.asyncio
async def test_openai_wrong_dimension(openai_config, mock_client):
    mock_client.embeddings.create.return_value = embedding_response([1.0, 2.0])
    embedder = OpenAIEmbedder(openai_config, client=mock_client)

    with pytest.raises(DimensionMismatch):
        await embedder.embed("query")


@pytest.mark.asyncio
async def test_empty_batch_skips_upstream(openai_config, mock_client):
    embedder = OpenAIEmbedder(openai_config, client=mock_client)
    assert await embedder.embed_batch([]) == []
    mock_client.embeddings.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_async_context_manager_closes_client(openai_config, mock_client):
    async with OpenAIEmbedder(openai_config, client=mock_client):
        pass
    mock_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_stub_embedder_is_deterministic(embedder):
    first = await embedder.embed("same text")
    second = await embedder.embed("same text")
    other = await embedder.embed("other text")
    np.testing.assert_array_equal(first, second)
    assert not np.array_equal(first, other)


@pytest.mark.asyncio
async def test_stub_failure_is_wrapped(failing_embedder):
    with pytest.raises(EmbeddingFailed):
        await failing_embedder.embed("query")


class FakeInputs(dict):
    """Tokenizer output supporting ``.to(device)``."""

    def to(self, device):
        return self


@pytest.fixture
def hf_config():
    """Fixture for HuggingFace embedder config."""
    return EmbedderConfig(
        name="sentence-transformers/all-MiniLM-L6-v2",
        type="huggingface",
        embedding_size=4,
        max_length=8000,
        additional_params={"batch_size": 2}
    )


@pytest.mark.asyncio
async def test_huggingface_mean_pooling(hf_config):
    """Masked tokens are excluded from the mean and the result is normalized."""
    torch = pytest.importorskip("torch")
    pytest.importorskip("transformers")
    from berkshire_rag.embedders.huggingface import HuggingFaceEmbedder

    def tokenize(texts, **kwargs):
        n = len(texts)
        return FakeInputs(
            input_ids=torch.ones((n, 3), dtype=torch.long),
            attention_mask=torch.tensor([[1, 1, 0]] * n),
        )

    def forward(**inputs):
        n = inputs["input_ids"].shape[0]
        hidden = torch.tensor([[[1.0, 0, 0, 0], [3.0, 0, 0, 0], [100.0, 100.0, 100.0, 100.0]]] * n)
        return SimpleNamespace(last_hidden_state=hidden)

    model = Mock(side_effect=forward)
    model.to = Mock(return_value=model)

    with patch("berkshire_rag.embedders.huggingface.AutoTokenizer.from_pretrained", return_value=tokenize), \
         patch("berkshire_rag.embedders.huggingface.AutoModel.from_pretrained", return_value=model):
        embedder = HuggingFaceEmbedder(hf_config)
        embeddings = await embedder.embed_batch(["one", "two", "three"])

    assert len(embeddings) == 3
    for embedding in embeddings:
        np.testing.assert_allclose(embedding, [1.0, 0.0, 0.0, 0.0], atol=1e-6)
    # Three texts with batch_size 2 take two forward passes.
    assert model.call_count == 2


def test_huggingface_load_failure(hf_config):
    pytest.importorskip("torch")
    pytest.importorskip("transformers")
    from berkshire_rag.embedders.huggingface import HuggingFaceEmbedder

    with patch(
        "berkshire_rag.embedders.huggingface.AutoTokenizer.from_pretrained",
        side_effect=OSError("model not found"),
    ):
        with pytest.raises(ModelLoadError):
            HuggingFaceEmbedder(hf_config)
