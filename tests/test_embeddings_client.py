import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.exceptions import EmbeddingError


def _response(*vectors):
    return SimpleNamespace(data=[SimpleNamespace(embedding=list(v)) for v in vectors])


def _connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))


def make_client(sync=None, async_=None, **kwargs):
    return EmbeddingsClient(model="test-model", client=sync or MagicMock(), async_client=async_ or MagicMock(), **kwargs)


def test_embed_texts_batches_requests():
    sync = MagicMock()
    sync.embeddings.create.side_effect = [_response([1.0], [2.0]), _response([3.0])]
    client = make_client(sync=sync, batch_size=2)

    vectors = client.embed_texts(["a", "b", "c"])

    assert vectors == [[1.0], [2.0], [3.0]]
    assert sync.embeddings.create.call_count == 2
    sync.embeddings.create.assert_any_call(model="test-model", input=["a", "b"])


def test_embed_texts_empty_input_makes_no_call():
    sync = MagicMock()
    assert make_client(sync=sync).embed_texts([]) == []
    sync.embeddings.create.assert_not_called()


def test_provider_error_becomes_embedding_error():
    sync = MagicMock()
    sync.embeddings.create.side_effect = _connection_error()

    with pytest.raises(EmbeddingError):
        make_client(sync=sync).embed_text("hello")


def test_missing_vector_is_an_error_not_zeros():
    sync = MagicMock()
    sync.embeddings.create.return_value = _response([])

    with pytest.raises(EmbeddingError):
        make_client(sync=sync).embed_text("hello")


@pytest.mark.asyncio
async def test_aembed_text_returns_vector():
    async_client = MagicMock()
    async_client.embeddings.create = AsyncMock(return_value=_response([0.1, 0.2]))

    vector = await make_client(async_=async_client).aembed_text("What is X?")

    assert vector == [0.1, 0.2]
    async_client.embeddings.create.assert_awaited_once_with(model="test-model", input="What is X?")


@pytest.mark.asyncio
async def test_aembed_text_timeout_is_embedding_error():
    async def slow(**kwargs):
        await asyncio.sleep(1)

    async_client = MagicMock()
    async_client.embeddings.create = slow

    with pytest.raises(EmbeddingError):
        await make_client(async_=async_client, timeout_sec=0.01).aembed_text("hi")


@pytest.mark.asyncio
async def test_aembed_text_provider_error():
    async_client = MagicMock()
    async_client.embeddings.create = AsyncMock(side_effect=_connection_error())

    with pytest.raises(EmbeddingError):
        await make_client(async_=async_client).aembed_text("hi")
