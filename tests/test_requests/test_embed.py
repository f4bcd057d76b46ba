"""Tests for embedding requests."""

import asyncio
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from openai_orch.credentials import Credentials
from openai_orch.errors import CapabilityFailure
from openai_orch.requests import (
    EMBEDDING_SIZE,
    EmbeddingRequest,
    EmbeddingResponse,
    response_type_of,
)


CREDENTIALS = Credentials.from_key("sk-test")


class FakeEmbeddings:
    """Stands in for client.embeddings."""

    def __init__(self, vector=None, error=None):
        self.vector = vector
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **params):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        data = [] if self.vector is None else [SimpleNamespace(embedding=self.vector)]
        return SimpleNamespace(data=data)


@pytest.fixture
def fake_embeddings(monkeypatch):
    """Route embedding requests to a fake client."""
    embeddings = FakeEmbeddings(vector=[0.1] * EMBEDDING_SIZE)
    client = SimpleNamespace(embeddings=embeddings)
    monkeypatch.setattr(
        "openai_orch.requests.embed.create_openai_client",
        lambda credentials, config=None, *, api_key=None: client,
    )
    return embeddings


class TestEmbeddingRequest:
    """Tests for embedding requests."""

    def test_declares_response_type(self):
        """get_response() projects onto EmbeddingResponse by default."""
        assert response_type_of(EmbeddingRequest("hi")) is EmbeddingResponse

    def test_execute(self, fake_embeddings):
        """Returns the first embedding vector."""
        response = asyncio.run(EmbeddingRequest("hello").execute(CREDENTIALS))

        assert len(response) == EMBEDDING_SIZE
        assert fake_embeddings.calls == [
            {"model": "text-embedding-ada-002", "input": "hello"}
        ]

    def test_custom_dimensions(self, fake_embeddings):
        """Models with other sizes are checked against `dimensions`."""
        fake_embeddings.vector = [0.5, 0.25]
        request = EmbeddingRequest("hello", model="tiny", dimensions=2)

        assert asyncio.run(request.execute(CREDENTIALS)).embedding == [0.5, 0.25]

    def test_wrong_size(self, fake_embeddings):
        """Unexpected vector length is a failure."""
        fake_embeddings.vector = [0.1, 0.2, 0.3]

        with pytest.raises(CapabilityFailure, match="dimensions"):
            asyncio.run(EmbeddingRequest("hello").execute(CREDENTIALS))

    def test_empty_data(self, fake_embeddings):
        """No data is a failure."""
        fake_embeddings.vector = None

        with pytest.raises(CapabilityFailure, match="empty"):
            asyncio.run(EmbeddingRequest("hello").execute(CREDENTIALS))

    def test_api_error(self, fake_embeddings):
        """SDK errors become capability failures."""
        fake_embeddings.error = OpenAIError("bad key")

        with pytest.raises(CapabilityFailure, match="bad key"):
            asyncio.run(EmbeddingRequest("hello").execute(CREDENTIALS))
