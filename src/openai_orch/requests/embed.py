"""
Embedding requests - One text in, one embedding vector out.
"""

from dataclasses import dataclass

from openai import OpenAIError
from pydantic import BaseModel, Field

from openai_orch.clients import create_openai_client
from openai_orch.credentials import Credentials
from openai_orch.errors import CapabilityFailure


EMBEDDING_SIZE = 1536


class EmbeddingResponse(BaseModel):
    """Embedding vector of an EmbeddingRequest."""
    embedding: list[float] = Field(..., description="The embedding vector")

    def __len__(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class EmbeddingRequest:
    """Embed a single string."""
    text: str
    model: str = "text-embedding-ada-002"
    dimensions: int = EMBEDDING_SIZE  # Expected vector length

    response_type = EmbeddingResponse

    async def execute(self, credentials: Credentials) -> EmbeddingResponse:
        client = create_openai_client(credentials, api_key=credentials.next_key())
        try:
            response = await client.embeddings.create(model=self.model, input=self.text)
        except OpenAIError as e:
            raise CapabilityFailure(f"embedding failed: {e}") from e

        if not response.data:
            raise CapabilityFailure("response.data is empty")
        embedding = list(response.data[0].embedding)
        if len(embedding) != self.dimensions:
            raise CapabilityFailure(
                f"expected {self.dimensions} dimensions, got {len(embedding)}"
            )
        return EmbeddingResponse(embedding=embedding)
