"""
Requests - Executable request contract and bundled variants.

Provides:
- ExecutableRequest protocol (anything with `async execute(credentials)`)
- Chat single-input single-output completions
- Embeddings
- Scriptable mock requests for tests
"""

from openai_orch.requests.base import (
    ExecutableRequest,
    response_type_of,
    timeout_hint_of,
)
from openai_orch.requests.chat import (
    ChatModelParams,
    ChatSisoRequest,
    ChatSisoResponse,
)
from openai_orch.requests.embed import (
    EMBEDDING_SIZE,
    EmbeddingRequest,
    EmbeddingResponse,
)
from openai_orch.requests.mock import (
    CallRecorder,
    MockRequest,
)

__all__ = [
    # Contract
    "ExecutableRequest",
    "response_type_of",
    "timeout_hint_of",
    # Chat
    "ChatModelParams",
    "ChatSisoRequest",
    "ChatSisoResponse",
    # Embeddings
    "EMBEDDING_SIZE",
    "EmbeddingRequest",
    "EmbeddingResponse",
    # Mock
    "CallRecorder",
    "MockRequest",
]
