"""
openai_orch - Bulk OpenAI requests under a global concurrency limit.

Submit many requests from any number of threads; the orchestrator enforces
a concurrency ceiling, per-attempt timeouts and retries, and hands back each
result by request id.
"""

__version__ = "0.1.0"

from openai_orch.credentials import Credentials
from openai_orch.errors import (
    OrchestratorError,
    InvalidPolicy,
    UnknownRequest,
    InvalidTransition,
    AwaitTimeout,
    OrchestratorClosed,
    AttemptError,
    CapabilityFailure,
    AttemptTimeout,
    RequestCancelled,
    RequestFailed,
    DecodeMismatch,
)
from openai_orch.policies import (
    Policies,
    RetentionPolicy,
    ImmediateBackoff,
    ConstantBackoff,
    ExponentialBackoff,
)
from openai_orch.requests import (
    ExecutableRequest,
    ChatModelParams,
    ChatSisoRequest,
    ChatSisoResponse,
    EmbeddingRequest,
    EmbeddingResponse,
)
from openai_orch.orchestrator import (
    RequestId,
    LedgerEntry,
    Orchestrator,
    create_orchestrator,
    create_mock_orchestrator,
)
from openai_orch.vocabulary import RequestStatus, FailureKind

__all__ = [
    "__version__",
    "Credentials",
    # Errors
    "OrchestratorError",
    "InvalidPolicy",
    "UnknownRequest",
    "InvalidTransition",
    "AwaitTimeout",
    "OrchestratorClosed",
    "AttemptError",
    "CapabilityFailure",
    "AttemptTimeout",
    "RequestCancelled",
    "RequestFailed",
    "DecodeMismatch",
    # Policies
    "Policies",
    "RetentionPolicy",
    "ImmediateBackoff",
    "ConstantBackoff",
    "ExponentialBackoff",
    # Requests
    "ExecutableRequest",
    "ChatModelParams",
    "ChatSisoRequest",
    "ChatSisoResponse",
    "EmbeddingRequest",
    "EmbeddingResponse",
    # Orchestrator
    "RequestId",
    "LedgerEntry",
    "Orchestrator",
    "create_orchestrator",
    "create_mock_orchestrator",
    # Vocabulary
    "RequestStatus",
    "FailureKind",
]
