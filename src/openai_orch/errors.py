"""
Errors - Exception taxonomy for the orchestrator.

Attempt-level errors (CapabilityFailure, AttemptTimeout) are retried inside
the dispatcher and only ever reach callers wrapped in RequestFailed.
"""

from typing import TYPE_CHECKING, Any

from openai_orch.vocabulary import FailureKind

if TYPE_CHECKING:
    from openai_orch.orchestrator.ledger import RequestId


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""
    pass


class InvalidPolicy(OrchestratorError, ValueError):
    """Raised when a Policies bundle fails validation."""
    pass


class UnknownRequest(OrchestratorError, LookupError):
    """Raised for a request id the ledger does not hold."""

    def __init__(self, request_id: "RequestId"):
        super().__init__(f"Unknown request: {request_id}")
        self.request_id = request_id


class InvalidTransition(OrchestratorError):
    """Raised when the ledger rejects a state change."""
    pass


class AwaitTimeout(OrchestratorError, TimeoutError):
    """Raised when a caller's wait budget elapses before a terminal state."""

    def __init__(self, request_id: "RequestId", timeout: float):
        super().__init__(
            f"Request {request_id} not settled within {timeout:.3f}s"
        )
        self.request_id = request_id
        self.timeout = timeout


class OrchestratorClosed(OrchestratorError):
    """Raised when submitting to an orchestrator that has been closed."""
    pass


# =============================================================================
# ATTEMPT-LEVEL ERRORS
# =============================================================================

class AttemptError(OrchestratorError):
    """
    A single attempt did not produce a payload.

    The kind distinguishes capability-reported failures from deadlines and
    cancellation.
    """
    kind: FailureKind = FailureKind.CAPABILITY


class CapabilityFailure(AttemptError):
    """
    Raised by ExecutableRequest.execute() for a typed failure.

    Request variants translate their transport's exceptions into this.
    """
    kind = FailureKind.CAPABILITY


class AttemptTimeout(AttemptError):
    """The per-attempt deadline elapsed before execute() returned."""
    kind = FailureKind.TIMEOUT

    def __init__(self, timeout: float):
        super().__init__(f"attempt timed out after {timeout:.3f}s")
        self.timeout = timeout


class RequestCancelled(AttemptError):
    """The request was cancelled before it settled."""
    kind = FailureKind.CANCELLED


# =============================================================================
# CALLER-FACING OUTCOME ERRORS
# =============================================================================

class RequestFailed(OrchestratorError):
    """
    Terminal failure surfaced by get_response().

    Carries the last attempt error as `cause` (also chained as __cause__).
    """

    def __init__(self, request_id: "RequestId", cause: AttemptError):
        super().__init__(
            f"Request {request_id} failed ({cause.kind.value}): {cause}"
        )
        self.request_id = request_id
        self.cause = cause

    @property
    def kind(self) -> FailureKind:
        return self.cause.kind


class DecodeMismatch(OrchestratorError, TypeError):
    """The stored payload cannot be projected onto the requested type."""

    def __init__(self, request_id: "RequestId", response_type: Any, payload: Any):
        super().__init__(
            f"Payload of request {request_id} ({type(payload).__name__}) "
            f"is not compatible with {response_type!r}"
        )
        self.request_id = request_id
        self.response_type = response_type
        self.payload = payload
