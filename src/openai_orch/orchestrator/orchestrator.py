"""
Orchestrator - Unified API for bulk request submission.

Combines policies, credentials, the request ledger and the dispatcher behind
a handle that any number of threads can share or clone.
"""

import time
from dataclasses import dataclass
from typing import Any, Iterable, TypeVar, get_origin, overload

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from openai_orch.credentials import Credentials
from openai_orch.errors import (
    DecodeMismatch,
    OrchestratorClosed,
    RequestCancelled,
    RequestFailed,
)
from openai_orch.observability import MetricsRegistry, get_logger, get_metrics
from openai_orch.orchestrator.dispatcher import Dispatcher, WorkItem, create_dispatcher
from openai_orch.orchestrator.ledger import (
    Failed,
    LedgerEntry,
    RequestId,
    RequestLedger,
    create_ledger,
)
from openai_orch.policies import ImmediateBackoff, Policies
from openai_orch.requests.base import ExecutableRequest, response_type_of


logger = get_logger("orchestrator")

T = TypeVar("T")


# =============================================================================
# SHARED STATE
# =============================================================================

@dataclass(frozen=True)
class _Core:
    """State shared by every clone of an orchestrator handle."""
    policies: Policies
    credentials: Credentials
    ledger: RequestLedger
    dispatcher: Dispatcher
    metrics: MetricsRegistry


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class Orchestrator:
    """
    Submit requests now, collect their responses later.

    Using the orchestrator:
    1. Build it with policies and credentials.
    2. submit() requests (anything implementing ExecutableRequest).
    3. get_response() with the returned RequestId.

    clone() (or copy.copy) gives another handle onto the same ledger,
    dispatcher and concurrency gate. Clones are peers: closing one closes
    them all.

    Usage:
        with Orchestrator(Policies(), Credentials.from_env()) as orchestrator:
            request_id = orchestrator.submit(
                ChatSisoRequest("You are a helpful assistant.", "What are you?")
            )
            print(orchestrator.get_response(request_id))
    """

    def __init__(
        self,
        policies: Policies,
        credentials: Credentials,
        *,
        metrics: MetricsRegistry | None = None,
    ):
        """
        Initialize orchestrator and start its dispatcher.

        Args:
            policies: Concurrency, timeout, retry and retention policies
            credentials: Secrets passed to every request's execute()
            metrics: Registry to record into (defaults to the global one)

        Raises:
            InvalidPolicy: policies failed validation
        """
        policies.validate()
        if not isinstance(credentials, Credentials):
            raise TypeError("credentials must be a Credentials instance")

        metrics = metrics or get_metrics()
        ledger = create_ledger(retention=policies.retention)
        dispatcher = create_dispatcher(
            ledger=ledger,
            policies=policies,
            credentials=credentials,
            metrics=metrics,
        )
        self._core = _Core(
            policies=policies,
            credentials=credentials,
            ledger=ledger,
            dispatcher=dispatcher,
            metrics=metrics,
        )

    @classmethod
    def _from_core(cls, core: _Core) -> "Orchestrator":
        handle = cls.__new__(cls)
        handle._core = core
        return handle

    def clone(self) -> "Orchestrator":
        """Another handle sharing this orchestrator's state."""
        return self._from_core(self._core)

    def __copy__(self) -> "Orchestrator":
        return self.clone()

    def __deepcopy__(self, memo: dict) -> "Orchestrator":
        return self.clone()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Orchestrator):
            return NotImplemented
        return self._core is other._core

    def __hash__(self) -> int:
        return id(self._core)

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def policies(self) -> Policies:
        return self._core.policies

    @property
    def metrics(self) -> MetricsRegistry:
        return self._core.metrics

    @property
    def is_closed(self) -> bool:
        return self._core.dispatcher.is_closed

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(self, request: ExecutableRequest) -> RequestId:
        """
        Record a request and hand it to the dispatcher.

        Returns as soon as the ledger entry exists; execution happens in the
        background once the concurrency policy allows it.

        Raises:
            OrchestratorClosed: the orchestrator has been closed
        """
        if not callable(getattr(request, "execute", None)):
            raise TypeError(
                f"{type(request).__name__} does not implement execute(credentials)"
            )

        core = self._core
        if core.dispatcher.is_closed:
            raise OrchestratorClosed("orchestrator has been closed")

        request_id = core.ledger.create(response_type=response_type_of(request))
        try:
            core.dispatcher.dispatch(
                WorkItem(
                    request_id=request_id,
                    request=request,
                    submitted_at=time.monotonic(),
                )
            )
        except (OrchestratorClosed, RuntimeError) as e:
            # Closed concurrently or loop gone: never leave a PENDING entry nobody will settle
            core.ledger.transition(
                request_id,
                Failed(RequestCancelled("request rejected: orchestrator closed")),
            )
            if isinstance(e, OrchestratorClosed):
                raise
            raise OrchestratorClosed(f"dispatcher unavailable: {e}") from e

        core.metrics.requests_submitted.inc()
        logger.debug("submitted request %s (%s)", request_id, type(request).__name__)
        return request_id

    def submit_many(self, requests: Iterable[ExecutableRequest]) -> list[RequestId]:
        """Submit requests in order, returning their ids in the same order."""
        return [self.submit(request) for request in requests]

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    @overload
    def get_response(
        self,
        request_id: RequestId,
        response_type: type[T],
        *,
        timeout: float | None = ...,
        forget: bool = ...,
    ) -> T: ...

    @overload
    def get_response(
        self,
        request_id: RequestId,
        response_type: None = ...,
        *,
        timeout: float | None = ...,
        forget: bool = ...,
    ) -> Any: ...

    def get_response(
        self,
        request_id: RequestId,
        response_type: Any = None,
        *,
        timeout: float | None = None,
        forget: bool = False,
    ) -> Any:
        """
        Wait for a request to settle and return its payload.

        Args:
            request_id: Id returned by submit()
            response_type: Type to project the payload onto (defaults to the
                request's declared response_type, else the raw payload)
            timeout: Seconds to wait; None waits indefinitely
            forget: Drop the ledger entry once the result has been read

        Raises:
            UnknownRequest: id never submitted here, or already evicted
            AwaitTimeout: timeout elapsed; the request keeps running
            RequestFailed: the request settled FAILED
            DecodeMismatch: payload incompatible with response_type
        """
        ledger = self._core.ledger
        entry = ledger.await_terminal(request_id, timeout=timeout)
        if forget:
            ledger.forget(request_id)

        if isinstance(entry.state, Failed):
            error = entry.state.error
            raise RequestFailed(request_id, error) from error

        target = response_type if response_type is not None else request_id.response_type
        return _project(request_id, entry.state.payload, target)

    def status(self, request_id: RequestId) -> LedgerEntry:
        """Current ledger snapshot for a request, without waiting."""
        return self._core.ledger.read(request_id)

    def cancel(self, request_id: RequestId) -> bool:
        """
        Cancel an unsettled request.

        Returns True if the request was running and has been cancelled;
        get_response() then raises RequestFailed with a RequestCancelled cause.
        Returns False when the request already settled.

        Raises:
            UnknownRequest: id never submitted here, or already evicted
        """
        self._core.ledger.read(request_id)
        cancelled = self._core.dispatcher.cancel(request_id)
        if cancelled:
            logger.debug("cancel requested for %s", request_id)
        return cancelled

    def close(self, *, drain: bool = False, timeout: float | None = None) -> None:
        """
        Stop the dispatcher for this and every cloned handle.

        Args:
            drain: Let outstanding requests finish instead of cancelling them
            timeout: Upper bound in seconds for the shutdown
        """
        self._core.dispatcher.shutdown(drain=drain, timeout=timeout)

    def get_stats(self) -> dict[str, Any]:
        """Ledger and gate statistics for inspection."""
        core = self._core
        return {
            "ledger": {s.value: n for s, n in core.ledger.counts().items()},
            "max_concurrency": core.policies.max_concurrency,
            "gate_peak": core.dispatcher.gate.peak,
            "closed": core.dispatcher.is_closed,
        }


def _project(request_id: RequestId, payload: Any, response_type: Any) -> Any:
    """Convert a stored payload into the caller's requested shape."""
    if response_type is None:
        return payload

    if get_origin(response_type) is None and isinstance(response_type, type):
        if isinstance(payload, response_type):
            return payload

    try:
        adapter = TypeAdapter(response_type)
    except PydanticSchemaGenerationError as e:
        raise DecodeMismatch(request_id, response_type, payload) from e

    try:
        return adapter.validate_python(payload, strict=True)
    except ValidationError as e:
        raise DecodeMismatch(request_id, response_type, payload) from e


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_orchestrator(
    policies: Policies | None = None,
    credentials: Credentials | None = None,
    metrics: MetricsRegistry | None = None,
) -> Orchestrator:
    """
    Create a configured orchestrator.

    Args:
        policies: Policies (defaults to Policies.from_env())
        credentials: Credentials (defaults to Credentials.from_env())
        metrics: Metrics registry (defaults to the global one)

    Raises:
        ValueError: no credentials given and none found in the environment
    """
    if credentials is None:
        credentials = Credentials.from_env()
        if credentials is None:
            raise ValueError(
                "OpenAI API key not found. "
                "Set OPENAI_API_KEY environment variable or pass credentials."
            )
    return Orchestrator(
        policies=policies or Policies.from_env(),
        credentials=credentials,
        metrics=metrics,
    )


def create_mock_orchestrator(
    metrics: MetricsRegistry | None = None,
    **policy_overrides: Any,
) -> Orchestrator:
    """
    Create an orchestrator for mock requests.

    Uses a placeholder key, immediate retries and a short attempt timeout
    unless overridden.
    """
    defaults: dict[str, Any] = {
        "max_concurrency": 4,
        "per_attempt_timeout": 5.0,
        "max_retries": 2,
        "backoff": ImmediateBackoff(),
    }
    defaults.update(policy_overrides)
    return Orchestrator(
        policies=Policies(**defaults),
        credentials=Credentials.from_key("sk-mock"),
        metrics=metrics or MetricsRegistry(),
    )
