"""
Orchestrator - Bounded-concurrency request submission and retrieval.

The orchestrator is the main entry point for submitting requests in bulk.

Usage:
    from openai_orch.orchestrator import create_orchestrator
    from openai_orch.requests import ChatSisoRequest, ChatSisoResponse

    orchestrator = create_orchestrator()
    request_id = orchestrator.submit(
        ChatSisoRequest("You are a helpful assistant.", "What are you?")
    )
    response = orchestrator.get_response(request_id, ChatSisoResponse)
"""

from openai_orch.orchestrator.ledger import (
    RequestId,
    Pending,
    InFlight,
    Retrying,
    Succeeded,
    Failed,
    EntryState,
    LedgerEntry,
    RequestLedger,
    create_ledger,
)
from openai_orch.orchestrator.gate import ConcurrencyGate
from openai_orch.orchestrator.dispatcher import (
    WorkItem,
    Dispatcher,
    create_dispatcher,
)
from openai_orch.orchestrator.orchestrator import (
    Orchestrator,
    create_orchestrator,
    create_mock_orchestrator,
)

__all__ = [
    # Ledger
    "RequestId",
    "Pending",
    "InFlight",
    "Retrying",
    "Succeeded",
    "Failed",
    "EntryState",
    "LedgerEntry",
    "RequestLedger",
    "create_ledger",
    # Gate
    "ConcurrencyGate",
    # Dispatcher
    "WorkItem",
    "Dispatcher",
    "create_dispatcher",
    # Orchestrator
    "Orchestrator",
    "create_orchestrator",
    "create_mock_orchestrator",
]
