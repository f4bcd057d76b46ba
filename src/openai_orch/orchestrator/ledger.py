"""
Request Ledger - Tracks per-request state.

The ledger is the single source of truth for every submitted request:
- Current lifecycle state (pending, in flight, retrying, settled)
- Attempt number and scheduled retry time
- Last observed attempt error
- Success payload or terminal error

All reads and writes go through one ledger-wide lock. Callers block on a
condition variable until an entry settles.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from threading import Condition, Lock
from typing import Any
from uuid import UUID, uuid4

from openai_orch.errors import (
    AttemptError,
    AwaitTimeout,
    InvalidTransition,
    UnknownRequest,
)
from openai_orch.policies import RetentionPolicy
from openai_orch.vocabulary import RequestStatus


# =============================================================================
# REQUEST ID
# =============================================================================

@dataclass(frozen=True)
class RequestId:
    """
    Opaque handle for a submitted request.

    `response_type` is a hint used by get_response() when no explicit type
    is requested; it does not take part in equality.
    """
    value: UUID = field(default_factory=uuid4)
    response_type: Any = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return str(self.value)


# =============================================================================
# ENTRY STATES
# =============================================================================

@dataclass(frozen=True)
class Pending:
    """Created, not yet admitted."""
    status = RequestStatus.PENDING
    is_terminal = False


@dataclass(frozen=True)
class InFlight:
    """Attempt `attempt` is running against the capability."""
    attempt: int
    status = RequestStatus.IN_FLIGHT
    is_terminal = False


@dataclass(frozen=True)
class Retrying:
    """Attempt `attempt - 1` failed with `error`; next try at next_attempt_at."""
    attempt: int
    next_attempt_at: datetime
    error: AttemptError
    status = RequestStatus.RETRYING
    is_terminal = False


@dataclass(frozen=True)
class Succeeded:
    """Terminal: the capability returned `payload`."""
    payload: Any
    status = RequestStatus.SUCCEEDED
    is_terminal = True


@dataclass(frozen=True)
class Failed:
    """Terminal: retries exhausted or cancelled; `error` is the cause."""
    error: AttemptError
    status = RequestStatus.FAILED
    is_terminal = True


EntryState = Pending | InFlight | Retrying | Succeeded | Failed


@dataclass(frozen=True)
class LedgerEntry:
    """
    Immutable snapshot of one request's state.
    """
    id: RequestId
    state: EntryState
    created_at: datetime
    updated_at: datetime
    last_error: AttemptError | None = None

    @property
    def status(self) -> RequestStatus:
        return self.state.status

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def attempt(self) -> int | None:
        """Current attempt number, when one is running or scheduled."""
        return getattr(self.state, "attempt", None)

    def to_summary(self) -> dict[str, Any]:
        """Generate a summary for logging/debugging."""
        return {
            "id": str(self.id),
            "status": self.status.value,
            "attempt": self.attempt,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "last_error": str(self.last_error) if self.last_error else None,
        }


def _check_transition(current: EntryState, new: EntryState) -> str | None:
    """Return a reason if current -> new is not allowed."""
    if current.is_terminal:
        return f"entry already settled {current.status.value}"
    if isinstance(new, Pending):
        return "entries never return to PENDING"
    if isinstance(new, InFlight):
        if isinstance(current, Pending) and new.attempt != 0:
            return "first attempt must be attempt 0"
        if isinstance(current, InFlight):
            return "attempt already in flight"
        if isinstance(current, Retrying) and new.attempt != current.attempt:
            return f"expected attempt {current.attempt}, got {new.attempt}"
    if isinstance(new, Retrying):
        if not isinstance(current, InFlight):
            return "only an in-flight attempt can be retried"
        if new.attempt != current.attempt + 1:
            return f"expected attempt {current.attempt + 1}, got {new.attempt}"
    return None


# =============================================================================
# LEDGER
# =============================================================================

class RequestLedger:
    """
    Thread-safe mapping of RequestId -> LedgerEntry.

    Only the dispatcher transitions entries. Any thread may read or wait.
    """

    def __init__(self, retention: RetentionPolicy | None = None):
        self.retention = retention or RetentionPolicy()
        self._entries: dict[RequestId, LedgerEntry] = {}
        # Terminal ids in settle order, with their monotonic settle time
        self._settled: OrderedDict[RequestId, float] = OrderedDict()
        self._lock = Lock()
        self._settled_cond = Condition(self._lock)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries

    def create(self, response_type: Any = None) -> RequestId:
        """Allocate a fresh id with a PENDING entry. Never blocks on execution."""
        request_id = RequestId(response_type=response_type)
        now = datetime.now()
        with self._lock:
            self._prune_locked()
            self._entries[request_id] = LedgerEntry(
                id=request_id,
                state=Pending(),
                created_at=now,
                updated_at=now,
            )
        return request_id

    def read(self, request_id: RequestId) -> LedgerEntry:
        """Snapshot of an entry."""
        with self._lock:
            return self._get_locked(request_id)

    def transition(self, request_id: RequestId, new_state: EntryState) -> LedgerEntry:
        """
        Atomically move an entry to new_state.

        Raises:
            UnknownRequest: id not in the ledger
            InvalidTransition: terminal entries, returns to PENDING, or
                attempt numbers out of order
        """
        with self._lock:
            entry = self._get_locked(request_id)
            reason = _check_transition(entry.state, new_state)
            if reason is not None:
                raise InvalidTransition(
                    f"{request_id}: {entry.status.value} -> {new_state.status.value} "
                    f"rejected ({reason})"
                )

            last_error = entry.last_error
            if isinstance(new_state, (Retrying, Failed)):
                last_error = new_state.error

            updated = replace(
                entry,
                state=new_state,
                updated_at=datetime.now(),
                last_error=last_error,
            )
            self._entries[request_id] = updated

            if new_state.is_terminal:
                self._settled[request_id] = time.monotonic()
                self._settled_cond.notify_all()

            return updated

    def await_terminal(
        self,
        request_id: RequestId,
        timeout: float | None = None,
    ) -> LedgerEntry:
        """
        Block until the entry settles.

        Raises:
            UnknownRequest: id not in the ledger (or evicted while waiting)
            AwaitTimeout: timeout elapsed first; the entry is left intact
        """
        with self._lock:
            self._get_locked(request_id)

            def settled_or_gone() -> bool:
                entry = self._entries.get(request_id)
                return entry is None or entry.is_terminal

            if not self._settled_cond.wait_for(settled_or_gone, timeout=timeout):
                raise AwaitTimeout(request_id, timeout)

            return self._get_locked(request_id)

    def forget(self, request_id: RequestId) -> bool:
        """Remove a settled entry. Unsettled entries are kept."""
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None or not entry.is_terminal:
                return False
            del self._entries[request_id]
            self._settled.pop(request_id, None)
            return True

    def prune(self) -> int:
        """Apply the retention policy now. Returns the number of evicted entries."""
        with self._lock:
            return self._prune_locked()

    def counts(self) -> dict[RequestStatus, int]:
        """Number of entries per status."""
        with self._lock:
            counts = dict.fromkeys(RequestStatus, 0)
            for entry in self._entries.values():
                counts[entry.status] += 1
            return counts

    def _get_locked(self, request_id: RequestId) -> LedgerEntry:
        entry = self._entries.get(request_id)
        if entry is None:
            raise UnknownRequest(request_id)
        return entry

    def _prune_locked(self) -> int:
        if not self.retention.is_bounded:
            return 0

        evicted = 0
        ttl = self.retention.terminal_ttl
        if ttl is not None:
            cutoff = time.monotonic() - ttl
            while self._settled:
                oldest, settled_at = next(iter(self._settled.items()))
                if settled_at > cutoff:
                    break
                self._evict_locked(oldest)
                evicted += 1

        cap = self.retention.max_terminal_entries
        if cap is not None:
            while len(self._settled) > cap:
                oldest = next(iter(self._settled))
                self._evict_locked(oldest)
                evicted += 1

        return evicted

    def _evict_locked(self, request_id: RequestId) -> None:
        self._settled.pop(request_id, None)
        self._entries.pop(request_id, None)
        # Waiters on an evicted id must observe UnknownRequest
        self._settled_cond.notify_all()


def create_ledger(retention: RetentionPolicy | None = None) -> RequestLedger:
    """Factory for request ledger."""
    return RequestLedger(retention=retention)
