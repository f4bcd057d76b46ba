"""
Vocabulary enums - the shared language of request tracking.

Every ledger entry is in exactly one RequestStatus; every attempt-level
failure is classified by a FailureKind.
"""

from enum import Enum


# =============================================================================
# REQUEST LIFECYCLE
# =============================================================================

class RequestStatus(str, Enum):
    """
    Lifecycle status of a submitted request.

    PENDING is only ever the first status. SUCCEEDED and FAILED are terminal.
    """
    PENDING = "PENDING"        # Entry created, not yet admitted to the gate
    IN_FLIGHT = "IN_FLIGHT"    # Holding a permit, capability call running
    RETRYING = "RETRYING"      # Attempt failed, waiting out the backoff
    SUCCEEDED = "SUCCEEDED"    # Terminal: payload available
    FAILED = "FAILED"          # Terminal: retries exhausted or cancelled

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RequestStatus.SUCCEEDED, RequestStatus.FAILED})


# =============================================================================
# FAILURE CLASSIFICATION
# =============================================================================

class FailureKind(str, Enum):
    """Why a single attempt (or the whole request) did not succeed."""
    CAPABILITY = "CAPABILITY"  # The request's execute() reported a failure
    TIMEOUT = "TIMEOUT"        # The per-attempt deadline elapsed
    CANCELLED = "CANCELLED"    # Cancelled by a caller or by shutdown
