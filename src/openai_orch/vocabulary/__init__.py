"""
Vocabulary - Enumerated types shared by the ledger, dispatcher and facade.
"""

from openai_orch.vocabulary.enums import (
    RequestStatus,
    FailureKind,
    TERMINAL_STATUSES,
)

__all__ = [
    "RequestStatus",
    "FailureKind",
    "TERMINAL_STATUSES",
]
