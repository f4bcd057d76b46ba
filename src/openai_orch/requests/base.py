"""
Executable Request - The capability contract the dispatcher drives.

Any object with an `async execute(credentials)` coroutine method can be
submitted. The orchestrator imposes timeouts and retries; execute() only
has to make one attempt.
"""

from typing import Any, Protocol, runtime_checkable

from openai_orch.credentials import Credentials


@runtime_checkable
class ExecutableRequest(Protocol):
    """
    Protocol for submittable requests.

    Optional attributes the orchestrator honours:
    - response_type: default type get_response() projects the payload onto
    - timeout_hint(): request-specific attempt deadline in seconds,
      capped by the policy's per_attempt_timeout
    """

    async def execute(self, credentials: Credentials) -> Any:
        """
        Make one attempt.

        Returns:
            The success payload

        Raises:
            CapabilityFailure: for a typed failure
        """
        ...


def response_type_of(request: Any) -> Any:
    """The request's declared response type, if any."""
    return getattr(request, "response_type", None)


def timeout_hint_of(request: Any) -> float | None:
    """The request's own attempt deadline, if it declares a usable one."""
    hint = getattr(request, "timeout_hint", None)
    if not callable(hint):
        return None
    value = hint()
    if value is None or value <= 0:
        return None
    return float(value)
