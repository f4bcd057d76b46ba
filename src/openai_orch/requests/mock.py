"""
Mock requests - Scriptable executable requests for tests and dry runs.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from openai_orch.credentials import Credentials


@dataclass
class CallRecorder:
    """
    Records capability invocations across many requests.

    All mock executions run on the dispatcher loop, so no locking is needed.
    """
    active: int = 0
    peak: int = 0
    events: list[tuple[str, str, float]] = field(default_factory=list)

    def started(self, label: str) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.events.append((label, "start", time.monotonic()))

    def finished(self, label: str) -> None:
        self.active -= 1
        self.events.append((label, "end", time.monotonic()))

    def calls(self, label: str | None = None) -> int:
        """Number of started calls, optionally for one label."""
        return sum(
            1 for lbl, kind, _ in self.events
            if kind == "start" and (label is None or lbl == label)
        )

    def times(self, label: str, kind: str) -> list[float]:
        """Monotonic timestamps of a label's start or end events."""
        return [t for lbl, k, t in self.events if lbl == label and k == kind]

    def completion_order(self) -> list[str]:
        """Labels in the order their calls ended."""
        return [lbl for lbl, kind, _ in self.events if kind == "end"]


@dataclass
class MockRequest:
    """
    Request whose attempts follow a script.

    `outcomes[i]` decides attempt i: an exception instance or class is
    raised, anything else is returned. Attempts past the script return
    `payload`. Every attempt first sleeps `delay` seconds.
    """
    label: str = "mock"
    payload: Any = "ok"
    outcomes: list[Any] = field(default_factory=list)
    delay: float = 0.0
    recorder: CallRecorder | None = None
    response_type: Any = None
    attempts: int = field(default=0, init=False)

    async def execute(self, credentials: Credentials) -> Any:
        attempt = self.attempts
        self.attempts += 1
        if self.recorder is not None:
            self.recorder.started(self.label)
        try:
            if self.delay > 0:
                await asyncio.sleep(self.delay)
            outcome = self.outcomes[attempt] if attempt < len(self.outcomes) else self.payload
            if isinstance(outcome, type) and issubclass(outcome, BaseException):
                raise outcome(f"{self.label}: scripted failure on attempt {attempt}")
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            if self.recorder is not None:
                self.recorder.finished(self.label)
