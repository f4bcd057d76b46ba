"""
Policies - Concurrency, timeout, retry and retention configuration.

A Policies bundle is immutable and shared by every in-flight request of an
orchestrator. Validation happens once, when the orchestrator is built.

Usage:
    from openai_orch.policies import Policies, ConstantBackoff

    policies = Policies(
        max_concurrency=4,
        per_attempt_timeout=20.0,
        max_retries=3,
        backoff=ConstantBackoff(0.5),
    )
"""

import math
import os
from dataclasses import dataclass, field
from typing import Callable

from openai_orch.errors import InvalidPolicy


Backoff = Callable[[int], float]


# =============================================================================
# BACKOFF STRATEGIES
# =============================================================================

@dataclass(frozen=True)
class ImmediateBackoff:
    """Retry immediately."""

    def __call__(self, attempt: int) -> float:
        return 0.0


@dataclass(frozen=True)
class ConstantBackoff:
    """Retry after a fixed delay."""
    delay: float = 1.0

    def __call__(self, attempt: int) -> float:
        return self.delay


@dataclass(frozen=True)
class ExponentialBackoff:
    """
    Retry after initial_delay * 2**attempt, capped at max_delay.

    `attempt` is the 0-based index of the attempt that just failed.
    """
    initial_delay: float = 1.0
    max_delay: float = 10.0

    def __call__(self, attempt: int) -> float:
        # 2**attempt overflows float for absurd attempt counts
        if attempt >= 64:
            return self.max_delay
        return min(self.initial_delay * (2 ** attempt), self.max_delay)


def backoff_delay(backoff: Backoff, attempt: int) -> float:
    """Evaluate a backoff strategy, clamping to a non-negative delay."""
    delay = float(backoff(attempt))
    if math.isnan(delay) or delay < 0:
        return 0.0
    return delay


# =============================================================================
# RETENTION
# =============================================================================

@dataclass(frozen=True)
class RetentionPolicy:
    """
    How long terminal ledger entries are kept.

    Non-terminal entries are never evicted. Evicted ids read as unknown.
    """
    max_terminal_entries: int | None = None  # None = unbounded
    terminal_ttl: float | None = None        # Seconds after settling; None = forever

    @property
    def is_bounded(self) -> bool:
        return self.max_terminal_entries is not None or self.terminal_ttl is not None


# =============================================================================
# POLICIES
# =============================================================================

@dataclass(frozen=True)
class Policies:
    """
    Configuration bundle for an orchestrator.

    Defaults mirror a conservative OpenAI client: ten concurrent requests,
    30 second attempts, five retries with exponential backoff (1s to 10s).
    """
    max_concurrency: int = 10
    per_attempt_timeout: float = 30.0
    max_retries: int = 5
    backoff: Backoff = field(default_factory=ExponentialBackoff)
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def validate(self) -> None:
        """Raise InvalidPolicy if any field is out of range."""
        if not _is_int(self.max_concurrency) or self.max_concurrency < 1:
            raise InvalidPolicy(
                f"max_concurrency must be a positive integer, got {self.max_concurrency!r}"
            )
        if not _is_int(self.max_retries) or self.max_retries < 0:
            raise InvalidPolicy(
                f"max_retries must be a non-negative integer, got {self.max_retries!r}"
            )
        if (
            not isinstance(self.per_attempt_timeout, (int, float))
            or isinstance(self.per_attempt_timeout, bool)
            or not self.per_attempt_timeout > 0
        ):
            raise InvalidPolicy(
                f"per_attempt_timeout must be > 0 seconds, got {self.per_attempt_timeout!r}"
            )
        if not callable(self.backoff):
            raise InvalidPolicy("backoff must be callable as backoff(attempt) -> seconds")

        retention = self.retention
        if not isinstance(retention, RetentionPolicy):
            raise InvalidPolicy("retention must be a RetentionPolicy")
        if retention.max_terminal_entries is not None and (
            not _is_int(retention.max_terminal_entries)
            or retention.max_terminal_entries < 0
        ):
            raise InvalidPolicy("retention.max_terminal_entries must be >= 0")
        if retention.terminal_ttl is not None and not retention.terminal_ttl >= 0:
            raise InvalidPolicy("retention.terminal_ttl must be >= 0")

    @classmethod
    def from_env(cls, prefix: str = "OPENAI_ORCH_") -> "Policies":
        """
        Build policies from environment variables, falling back to defaults.

        Reads {prefix}MAX_CONCURRENCY, ATTEMPT_TIMEOUT, MAX_RETRIES,
        BACKOFF_INITIAL and BACKOFF_MAX.
        """
        defaults = cls()
        default_backoff = ExponentialBackoff()

        def read(name: str, convert, default):
            raw = os.environ.get(f"{prefix}{name}")
            if raw is None or not raw.strip():
                return default
            try:
                return convert(raw.strip())
            except ValueError as e:
                raise InvalidPolicy(f"{prefix}{name}={raw!r} is not valid") from e

        return cls(
            max_concurrency=read("MAX_CONCURRENCY", int, defaults.max_concurrency),
            per_attempt_timeout=read("ATTEMPT_TIMEOUT", float, defaults.per_attempt_timeout),
            max_retries=read("MAX_RETRIES", int, defaults.max_retries),
            backoff=ExponentialBackoff(
                initial_delay=read("BACKOFF_INITIAL", float, default_backoff.initial_delay),
                max_delay=read("BACKOFF_MAX", float, default_backoff.max_delay),
            ),
        )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
