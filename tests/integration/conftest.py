"""
Integration test configuration.

These tests call real APIs and cost money.
Run with: pytest -m integration
Skip with: pytest -m "not integration"
"""

import pytest

from openai_orch.credentials import Credentials
from openai_orch.orchestrator import create_orchestrator
from openai_orch.policies import ExponentialBackoff, Policies


def pytest_configure(config):
    """Register integration marker."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (may incur API costs)"
    )


@pytest.fixture(scope="session")
def credentials():
    """
    Session-scoped credentials.

    Skips if API key not available.
    """
    creds = Credentials.from_env()
    if creds is None:
        pytest.skip("OPENAI_API_KEY not set")
    return creds


@pytest.fixture
def integration_orchestrator(credentials):
    """Orchestrator talking to the real API."""
    policies = Policies(
        max_concurrency=4,
        per_attempt_timeout=30.0,
        max_retries=2,
        backoff=ExponentialBackoff(initial_delay=1.0, max_delay=5.0),
    )
    orchestrator = create_orchestrator(policies=policies, credentials=credentials)
    yield orchestrator
    orchestrator.close(timeout=30)
