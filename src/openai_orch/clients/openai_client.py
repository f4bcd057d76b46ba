"""
OpenAI Client - Async transport for the bundled request variants.

Clients are built from Credentials and cached per event loop and key/org
pair, since an async HTTP connection pool cannot be shared across loops.
The owner of a loop calls close_loop_clients() before closing it.
Retries inside the SDK are disabled: the orchestrator's retry policy is the
only one in force.
"""

import asyncio
from dataclasses import dataclass
from threading import Lock
from weakref import WeakKeyDictionary

from openai import AsyncOpenAI

from openai_orch.credentials import Credentials
from openai_orch.observability import get_logger


logger = get_logger("clients")


@dataclass(frozen=True)
class OpenAIConfig:
    """Transport configuration for OpenAI clients."""
    base_url: str | None = None  # Falls back to OPENAI_BASE_URL / SDK default
    max_retries: int = 0
    timeout: float | None = None  # None: rely on the orchestrator's deadline


_ClientKey = tuple[str, str | None, OpenAIConfig]

_clients: "WeakKeyDictionary[asyncio.AbstractEventLoop, dict[_ClientKey, AsyncOpenAI]]" = (
    WeakKeyDictionary()
)
_clients_lock = Lock()


def _build_client(api_key: str, org_id: str | None, config: OpenAIConfig) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=api_key,
        organization=org_id,
        base_url=config.base_url,
        max_retries=config.max_retries,
        timeout=config.timeout,
    )


def create_openai_client(
    credentials: Credentials,
    config: OpenAIConfig | None = None,
    *,
    api_key: str | None = None,
) -> AsyncOpenAI:
    """
    Get an AsyncOpenAI client.

    Args:
        credentials: Source of the org id and, by default, the key
        config: Transport configuration
        api_key: One of credentials' keys (default: the primary key)

    Inside a running event loop the same client is returned for the same
    key, org and config. Outside one, a fresh client is built each call.
    """
    config = config or OpenAIConfig()
    api_key = api_key or credentials.api_key
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return _build_client(api_key, credentials.org_id, config)

    key = (api_key, credentials.org_id, config)
    with _clients_lock:
        per_loop = _clients.setdefault(loop, {})
        client = per_loop.get(key)
        if client is None:
            client = _build_client(api_key, credentials.org_id, config)
            per_loop[key] = client
        return client


async def close_loop_clients(loop: asyncio.AbstractEventLoop | None = None) -> int:
    """
    Close and forget the clients cached for `loop` (default: the running loop).

    Must be awaited on that loop. Returns the number of clients closed.
    """
    loop = loop or asyncio.get_running_loop()
    with _clients_lock:
        per_loop = _clients.pop(loop, {})

    for client in per_loop.values():
        try:
            await client.close()
        except Exception:
            logger.warning("failed to close OpenAI client", exc_info=True)
    if per_loop:
        logger.debug("closed %d OpenAI client(s)", len(per_loop))
    return len(per_loop)


def clear_client_cache() -> None:
    """Drop cached clients without closing them (for testing)."""
    with _clients_lock:
        _clients.clear()
