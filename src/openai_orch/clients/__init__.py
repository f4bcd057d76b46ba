"""
Clients - OpenAI transport for the bundled request variants.
"""

from openai_orch.clients.openai_client import (
    OpenAIConfig,
    create_openai_client,
    close_loop_clients,
    clear_client_cache,
)

__all__ = [
    "OpenAIConfig",
    "create_openai_client",
    "close_loop_clients",
    "clear_client_cache",
]
