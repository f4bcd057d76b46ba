"""
Basic Chat Demo - One chat request through the orchestrator.

Requirements:
    - OpenAI API key in environment variable OPENAI_API_KEY
    - Or in .env file: OPENAI_API_KEY=sk-...

Usage:
    python demos/basic_chat.py
"""

import logging
import sys

from openai_orch import ChatSisoRequest, ChatSisoResponse, Policies, create_orchestrator
from openai_orch.observability import configure_logging


def main() -> int:
    configure_logging(level=logging.INFO)

    try:
        orchestrator = create_orchestrator(policies=Policies())
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    with orchestrator:
        request_id = orchestrator.submit(
            ChatSisoRequest("You are a helpful assistant.", "What are you?")
        )
        response = orchestrator.get_response(request_id, ChatSisoResponse)
        print(response)
    return 0


if __name__ == "__main__":
    sys.exit(main())
