"""
Chat requests - Single-input single-output chat completions.

A ChatSisoRequest sends one system prompt and one user prompt and yields
the first choice's message content.
"""

from dataclasses import dataclass, field
from typing import Any

from openai import OpenAIError
from pydantic import BaseModel, Field

from openai_orch.clients import create_openai_client
from openai_orch.credentials import Credentials
from openai_orch.errors import CapabilityFailure
from openai_orch.observability import get_logger


logger = get_logger("requests.chat")


@dataclass(frozen=True)
class ChatModelParams:
    """Parameters common to all chat models."""
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.0
    top_p: float = 1.0
    stop: tuple[str, ...] = ()
    max_tokens: int = 256
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def stop_param(self) -> str | list[str] | None:
        """Stop sequences in the shape the API expects."""
        if not self.stop:
            return None
        if len(self.stop) == 1:
            return self.stop[0]
        return list(self.stop)


class ChatSisoResponse(BaseModel):
    """The completion text of a ChatSisoRequest."""
    content: str = Field(..., description="First choice's message content")

    def __str__(self) -> str:
        return self.content


@dataclass(frozen=True)
class ChatSisoRequest:
    """
    One system prompt in, one completion out.

    Usage:
        request = ChatSisoRequest(
            system_prompt="You are a helpful assistant.",
            user_prompt="What are you?",
        )
        request_id = orchestrator.submit(request)
        print(orchestrator.get_response(request_id))
    """
    system_prompt: str
    user_prompt: str
    model_params: ChatModelParams = field(default_factory=ChatModelParams)

    response_type = ChatSisoResponse

    def timeout_hint(self) -> float:
        """
        Deadline scaled to the expected amount of tokens.

        About ten seconds per 512 tokens, counting prompt characters as a
        quarter token each.
        """
        prompt_chars = len(self.system_prompt) + len(self.user_prompt)
        expected_tokens = self.model_params.max_tokens + prompt_chars / 4.0
        return 10.0 * expected_tokens / 512.0

    def build_params(self) -> dict[str, Any]:
        """Keyword arguments for chat.completions.create()."""
        params: dict[str, Any] = {
            "model": self.model_params.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": self.user_prompt},
            ],
            "temperature": self.model_params.temperature,
            "top_p": self.model_params.top_p,
            "max_tokens": self.model_params.max_tokens,
            "presence_penalty": self.model_params.presence_penalty,
            "frequency_penalty": self.model_params.frequency_penalty,
        }
        stop = self.model_params.stop_param()
        if stop is not None:
            params["stop"] = stop
        return params

    async def execute(self, credentials: Credentials) -> ChatSisoResponse:
        client = create_openai_client(credentials, api_key=credentials.next_key())
        try:
            response = await client.chat.completions.create(**self.build_params())
        except OpenAIError as e:
            raise CapabilityFailure(f"chat completion failed: {e}") from e

        if not response.choices:
            raise CapabilityFailure("response.choices is empty")
        content = response.choices[0].message.content
        if content is None:
            raise CapabilityFailure("response.choices[0].message.content is None")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "chat usage: prompt=%s completion=%s",
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        return ChatSisoResponse(content=content)
