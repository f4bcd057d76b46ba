"""
Credentials - Secrets handed to executable requests.

Credentials are held privately by the orchestrator and passed to each
request's execute(). When several keys are configured, the bundled requests
spread their calls across them with next_key().
"""

import os
from pathlib import Path
from threading import Lock

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SecretStr,
    field_validator,
)


class _KeyCursor:
    """Thread-safe counter. Cursors compare equal so Credentials equality ignores them."""

    def __init__(self) -> None:
        self._next = 0
        self._lock = Lock()

    def advance(self) -> int:
        with self._lock:
            index = self._next
            self._next += 1
        return index

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _KeyCursor)

    __hash__ = None


class Credentials(BaseModel):
    """
    One or more API keys plus an optional organization id.

    Keys are stored as SecretStr so they never appear in reprs or logs.
    """
    model_config = ConfigDict(frozen=True)

    api_keys: tuple[SecretStr, ...] = Field(
        ...,
        min_length=1,
        description="API keys; the first one is the default"
    )

    org_id: str | None = Field(
        default=None,
        description="Optional OpenAI organization id"
    )

    _cursor: _KeyCursor = PrivateAttr(default_factory=_KeyCursor)

    @field_validator("api_keys")
    @classmethod
    def keys_not_blank(cls, v: tuple[SecretStr, ...]) -> tuple[SecretStr, ...]:
        for key in v:
            if not key.get_secret_value().strip():
                raise ValueError("api key cannot be blank")
        return v

    @property
    def api_key(self) -> str:
        """The primary key's secret value."""
        return self.api_keys[0].get_secret_value()

    @property
    def key_count(self) -> int:
        return len(self.api_keys)

    def next_key(self) -> str:
        """
        The next key in round-robin order.

        Every call advances the cursor, so concurrent callers are spread
        evenly across all keys. With a single key this is always api_key.
        """
        index = self._cursor.advance()
        return self.api_keys[index % len(self.api_keys)].get_secret_value()

    @classmethod
    def from_key(cls, api_key: str, org_id: str | None = None) -> "Credentials":
        """Build credentials from a single key."""
        return cls(api_keys=(SecretStr(api_key),), org_id=org_id)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Credentials | None":
        """
        Load credentials from the environment.

        Reads a .env file first (without overriding variables already set),
        then OPENAI_API_KEY (comma separated for several keys) and
        OPENAI_ORG_ID. Returns None when no key is configured.
        """
        load_dotenv(env_file)

        raw_keys = os.environ.get("OPENAI_API_KEY", "")
        keys = [k.strip() for k in raw_keys.split(",") if k.strip()]
        if not keys:
            return None

        org_id = os.environ.get("OPENAI_ORG_ID") or None
        return cls(api_keys=tuple(SecretStr(k) for k in keys), org_id=org_id)
