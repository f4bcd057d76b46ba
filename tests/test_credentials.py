"""Tests for credentials."""

import pytest
from pydantic import ValidationError

from openai_orch.credentials import Credentials


@pytest.fixture
def no_dotenv(monkeypatch):
    """Keep a developer's .env file out of the tests."""
    monkeypatch.setattr("openai_orch.credentials.load_dotenv", lambda *a, **k: False)


class TestCredentials:
    """Tests for building credentials."""

    def test_from_key(self):
        """A single key becomes the primary key."""
        creds = Credentials.from_key("sk-abc", org_id="org-1")
        assert creds.api_key == "sk-abc"
        assert creds.key_count == 1
        assert creds.org_id == "org-1"

    def test_key_hidden_in_repr(self):
        """Secrets never show up in reprs."""
        creds = Credentials.from_key("sk-very-secret")
        assert "sk-very-secret" not in repr(creds)
        assert "sk-very-secret" not in str(creds)

    def test_requires_a_key(self):
        """At least one key is required."""
        with pytest.raises(ValidationError):
            Credentials(api_keys=())

    def test_rejects_blank_key(self):
        """Whitespace keys are rejected."""
        with pytest.raises(ValidationError):
            Credentials.from_key("   ")

    def test_frozen(self):
        """Credentials cannot be modified."""
        creds = Credentials.from_key("sk-abc")
        with pytest.raises(ValidationError):
            creds.org_id = "org-2"

    def test_next_key_round_robin(self):
        """Keys are handed out in order and wrap around."""
        creds = Credentials(api_keys=("sk-a", "sk-b", "sk-c"))
        assert [creds.next_key() for _ in range(4)] == ["sk-a", "sk-b", "sk-c", "sk-a"]

    def test_next_key_single(self):
        """A single key is always the one returned."""
        creds = Credentials.from_key("sk-only")
        assert {creds.next_key() for _ in range(3)} == {"sk-only"}

    def test_next_key_across_threads(self):
        """Concurrent callers share one cursor, so keys are used evenly."""
        from concurrent.futures import ThreadPoolExecutor

        creds = Credentials(api_keys=("sk-a", "sk-b"))
        with ThreadPoolExecutor(max_workers=8) as pool:
            keys = list(pool.map(lambda _: creds.next_key(), range(200)))

        assert keys.count("sk-a") == keys.count("sk-b") == 100

    def test_rotation_does_not_affect_equality(self):
        """Equal keys and org compare equal whatever the cursor position."""
        first = Credentials.from_key("sk-abc", org_id="org-1")
        second = Credentials.from_key("sk-abc", org_id="org-1")
        first.next_key()
        assert first == second


class TestCredentialsFromEnv:
    """Tests for environment loading."""

    def test_single_key(self, monkeypatch, no_dotenv):
        """OPENAI_API_KEY is read."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.delenv("OPENAI_ORG_ID", raising=False)

        creds = Credentials.from_env()

        assert creds.api_key == "sk-env"
        assert creds.org_id is None

    def test_several_keys(self, monkeypatch, no_dotenv):
        """Comma separated keys are all kept, in order."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-a, sk-b,,sk-c")
        monkeypatch.setenv("OPENAI_ORG_ID", "org-9")

        creds = Credentials.from_env()

        assert [k.get_secret_value() for k in creds.api_keys] == ["sk-a", "sk-b", "sk-c"]
        assert creds.org_id == "org-9"

    def test_missing(self, monkeypatch, no_dotenv):
        """No key yields None."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert Credentials.from_env() is None

    def test_reads_env_file(self, monkeypatch, tmp_path):
        """Keys can come from a .env file."""
        # Registers removal on teardown of whatever load_dotenv sets
        monkeypatch.setenv("OPENAI_API_KEY", "placeholder")
        monkeypatch.delenv("OPENAI_API_KEY")
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=sk-from-file\n")

        creds = Credentials.from_env(env_file)

        assert creds.api_key == "sk-from-file"
