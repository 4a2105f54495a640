import pytest

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from conductor.providers import shared_clients


@pytest.fixture(autouse=True)
def api_keys(monkeypatch):
  monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
  monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
  monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
  monkeypatch.delenv("ANTHROPIC_BASE_URL", raising=False)


class TestSharedClients:
  """One SDK client per vendor and process."""

  @pytest.mark.asyncio
  async def test_clients_are_reused_until_closed(self):
    openai_client = await shared_clients.get_shared_openai_client()
    anthropic_client = await shared_clients.get_shared_anthropic_client()

    assert isinstance(openai_client, AsyncOpenAI)
    assert isinstance(anthropic_client, AsyncAnthropic)
    assert await shared_clients.get_shared_openai_client() is openai_client
    assert await shared_clients.get_shared_anthropic_client() is anthropic_client

    await shared_clients.close_shared_clients()

    assert shared_clients._clients == {}
    replacement = await shared_clients.get_shared_openai_client()
    assert replacement is not openai_client
    await shared_clients.close_shared_clients()
