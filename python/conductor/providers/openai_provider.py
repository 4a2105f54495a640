from typing import Any, Optional

from openai import AsyncOpenAI

from .base import StatefulProvider, StatelessProvider
from .shared_clients import get_shared_openai_client


class OpenAIChatProvider(StatelessProvider):
  def __init__(self, name: str = "openai", client: Optional[AsyncOpenAI] = None, throttle: bool = False):
    super().__init__(name, throttle=throttle)
    self.client = client

  async def _send(self, request: dict) -> Any:
    client = self.client or await get_shared_openai_client()
    return await client.chat.completions.create(**request)


class OpenAIResponsesProvider(StatefulProvider):
  """
  Responses API provider. The server keeps the conversation, so a follow-up
  request only needs the new input and `previous_response_id`.
  """

  def __init__(self, name: str = "openai-responses", client: Optional[AsyncOpenAI] = None, throttle: bool = False):
    super().__init__(name, throttle=throttle)
    self.client = client

  async def _send(self, request: dict) -> Any:
    client = self.client or await get_shared_openai_client()
    return await client.responses.create(**request)
