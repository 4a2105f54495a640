from typing import Any, Optional

import litellm

from .base import StatelessProvider


class LiteLLMProvider(StatelessProvider):
  """
  Chat completion provider for any model litellm knows how to reach.

  Parameters a given model does not accept are dropped by litellm rather than
  failing the request.
  """

  def __init__(
    self,
    name: str = "litellm",
    api_key: Optional[str] = None,
    api_base: Optional[str] = None,
    throttle: bool = False,
    **kwargs,
  ):
    super().__init__(name, throttle=throttle)
    self.kwargs = dict(kwargs)
    if api_key:
      self.kwargs["api_key"] = api_key
    if api_base:
      self.kwargs["api_base"] = api_base
    self.kwargs["drop_params"] = True

  async def _send(self, request: dict) -> Any:
    return await litellm.acompletion(**request, **self.kwargs)
