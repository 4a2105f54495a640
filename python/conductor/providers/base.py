from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from ..errors import ProviderError
from ..logs.logs import get_logger
from .errors import to_provider_error
from .rate_limiter import AdaptiveRateLimiter, RateLimiterConfig, RateLimiterManager


class ProviderCapability(Enum):
  # chat completion style, the full history is sent on every call
  STATELESS = "stateless"
  # the provider keeps the conversation and resumes from a response id
  STATEFUL = "stateful"


class ModelProvider(ABC):
  """
  A model vendor behind a single `call(request)` coroutine.

  Subclasses implement `_send`. Anything the vendor SDK raises is translated
  into a ProviderError here, so callers only ever deal with the typed error.
  When `throttle` is set, calls are paced by the shared per-model limiter.
  """

  capability: ProviderCapability = ProviderCapability.STATELESS
  supports_streaming: bool = True

  def __init__(
    self,
    name: str,
    throttle: bool = False,
    rate_limiter_config: Optional[RateLimiterConfig] = None,
  ):
    self.name = name
    self.throttle = throttle
    self.rate_limiter_config = rate_limiter_config
    self.logger = get_logger("provider")

  def limiter_for(self, model: str) -> Optional[AdaptiveRateLimiter]:
    if not self.throttle:
      return None
    manager = RateLimiterManager.get_instance()
    if self.rate_limiter_config is not None:
      manager.configure_model(model, self.rate_limiter_config)
      self.rate_limiter_config = None
    return manager.get_limiter(model)

  async def call(self, request: dict, on_chunk: Optional[Callable[[Any], None]] = None) -> Any:
    """
    Send one request. Streaming requests are drained here and returned as the
    list of raw chunks; `on_chunk` sees each one as it arrives.
    """
    try:
      result = await self._send(request)
      if not request.get("stream"):
        return result

      chunks = []
      async for chunk in result:
        chunks.append(chunk)
        if on_chunk is not None:
          on_chunk(chunk)
      return chunks
    except ProviderError:
      raise
    except Exception as e:
      error = to_provider_error(e, provider=self.name)
      self.logger.debug(f"{self.name} call failed: {error.detail}")
      raise error from e

  @abstractmethod
  async def _send(self, request: dict) -> Any: ...


class StatelessProvider(ModelProvider, ABC):
  capability = ProviderCapability.STATELESS


class StatefulProvider(ModelProvider, ABC):
  capability = ProviderCapability.STATEFUL
  supports_streaming = False
