from .base import ModelProvider, ProviderCapability, StatefulProvider, StatelessProvider
from .errors import to_provider_error
from .response import FinishReason, ProviderResponse, Usage, infer_finish_reason
from .retry import RetryHandler
from .rate_limiter import AdaptiveRateLimiter, RateLimiterConfig, RateLimiterManager
from .litellm_provider import LiteLLMProvider
from .openai_provider import OpenAIChatProvider, OpenAIResponsesProvider
from .anthropic_provider import AnthropicProvider

__all__ = [
  "ModelProvider",
  "ProviderCapability",
  "StatefulProvider",
  "StatelessProvider",
  "to_provider_error",
  "FinishReason",
  "ProviderResponse",
  "Usage",
  "infer_finish_reason",
  "RetryHandler",
  "AdaptiveRateLimiter",
  "RateLimiterConfig",
  "RateLimiterManager",
  "LiteLLMProvider",
  "OpenAIChatProvider",
  "OpenAIResponsesProvider",
  "AnthropicProvider",
]
