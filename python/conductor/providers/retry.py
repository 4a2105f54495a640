from typing import Any, Callable, Optional

from ..cancellation import CancellationToken
from ..config import RetryConfig
from ..errors import ProviderError, ProviderErrorKind
from ..logs.logs import get_logger


class RetryHandler:
  """
  Calls a provider, retrying failures that are worth another attempt.

  Network, rate limit and server errors are retried with exponential backoff;
  a Retry-After sent by the provider raises the wait, capped by the configured
  maximum. Every other error propagates on the first occurrence. When the
  provider is throttled, a limiter slot is held for the duration of each call.
  """

  def __init__(self, config: Optional[RetryConfig] = None):
    self.config = config or RetryConfig()
    self.logger = get_logger("retry")

  async def call(
    self,
    provider,
    request: dict,
    cancellation: Optional[CancellationToken] = None,
    on_chunk: Optional[Callable[[Any], None]] = None,
  ) -> Any:
    cancellation = cancellation or CancellationToken()
    model = request.get("model") or provider.name
    limiter = provider.limiter_for(model)
    retry_count = 0

    while True:
      cancellation.raise_if_cancelled()
      if limiter is not None:
        await cancellation.guard(limiter.acquire())

      try:
        result = await cancellation.guard(provider.call(request, on_chunk))
        if limiter is not None:
          limiter.record_success()
        return result
      except ProviderError as e:
        if limiter is not None and e.kind == ProviderErrorKind.RATE_LIMIT:
          limiter.record_rate_limit(retry_after=e.retry_after)

        if not e.retryable:
          raise
        if retry_count >= self.config.max_retry_attempts:
          self.logger.error(f"Request for {model} failed after {retry_count + 1} attempts: {e.detail}")
          raise

        backoff = self.config.backoff(retry_count, e.retry_after)
        retry_count += 1
        self.logger.info(
          f"Retrying request for {model} (attempt {retry_count}/{self.config.max_retry_attempts}) "
          f"after {backoff:.1f}s backoff ({e.kind.value})"
        )
      finally:
        if limiter is not None:
          limiter.release()

      await cancellation.sleep(backoff)
