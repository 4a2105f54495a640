"""
Client side throttling for provider calls.

Each model gets a token bucket whose refill rate adapts with AIMD: a success
adds `additive_increase` tokens per second, a rate limit response multiplies
the rate by `multiplicative_decrease`. Runs that talk to the same model share
one limiter through RateLimiterManager, so they back off together.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from ..logs.logs import get_logger


@dataclass
class RateLimiterStats:
  current_rpm: float
  min_rpm: float
  max_rpm: float
  tokens_available: float
  total_requests: int
  successful_requests: int
  rate_limited_requests: int
  last_rate_limit_time: Optional[float]


@dataclass
class RateLimiterConfig:
  initial_rpm: float = 60.0
  min_rpm: float = 1.0
  max_rpm: float = 1000.0
  # tokens per second gained per success
  additive_increase: float = 1.0 / 60.0
  multiplicative_decrease: float = 0.5
  max_concurrent: int = 10
  # seconds after a rate limit response during which successes do not raise the rate
  cooldown_period: float = 5.0


class TokenBucket:
  """
  Refills continuously at `rate` tokens per second and holds at most one
  second worth of tokens (never less than one).
  """

  def __init__(self, rate: float):
    self.rate = rate
    self.tokens = self.capacity
    self.refilled_at = time.monotonic()

  @property
  def capacity(self) -> float:
    return max(1.0, self.rate)

  def refill(self):
    now = time.monotonic()
    self.tokens = min(self.capacity, self.tokens + (now - self.refilled_at) * self.rate)
    self.refilled_at = now

  def take(self) -> float:
    """Take a token. Returns 0 on success, else the seconds until one is available."""
    self.refill()
    if self.tokens >= 1.0:
      self.tokens -= 1.0
      return 0.0
    return (1.0 - self.tokens) / self.rate


class AdaptiveRateLimiter:
  """
  Paces requests for one model.

  Usage:
      limiter = RateLimiterManager.get_instance().get_limiter("gpt-4o-mini")

      await limiter.acquire()
      try:
          response = await send(request)
          limiter.record_success()
      except ProviderError as e:
          if e.kind == ProviderErrorKind.RATE_LIMIT:
              limiter.record_rate_limit(e.retry_after)
          raise
      finally:
          limiter.release()
  """

  def __init__(self, model: str, config: Optional[RateLimiterConfig] = None):
    self.model = model
    self.config = config or RateLimiterConfig()
    self.logger = get_logger("rate_limiter")

    self._bucket = TokenBucket(self.config.initial_rpm / 60.0)
    self._semaphore = asyncio.Semaphore(self.config.max_concurrent)
    self._last_rate_limit_time: Optional[float] = None
    self._total_requests = 0
    self._successful_requests = 0
    self._rate_limited_requests = 0

  @property
  def current_rpm(self) -> float:
    return self._bucket.rate * 60.0

  def _set_rpm(self, rpm: float):
    self._bucket.refill()
    self._bucket.rate = min(max(rpm, self.config.min_rpm), self.config.max_rpm) / 60.0

  async def acquire(self, timeout: Optional[float] = None) -> bool:
    """
    Wait for a concurrency slot and then for a token. The caller must call
    `release` once the request is done.

    :param timeout: Seconds to wait for both, None to wait indefinitely
    :raises asyncio.TimeoutError: When the wait exceeds `timeout`
    """
    deadline = None if timeout is None else time.monotonic() + timeout

    async with asyncio.timeout(timeout):
      await self._semaphore.acquire()

    try:
      while (wait := self._bucket.take()) > 0:
        if deadline is not None and time.monotonic() + wait > deadline:
          self.logger.debug(f"Gave up waiting {wait:.2f}s for a {self.model} token")
          raise asyncio.TimeoutError()
        await asyncio.sleep(min(wait, 0.1))
    except BaseException:
      self._semaphore.release()
      raise

    self._total_requests += 1
    return True

  def release(self):
    self._semaphore.release()

  def record_success(self):
    self._successful_requests += 1
    cooling = (
      self._last_rate_limit_time is not None
      and time.monotonic() - self._last_rate_limit_time < self.config.cooldown_period
    )
    if cooling:
      return

    before = self.current_rpm
    self._set_rpm(before + self.config.additive_increase * 60.0)
    if self.current_rpm > before:
      self.logger.debug(f"{self.model}: rate raised to {self.current_rpm:.1f} RPM")

  def record_rate_limit(self, retry_after: Optional[float] = None):
    self._rate_limited_requests += 1
    self._last_rate_limit_time = time.monotonic()

    before = self.current_rpm
    self._set_rpm(before * self.config.multiplicative_decrease)
    hint = f", provider asked to wait {retry_after}s" if retry_after else ""
    self.logger.info(f"{self.model}: rate limited, {before:.1f} -> {self.current_rpm:.1f} RPM{hint}")

  @property
  def stats(self) -> RateLimiterStats:
    return RateLimiterStats(
      current_rpm=self.current_rpm,
      min_rpm=self.config.min_rpm,
      max_rpm=self.config.max_rpm,
      tokens_available=self._bucket.tokens,
      total_requests=self._total_requests,
      successful_requests=self._successful_requests,
      rate_limited_requests=self._rate_limited_requests,
      last_rate_limit_time=self._last_rate_limit_time,
    )


class RateLimiterManager:
  """
  Process wide registry holding one limiter per model.
  """

  _instance: Optional["RateLimiterManager"] = None

  def __init__(self):
    self._limiters: dict[str, AdaptiveRateLimiter] = {}
    self._configs: dict[str, RateLimiterConfig] = {}
    self._default_config = RateLimiterConfig()
    self.logger = get_logger("rate_limiter")

  @classmethod
  def get_instance(cls) -> "RateLimiterManager":
    if cls._instance is None:
      cls._instance = cls()
    return cls._instance

  def configure_model(self, model: str, config: RateLimiterConfig):
    """Use `config` for `model`, replacing a limiter that already exists."""
    self._configs[model] = config
    if self._limiters.pop(model, None) is not None:
      self.logger.info(f"Replaced rate limiter for {model} ({config.initial_rpm} RPM)")

  def set_default_config(self, config: RateLimiterConfig):
    self._default_config = config

  def get_limiter(self, model: str) -> AdaptiveRateLimiter:
    limiter = self._limiters.get(model)
    if limiter is None:
      limiter = AdaptiveRateLimiter(model, self._configs.get(model, self._default_config))
      self._limiters[model] = limiter
      self.logger.debug(f"Created rate limiter for {model} ({limiter.current_rpm:.1f} RPM)")
    return limiter

  def get_all_stats(self) -> dict[str, RateLimiterStats]:
    return {model: limiter.stats for model, limiter in self._limiters.items()}

  def reset(self):
    self._limiters.clear()
    self._configs.clear()
    self._default_config = RateLimiterConfig()
