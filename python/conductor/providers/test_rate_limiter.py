"""
Unit tests for the adaptive rate limiter.

Tests cover:
- Token bucket pacing and acquire timeouts
- Concurrency slots
- AIMD rate changes and the cooldown after a rate limit
- The per-model registry
"""

import asyncio

import pytest

from conductor.providers.rate_limiter import (
  AdaptiveRateLimiter,
  RateLimiterConfig,
  RateLimiterManager,
  RateLimiterStats,
)


class TestRateLimiterConfig:
  """Tests for RateLimiterConfig defaults."""

  def test_default_values(self):
    config = RateLimiterConfig()
    assert config.initial_rpm == 60.0
    assert config.min_rpm == 1.0
    assert config.max_rpm == 1000.0
    assert config.multiplicative_decrease == 0.5
    assert config.max_concurrent == 10
    assert config.cooldown_period == 5.0


class TestAdaptiveRateLimiter:
  """Tests for AdaptiveRateLimiter."""

  @pytest.fixture
  def limiter(self):
    config = RateLimiterConfig(
      initial_rpm=60.0,
      min_rpm=1.0,
      max_rpm=120.0,
      max_concurrent=5,
      cooldown_period=0.1,
    )
    return AdaptiveRateLimiter("test-model", config)

  @pytest.mark.asyncio
  async def test_first_acquire_does_not_wait(self, limiter):
    """A fresh limiter always has a token for the first request"""
    assert await limiter.acquire(timeout=1.0) is True
    limiter.release()

  @pytest.mark.asyncio
  async def test_acquire_times_out_when_bucket_is_empty(self):
    """At 60 RPM the next token is a second away, so a short timeout fails"""
    limiter = AdaptiveRateLimiter("test-model", RateLimiterConfig(initial_rpm=60.0))

    await limiter.acquire(timeout=5.0)
    limiter.release()

    with pytest.raises(asyncio.TimeoutError):
      await limiter.acquire(timeout=0.05)

  @pytest.mark.asyncio
  async def test_timed_out_acquire_gives_back_its_slot(self):
    """A token timeout must not leak the concurrency slot"""
    limiter = AdaptiveRateLimiter("test-model", RateLimiterConfig(initial_rpm=60.0, max_concurrent=1))

    await limiter.acquire(timeout=5.0)
    limiter.release()
    with pytest.raises(asyncio.TimeoutError):
      await limiter.acquire(timeout=0.05)

    assert not limiter._semaphore.locked()

  @pytest.mark.asyncio
  async def test_concurrency_limit(self):
    """Only max_concurrent requests may hold a slot at once"""
    config = RateLimiterConfig(initial_rpm=6000.0, max_concurrent=3)
    limiter = AdaptiveRateLimiter("test-model", config)

    for _ in range(3):
      await limiter.acquire(timeout=5.0)

    with pytest.raises(asyncio.TimeoutError):
      await limiter.acquire(timeout=0.1)

    limiter.release()
    await limiter.acquire(timeout=5.0)

    for _ in range(3):
      limiter.release()

  def test_success_increases_rate_up_to_max(self, limiter):
    initial_rpm = limiter.current_rpm

    limiter.record_success()
    assert limiter.current_rpm > initial_rpm

    for _ in range(10000):
      limiter.record_success()
    assert limiter.current_rpm == pytest.approx(limiter.config.max_rpm)

  def test_rate_limit_halves_rate_down_to_min(self, limiter):
    initial_rpm = limiter.current_rpm

    limiter.record_rate_limit(retry_after=2.0)
    assert limiter.current_rpm == pytest.approx(initial_rpm * 0.5)

    for _ in range(100):
      limiter.record_rate_limit()
    assert limiter.current_rpm == pytest.approx(limiter.config.min_rpm)

  def test_no_increase_during_cooldown(self, limiter):
    limiter.record_rate_limit()
    rate_after_limit = limiter.current_rpm

    limiter.record_success()

    assert limiter.current_rpm == rate_after_limit

  @pytest.mark.asyncio
  async def test_increase_resumes_after_cooldown(self, limiter):
    limiter.record_rate_limit()
    rate_after_limit = limiter.current_rpm

    await asyncio.sleep(limiter.config.cooldown_period + 0.1)
    limiter.record_success()

    assert limiter.current_rpm > rate_after_limit

  @pytest.mark.asyncio
  async def test_stats_after_requests(self, limiter):
    await limiter.acquire(timeout=1.0)
    limiter.record_success()
    limiter.release()

    limiter.record_rate_limit()

    stats = limiter.stats
    assert isinstance(stats, RateLimiterStats)
    assert stats.total_requests == 1
    assert stats.successful_requests == 1
    assert stats.rate_limited_requests == 1
    assert stats.last_rate_limit_time is not None


class TestRateLimiterManager:
  """Tests for the process wide registry."""

  @pytest.fixture(autouse=True)
  def reset_manager(self):
    RateLimiterManager._instance = None
    yield
    RateLimiterManager._instance = None

  def test_singleton(self):
    assert RateLimiterManager.get_instance() is RateLimiterManager.get_instance()

  def test_one_limiter_per_model(self):
    manager = RateLimiterManager.get_instance()

    assert manager.get_limiter("model-1") is manager.get_limiter("model-1")
    assert manager.get_limiter("model-1") is not manager.get_limiter("model-2")
    assert manager.get_limiter("model-2").model == "model-2"

  def test_configure_model(self):
    manager = RateLimiterManager.get_instance()
    manager.configure_model("configured-model", RateLimiterConfig(initial_rpm=120.0))

    assert manager.get_limiter("configured-model").current_rpm == pytest.approx(120.0)

  def test_configure_model_replaces_existing_limiter(self):
    manager = RateLimiterManager.get_instance()
    before = manager.get_limiter("configured-model")

    manager.configure_model("configured-model", RateLimiterConfig(initial_rpm=30.0))

    after = manager.get_limiter("configured-model")
    assert after is not before
    assert after.current_rpm == pytest.approx(30.0)

  def test_set_default_config(self):
    manager = RateLimiterManager.get_instance()
    manager.set_default_config(RateLimiterConfig(initial_rpm=200.0))

    assert manager.get_limiter("new-model").current_rpm == pytest.approx(200.0)

  def test_get_all_stats_and_reset(self):
    manager = RateLimiterManager.get_instance()
    manager.get_limiter("model-1")
    manager.get_limiter("model-2")

    assert set(manager.get_all_stats()) == {"model-1", "model-2"}

    manager.reset()
    assert manager.get_all_stats() == {}


class TestAIMDConvergence:
  """Tests for how the rate moves over many requests."""

  def test_sawtooth_pattern(self):
    config = RateLimiterConfig(
      initial_rpm=50.0,
      min_rpm=10.0,
      max_rpm=100.0,
      additive_increase=1.0 / 60.0,
      cooldown_period=0.0,
    )
    limiter = AdaptiveRateLimiter("test", config)

    for _ in range(20):
      limiter.record_success()
    assert limiter.current_rpm == pytest.approx(70.0)

    limiter.record_rate_limit()
    assert limiter.current_rpm == pytest.approx(35.0)

    for _ in range(10):
      limiter.record_success()
    assert limiter.current_rpm == pytest.approx(45.0)

  def test_two_clients_settle_near_fair_share(self):
    capacity = 100.0
    config = RateLimiterConfig(
      initial_rpm=80.0,
      max_rpm=200.0,
      additive_increase=0.5 / 60.0,
      cooldown_period=0.0,
    )
    clients = [AdaptiveRateLimiter("client1", config), AdaptiveRateLimiter("client2", config)]

    for _ in range(50):
      if sum(c.current_rpm for c in clients) > capacity:
        for client in clients:
          if client.current_rpm > capacity / 2:
            client.record_rate_limit()
      else:
        for client in clients:
          client.record_success()

    fair_share = capacity / 2
    for client in clients:
      assert fair_share * 0.3 < client.current_rpm < fair_share * 2.0
