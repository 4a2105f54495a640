import secrets

from dataclasses import dataclass, field
from typing import Optional

from .cancellation import CancellationToken
from .config import RunConfig
from .logs.logs import get_logger
from .observers import NullObserver, RunObserver
from .providers.response import Usage
from .providers.retry import RetryHandler

logger = get_logger("runner")


@dataclass
class RunContext:
  """
  Per-run handle passed to every component taking part in a run.

  Nothing in it is shared between runs.
  """

  config: RunConfig = field(default_factory=RunConfig)
  cancellation: CancellationToken = field(default_factory=CancellationToken)
  observer: RunObserver = field(default_factory=NullObserver)
  retry: Optional[RetryHandler] = None
  run_id: str = field(default_factory=lambda: secrets.token_hex(6))
  turn: int = 0
  usage: Usage = field(default_factory=Usage)

  def __post_init__(self):
    if self.retry is None:
      self.retry = RetryHandler(self.config.retry)

  def record_usage(self, usage: Optional[Usage]):
    if usage is not None:
      self.usage = self.usage + usage

  def emit(self, event: str, *args):
    handler = getattr(self.observer, event, None)
    if handler is None:
      return
    try:
      handler(self.run_id, *args)
    except Exception as e:
      logger.error(f"Observer {type(self.observer).__name__}.{event} raised {type(e).__name__}: {e}")
