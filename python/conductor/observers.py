from typing import Protocol, Optional, runtime_checkable

from .logs.logs import get_logger


@runtime_checkable
class RunObserver(Protocol):
  """
  Receives lifecycle events from a run. Implementations must not raise; if they
  do, the exception is logged and the run carries on.
  """

  def run_started(self, run_id: str, agent_name: str) -> None: ...

  def turn_started(self, run_id: str, turn: int, agent_name: str) -> None: ...

  def turn_completed(self, run_id: str, turn: int, agent_name: str, outcome: str) -> None: ...

  def tool_invoked(self, run_id: str, tool_name: str, tool_call_id: str, is_error: bool) -> None: ...

  def handoff_occurred(self, run_id: str, from_agent: str, to_agent: str) -> None: ...

  def handoff_failed(self, run_id: str, from_agent: str, target: Optional[str], error: str) -> None: ...

  def continuation_attempted(self, run_id: str, attempt: int, max_attempts: int) -> None: ...

  def merge_completed(self, run_id: str, chunk_count: int, strategy: str, success: bool) -> None: ...

  def text_delta(self, run_id: str, delta: str) -> None: ...

  def run_completed(self, run_id: str, status: str, turns: int) -> None: ...


class NullObserver:
  def run_started(self, run_id, agent_name):
    pass

  def turn_started(self, run_id, turn, agent_name):
    pass

  def turn_completed(self, run_id, turn, agent_name, outcome):
    pass

  def tool_invoked(self, run_id, tool_name, tool_call_id, is_error):
    pass

  def handoff_occurred(self, run_id, from_agent, to_agent):
    pass

  def handoff_failed(self, run_id, from_agent, target, error):
    pass

  def continuation_attempted(self, run_id, attempt, max_attempts):
    pass

  def merge_completed(self, run_id, chunk_count, strategy, success):
    pass

  def text_delta(self, run_id, delta):
    pass

  def run_completed(self, run_id, status, turns):
    pass


class LoggingObserver(NullObserver):
  """Writes every lifecycle event to the `runner` logger."""

  def __init__(self, logger=None):
    self.logger = logger or get_logger("runner")

  def run_started(self, run_id, agent_name):
    self.logger.info(f"[{run_id}] run started with agent '{agent_name}'")

  def turn_started(self, run_id, turn, agent_name):
    self.logger.debug(f"[{run_id}] turn {turn} started ({agent_name})")

  def turn_completed(self, run_id, turn, agent_name, outcome):
    self.logger.debug(f"[{run_id}] turn {turn} completed ({agent_name}): {outcome}")

  def tool_invoked(self, run_id, tool_name, tool_call_id, is_error):
    status = "failed" if is_error else "ok"
    self.logger.info(f"[{run_id}] tool '{tool_name}' ({tool_call_id}) {status}")

  def handoff_occurred(self, run_id, from_agent, to_agent):
    self.logger.info(f"[{run_id}] handoff {from_agent} -> {to_agent}")

  def handoff_failed(self, run_id, from_agent, target, error):
    self.logger.warning(f"[{run_id}] handoff from {from_agent} to {target} failed: {error}")

  def continuation_attempted(self, run_id, attempt, max_attempts):
    self.logger.info(f"[{run_id}] continuation attempt {attempt}/{max_attempts}")

  def merge_completed(self, run_id, chunk_count, strategy, success):
    self.logger.info(f"[{run_id}] merged {chunk_count} chunks using {strategy} (success={success})")

  def run_completed(self, run_id, status, turns):
    self.logger.info(f"[{run_id}] run finished: {status} after {turns} turns")
