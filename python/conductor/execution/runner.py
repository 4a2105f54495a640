import asyncio

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

import cattrs

from ..cancellation import CancellationToken
from ..config import RunConfig
from ..context import RunContext
from ..continuation.orchestrator import MergedResult
from ..conversation import ConversationManager
from ..errors import ContinuationMergeError, ProviderError, RunCancelledError
from ..handoffs import HandoffDetector
from ..logs.logs import get_logger
from ..messages import ConversationMessage, as_messages, message_to_dict
from ..observers import NullObserver, RunObserver
from ..providers.base import ModelProvider
from ..providers.response import Usage
from ..strategies import create_strategy
from ..tools.executor import ToolExecutor
from .turn import TurnExecutor, TurnOutcomeKind

converter = cattrs.Converter()


class RunStatus(Enum):
  COMPLETED = "completed"
  FAILED = "failed"
  MAX_TURNS_EXCEEDED = "max_turns_exceeded"
  CANCELLED = "cancelled"


@dataclass
class RunResult:
  status: RunStatus
  final_output: str
  last_agent: object
  messages: List[ConversationMessage] = field(default_factory=list)
  turns: int = 0
  usage: Usage = field(default_factory=Usage)
  handoffs: List[str] = field(default_factory=list)
  continuation: Optional[MergedResult] = None
  error: Optional[BaseException] = None
  warnings: List[str] = field(default_factory=list)
  run_id: Optional[str] = None

  @property
  def is_complete(self) -> bool:
    return self.status == RunStatus.COMPLETED

  @property
  def is_partial(self) -> bool:
    return self.status != RunStatus.COMPLETED

  def to_dict(self) -> dict:
    return {
      "run_id": self.run_id,
      "status": self.status.value,
      "final_output": self.final_output,
      "last_agent": getattr(self.last_agent, "name", None),
      "messages": [message_to_dict(m) for m in self.messages],
      "turns": self.turns,
      "usage": converter.unstructure(self.usage),
      "handoffs": list(self.handoffs),
      "continuation": self.continuation.to_dict() if self.continuation else None,
      "error": str(self.error) if self.error else None,
      "warnings": list(self.warnings),
    }


class Runner:
  """
  Drives an agent until it produces a final answer.

  Each turn calls the provider, runs requested tools and follows handoffs.
  The run ends as completed, failed, cancelled, or when `max_turns` turns have
  been used. A handoff swaps the active agent but keeps counting turns for the
  whole run. Provider failures and cancellation are reported in the
  RunResult rather than raised.

  Example:
    runner = Runner(LiteLLMProvider(), RunConfig(max_turns=5))
    result = await runner.run(agent, "Summarize the attached report")
    if result.is_complete:
      print(result.final_output)
  """

  def __init__(
    self,
    provider: ModelProvider,
    config: Optional[RunConfig] = None,
    observer: Optional[RunObserver] = None,
  ):
    self.provider = provider
    self.config = config or RunConfig()
    self.observer = observer or NullObserver()
    self.strategy = create_strategy(provider)
    self.tool_executor = ToolExecutor()
    self.handoff_detector = HandoffDetector()
    self.logger = get_logger("runner")

  async def run(
    self,
    agent,
    input: Union[str, dict, ConversationMessage, list],
    cancellation: Optional[CancellationToken] = None,
    context: Optional[RunContext] = None,
  ) -> RunResult:
    context = context or RunContext(
      config=self.config,
      cancellation=cancellation or CancellationToken(),
      observer=self.observer,
    )
    conversation = ConversationManager(as_messages(input))
    turn_executor = TurnExecutor(self.strategy, conversation, context, self.tool_executor, self.handoff_detector)
    max_turns = context.config.max_turns

    if context.config.max_execution_time:
      context.cancellation.cancel_after(context.config.max_execution_time)

    current = agent
    turns = 0
    agent_turns = 0
    handoffs = []
    warnings = []
    merged = None
    status = None
    error = None
    final_output = None

    context.emit("run_started", agent.name)
    self.logger.info(f"[STATE:RUNNING] run {context.run_id} started with agent '{agent.name}'")

    try:
      while status is None:
        if turns >= max_turns:
          status = RunStatus.MAX_TURNS_EXCEEDED
          self.logger.warning(f"[STATE:MAX_TURNS_EXCEEDED] run {context.run_id} stopped after {turns} turns")
          break

        context.cancellation.raise_if_cancelled()
        turns += 1
        agent_turns += 1
        context.turn = turns
        context.emit("turn_started", turns, current.name)
        self.logger.debug(f"[STATE:RUNNING] turn {turns}/{max_turns} ({current.name}, turn {agent_turns} for agent)")

        outcome = await turn_executor.execute(current)
        warnings.extend(outcome.warnings)
        if outcome.merged is not None:
          merged = outcome.merged
        context.emit("turn_completed", turns, current.name, outcome.kind.value)

        match outcome.kind:
          case TurnOutcomeKind.HANDOFF:
            new_agent = outcome.handoff.new_agent
            self.logger.info(f"[STATE:HANDOFF_SWAP] {current.name} -> {new_agent.name}")
            context.emit("handoff_occurred", current.name, new_agent.name)
            handoffs.append(new_agent.name)
            current = new_agent
            agent_turns = 0
          case TurnOutcomeKind.TOOL_ROUND_TRIP:
            self.logger.debug(f"[STATE:TOOL_ROUND_TRIP] {len(outcome.tool_results)} tool results")
          case TurnOutcomeKind.FINAL:
            status = RunStatus.COMPLETED
            final_output = outcome.message.content
            self.logger.info(f"[STATE:COMPLETED] run {context.run_id} finished after {turns} turns")
    except RunCancelledError as e:
      status = RunStatus.CANCELLED
      error = e
      if isinstance(e.partial, MergedResult):
        merged = e.partial
        final_output = e.partial.content
      self.logger.info(f"[STATE:CANCELLED] run {context.run_id}: {e.reason}")
    except ContinuationMergeError as e:
      status = RunStatus.FAILED
      error = e
      if isinstance(e.partial, MergedResult):
        merged = e.partial
        final_output = e.partial.content
      self.logger.error(f"[STATE:FAILED] run {context.run_id}: {e.message}")
    except ProviderError as e:
      status = RunStatus.FAILED
      error = e
      if isinstance(e.partial, MergedResult):
        merged = e.partial
        final_output = e.partial.content
      self.logger.error(f"[STATE:FAILED] run {context.run_id}: {e.message}")
    finally:
      context.cancellation.disarm()

    if final_output is None:
      last = conversation.last_assistant_message()
      final_output = last.content if last else ""

    context.emit("run_completed", status.value, turns)
    return RunResult(
      status=status,
      final_output=final_output,
      last_agent=current,
      messages=conversation.messages,
      turns=turns,
      usage=context.usage,
      handoffs=handoffs,
      continuation=merged,
      error=error,
      warnings=warnings,
      run_id=context.run_id,
    )

  def run_sync(self, agent, input, cancellation: Optional[CancellationToken] = None) -> RunResult:
    return asyncio.run(self.run(agent, input, cancellation=cancellation))
