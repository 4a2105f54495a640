from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..continuation.orchestrator import ContinuationOrchestrator, MergedResult
from ..errors import ProviderError, ProviderErrorKind
from ..handoffs import NO_HANDOFF, HandoffDetector, HandoffResult, is_handoff_tool
from ..logs.logs import get_logger
from ..messages import AssistantMessage, ToolCall, ToolCallResponseMessage
from ..providers.response import FinishReason, ProviderResponse
from ..tools.executor import ToolExecutor


class TurnOutcomeKind(Enum):
  FINAL = "final"
  TOOL_ROUND_TRIP = "tool_round_trip"
  HANDOFF = "handoff"


@dataclass
class TurnOutcome:
  kind: TurnOutcomeKind
  message: AssistantMessage
  response: ProviderResponse
  tool_results: List[ToolCallResponseMessage] = field(default_factory=list)
  handoff: HandoffResult = NO_HANDOFF
  merged: Optional[MergedResult] = None
  warnings: List[str] = field(default_factory=list)

  @property
  def finish_reason(self) -> FinishReason:
    return self.response.finish_reason


class TurnExecutor:
  """
  Runs one turn: a provider call, continuation of truncated output, tool
  execution and handoff detection. The assistant message and every tool
  result are appended to the conversation.
  """

  def __init__(
    self,
    strategy,
    conversation,
    context,
    tool_executor: Optional[ToolExecutor] = None,
    handoff_detector: Optional[HandoffDetector] = None,
  ):
    self.strategy = strategy
    self.conversation = conversation
    self.context = context
    self.tool_executor = tool_executor or ToolExecutor()
    self.handoff_detector = handoff_detector or HandoffDetector()
    self.logger = get_logger("turn")

  async def execute(self, agent) -> TurnOutcome:
    messages = self.conversation.build_request_messages(agent)
    response = await self.strategy.execute(messages, agent, self.context)

    message = response.message
    merged = None
    warnings = []

    match response.finish_reason:
      case FinishReason.LENGTH:
        config = agent.continuation_config or self.context.config.continuation
        if config is not None and config.enabled:
          orchestrator = ContinuationOrchestrator(self.strategy, self.context, config)
          merged = await orchestrator.continue_from(response, messages, agent)
          message = merged.message
          if merged.metadata.stop_reason != "completed":
            warnings.append(
              f"{agent.name}: continued output is partial ({merged.metadata.stop_reason} "
              f"after {merged.metadata.continuation_count} continuations)"
            )
        else:
          warnings.append(f"{agent.name}: output was truncated at the token limit and continuation is disabled")
      case FinishReason.CONTENT_FILTER:
        warnings.append(f"{agent.name}: output was stopped by the provider content filter")
      case FinishReason.INCOMPLETE:
        warnings.append(f"{agent.name}: provider returned an incomplete response")
      case FinishReason.ERROR:
        raise ProviderError(
          ProviderErrorKind.SERVER,
          f"provider reported a failed response for '{agent.name}'",
          provider=self.strategy.provider.name,
          retryable=False,
        )
      case _:
        pass

    for warning in warnings:
      self.logger.warning(warning)

    self.conversation.append(message)

    handoff = self.handoff_detector.detect(message, agent)
    if handoff.failed:
      warnings.append(handoff.error)
      self.context.emit("handoff_failed", agent.name, handoff.target_name, handoff.error)

    tool_results = await self.run_tool_calls(message.tool_calls, agent, handoff)
    self.conversation.extend(tool_results)

    if handoff.handoff_occurred:
      kind = TurnOutcomeKind.HANDOFF
    elif message.tool_calls:
      kind = TurnOutcomeKind.TOOL_ROUND_TRIP
    else:
      kind = TurnOutcomeKind.FINAL

    return TurnOutcome(
      kind=kind,
      message=message,
      response=response,
      tool_results=tool_results,
      handoff=handoff,
      merged=merged,
      warnings=warnings,
    )

  async def run_tool_calls(
    self, tool_calls: List[ToolCall], agent, handoff: HandoffResult
  ) -> List[ToolCallResponseMessage]:
    """
    One result per tool call, in the order of the calls. Handoff calls are
    answered here; everything else goes through the tool executor.
    """
    if not tool_calls:
      return []

    is_handoff = [is_handoff_tool(tc.function.name) and agent.find_tool(tc.function.name) is None for tc in tool_calls]
    regular = [tc for tc, h in zip(tool_calls, is_handoff) if not h]
    executed = iter(await self.tool_executor.execute(regular, agent, self.context) if regular else [])

    results = []
    for tool_call, handoff_call in zip(tool_calls, is_handoff):
      if not handoff_call:
        results.append(next(executed))
      else:
        results.append(self.answer_handoff_call(tool_call, handoff))
    return results

  def answer_handoff_call(self, tool_call: ToolCall, handoff: HandoffResult) -> ToolCallResponseMessage:
    if tool_call.id != handoff.tool_call_id:
      content, is_error = "Ignored: only the first handoff request in a message is followed.", True
    elif handoff.handoff_occurred:
      content, is_error = f"Transferred to {handoff.new_agent.name}.", False
    else:
      content, is_error = f"Handoff failed: {handoff.error}", True
    return ToolCallResponseMessage(
      tool_call_id=tool_call.id,
      name=tool_call.function.name,
      content=content,
      is_error=is_error,
    )
