from dataclasses import dataclass, field
from typing import List, Optional

import cattrs

from ..config import ContinuationConfig, OnFailure
from ..errors import ContinuationMergeError, ProviderError, ProviderErrorKind, RunCancelledError
from ..logs.logs import get_logger
from ..messages import AssistantMessage, ConversationMessage, SystemMessage, UserMessage
from ..providers.response import FinishReason, ProviderResponse
from .mergers.factory import MergerFactory

converter = cattrs.Converter()


@dataclass(frozen=True)
class ContinuationChunk:
  response: ProviderResponse
  index: int

  @property
  def content(self) -> str:
    return self.response.content

  @property
  def finish_reason(self) -> FinishReason:
    return self.response.finish_reason

  @property
  def output_tokens(self) -> int:
    return self.response.usage.output_tokens if self.response.usage else 0


@dataclass
class ContinuationMetadata:
  was_continued: bool = False
  continuation_count: int = 0
  total_output_tokens: int = 0
  chunk_sizes: List[int] = field(default_factory=list)
  finish_reasons: List[str] = field(default_factory=list)
  merge_strategy_used: str = "none"
  merge_success: bool = True
  merge_error: Optional[dict] = None
  stop_reason: str = "completed"
  detected_format: Optional[str] = None
  fallback_used: bool = False
  max_attempts_reached: bool = False


@dataclass
class MergedResult:
  content: str
  message: AssistantMessage
  metadata: ContinuationMetadata
  chunks: List[ContinuationChunk] = field(default_factory=list)

  def to_dict(self) -> dict:
    return {"content": self.content, "_continuation_metadata": converter.unstructure(self.metadata)}


class ContinuationOrchestrator:
  """
  Keeps asking for more output while the provider stops on the token limit,
  then merges the chunks into one result.

  A stateful provider is resumed from the last response id with only the
  continuation prompt. Otherwise the conversation is replayed with the output
  so far as an assistant message, followed by the continuation prompt.
  """

  def __init__(self, strategy, context, config: ContinuationConfig):
    self.strategy = strategy
    self.context = context
    self.config = config
    self.factory = MergerFactory(config.output_format, json_schema=config.json_schema)
    self.logger = get_logger("continuation")

  async def continue_from(
    self,
    first_response: ProviderResponse,
    messages: List[ConversationMessage],
    agent,
  ) -> MergedResult:
    chunks = [ContinuationChunk(first_response, 0)]
    attempts = 0
    stop_reason = None

    try:
      while chunks[-1].finish_reason == FinishReason.LENGTH:
        if attempts >= self.config.max_attempts:
          stop_reason = "max_attempts_exceeded"
          self.logger.warning(
            f"{agent.name}: output still truncated after {attempts} continuation attempts, returning partial output"
          )
          break

        self.context.cancellation.raise_if_cancelled()
        attempts += 1
        self.context.emit("continuation_attempted", attempts, self.config.max_attempts)
        self.logger.info(f"{agent.name}: continuing truncated output (attempt {attempts}/{self.config.max_attempts})")

        request, previous_response_id = self.next_request(chunks, messages)
        response = await self.strategy.execute(request, agent, self.context, previous_response_id=previous_response_id)
        chunks.append(ContinuationChunk(response, len(chunks)))
    except RunCancelledError as e:
      partial = self.merge(chunks, "cancelled")
      self.logger.info(f"{agent.name}: continuation cancelled after {len(chunks)} chunks")
      raise RunCancelledError(e.reason, partial=partial) from e
    except ProviderError as e:
      e.partial = self.merge(chunks, "provider_error")
      self.logger.warning(f"{agent.name}: continuation failed after {len(chunks)} chunks, keeping output so far")
      raise

    if stop_reason is None:
      try:
        stop_reason = self.stop_reason_for(chunks[-1].finish_reason, agent)
      except ProviderError as e:
        # the failed response carries no usable output
        if len(chunks) > 1:
          e.partial = self.merge(chunks[:-1], "provider_error")
        raise

    result = self.merge(chunks, stop_reason)
    if not result.metadata.merge_success and self.config.on_failure == OnFailure.RAISE_ERROR:
      error = result.metadata.merge_error or {}
      raise ContinuationMergeError(
        self.config.output_format.value,
        len(chunks),
        f"{error.get('error_class')}: {error.get('error_message')}",
        partial=result,
      )
    return result

  def stop_reason_for(self, finish_reason: FinishReason, agent) -> str:
    match finish_reason:
      case FinishReason.STOP | FinishReason.TOOL_CALLS:
        return "completed"
      case FinishReason.ERROR:
        raise ProviderError(
          ProviderErrorKind.SERVER,
          f"provider reported a failed response while continuing output for '{agent.name}'",
          provider=self.strategy.provider.name,
          retryable=False,
        )
      case _:
        self.logger.warning(f"{agent.name}: continuation stopped early ({finish_reason.value})")
        return finish_reason.value

  def next_request(self, chunks: List[ContinuationChunk], messages: List[ConversationMessage]):
    prompt = UserMessage(self.config.continuation_prompt)
    last = chunks[-1].response
    if self.strategy.resumes_from_response_id and last.response_id:
      # instructions are not carried over by the server between responses
      system = [m for m in messages if isinstance(m, SystemMessage)]
      return system + [prompt], last.response_id

    so_far = "".join(chunk.content for chunk in chunks)
    return list(messages) + [AssistantMessage(so_far), prompt], None

  def merge(self, chunks: List[ContinuationChunk], stop_reason: str) -> MergedResult:
    metadata = ContinuationMetadata(
      was_continued=len(chunks) > 1,
      continuation_count=len(chunks) - 1,
      total_output_tokens=sum(c.output_tokens for c in chunks),
      chunk_sizes=[len(c.content) for c in chunks],
      finish_reasons=[c.finish_reason.value for c in chunks],
      stop_reason=stop_reason,
      max_attempts_reached=stop_reason == "max_attempts_exceeded",
    )

    if len(chunks) == 1:
      content = chunks[0].content
    else:
      outcome = self.factory.merger_for(self.config.output_format).merge(chunks)
      content = outcome["content"]
      details = outcome["metadata"]
      metadata.merge_strategy_used = details.get("merge_strategy", "concatenation")
      metadata.merge_success = details.get("merge_success", False)
      metadata.merge_error = details.get("merge_error")
      metadata.fallback_used = details.get("fallback_used", False)
      metadata.detected_format = details.get("detected_format")
      self.context.emit("merge_completed", len(chunks), metadata.merge_strategy_used, metadata.merge_success)
      self.logger.info(
        f"Merged {len(chunks)} chunks with {metadata.merge_strategy_used} "
        f"({metadata.total_output_tokens} output tokens, success={metadata.merge_success})"
      )

    message = AssistantMessage(content, tool_calls=list(chunks[-1].response.message.tool_calls))
    return MergedResult(content=content, message=message, metadata=metadata, chunks=list(chunks))
