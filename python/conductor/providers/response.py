"""
Provider-agnostic response types.

Raw replies come back either as SDK objects or as plain dicts. `field_of`
reads both, so normalization code does not care which one it was handed.
"""

import json

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..logs.logs import get_logger
from ..messages import AssistantMessage, FunctionToolCall, ToolCall

logger = get_logger("provider")


def field_of(obj: Any, key: str, default: Any = None) -> Any:
  if obj is None:
    return default
  if isinstance(obj, dict):
    return obj.get(key, default)
  return getattr(obj, key, default)


class FinishReason(Enum):
  STOP = "stop"
  LENGTH = "length"
  TOOL_CALLS = "tool_calls"
  CONTENT_FILTER = "content_filter"
  INCOMPLETE = "incomplete"
  ERROR = "error"

  @classmethod
  def normalize(cls, value: Any) -> "FinishReason":
    if isinstance(value, FinishReason):
      return value
    if value is None:
      return cls.STOP
    reason = str(value).lower()
    if reason in _ALIASES:
      return _ALIASES[reason]
    logger.debug(f"Unknown finish reason '{value}', treating it as stop")
    return cls.STOP


_ALIASES = {
  "stop": FinishReason.STOP,
  "end_turn": FinishReason.STOP,
  "stop_sequence": FinishReason.STOP,
  "completed": FinishReason.STOP,
  "eos": FinishReason.STOP,
  "length": FinishReason.LENGTH,
  "max_tokens": FinishReason.LENGTH,
  "max_output_tokens": FinishReason.LENGTH,
  "tool_calls": FinishReason.TOOL_CALLS,
  "tool_use": FinishReason.TOOL_CALLS,
  "function_call": FinishReason.TOOL_CALLS,
  "content_filter": FinishReason.CONTENT_FILTER,
  "refusal": FinishReason.CONTENT_FILTER,
  "incomplete": FinishReason.INCOMPLETE,
  "failed": FinishReason.ERROR,
  "error": FinishReason.ERROR,
}


@dataclass(frozen=True)
class Usage:
  input_tokens: int = 0
  output_tokens: int = 0
  total_tokens: int = 0
  reasoning_tokens: Optional[int] = None
  cached_tokens: Optional[int] = None

  @classmethod
  def from_raw(cls, raw: Any) -> "Usage":
    """
    Read token counts from chat style (prompt/completion) or responses style
    (input/output) usage. Missing counts are zero. A provided, nonzero total is
    trusted as-is; otherwise the total is input + output.
    """
    if raw is None:
      return cls()

    input_tokens = _int(field_of(raw, "input_tokens", None))
    if input_tokens is None:
      input_tokens = _int(field_of(raw, "prompt_tokens", None)) or 0
    output_tokens = _int(field_of(raw, "output_tokens", None))
    if output_tokens is None:
      output_tokens = _int(field_of(raw, "completion_tokens", None)) or 0

    total_tokens = _int(field_of(raw, "total_tokens", None))
    if not total_tokens:
      total_tokens = input_tokens + output_tokens

    output_details = field_of(raw, "output_tokens_details") or field_of(raw, "completion_tokens_details")
    input_details = field_of(raw, "input_tokens_details") or field_of(raw, "prompt_tokens_details")
    cached = _int(field_of(input_details, "cached_tokens", None))
    if cached is None:
      cached = _int(field_of(raw, "cache_read_input_tokens", None))

    return cls(
      input_tokens=input_tokens,
      output_tokens=output_tokens,
      total_tokens=total_tokens,
      reasoning_tokens=_int(field_of(output_details, "reasoning_tokens", None)),
      cached_tokens=cached,
    )

  def __add__(self, other: "Usage") -> "Usage":
    return Usage(
      input_tokens=self.input_tokens + other.input_tokens,
      output_tokens=self.output_tokens + other.output_tokens,
      total_tokens=self.total_tokens + other.total_tokens,
      reasoning_tokens=_sum_optional(self.reasoning_tokens, other.reasoning_tokens),
      cached_tokens=_sum_optional(self.cached_tokens, other.cached_tokens),
    )


def _int(value: Any) -> Optional[int]:
  if value is None or isinstance(value, bool):
    return None
  try:
    return int(value)
  except (TypeError, ValueError):
    return None


def _sum_optional(a: Optional[int], b: Optional[int]) -> Optional[int]:
  if a is None and b is None:
    return None
  return (a or 0) + (b or 0)


@dataclass(frozen=True)
class ProviderResponse:
  message: AssistantMessage
  usage: Usage = field(default_factory=Usage)
  finish_reason: FinishReason = FinishReason.STOP
  response_id: Optional[str] = None
  raw: Any = None

  @property
  def content(self) -> str:
    return self.message.content or ""

  @property
  def tool_calls(self) -> list[ToolCall]:
    return self.message.tool_calls


def tool_calls_from_raw(raw_tool_calls: Any) -> list[ToolCall]:
  """Convert chat completion tool calls (SDK objects or dicts) into ToolCall."""
  tool_calls = []
  for raw in raw_tool_calls or []:
    function = field_of(raw, "function")
    arguments = field_of(function, "arguments", "") or ""
    if not isinstance(arguments, str):
      arguments = json.dumps(arguments)
    tool_calls.append(
      ToolCall(
        id=field_of(raw, "id", "") or "",
        function=FunctionToolCall(name=field_of(function, "name", "") or "", arguments=arguments),
        type=field_of(raw, "type", "function") or "function",
      )
    )
  return tool_calls


def infer_finish_reason(raw: Any) -> FinishReason:
  """
  Decide why a responses style reply stopped. These replies carry a status
  and incomplete details instead of a finish reason.
  """
  explicit = field_of(raw, "finish_reason")
  if explicit:
    return FinishReason.normalize(explicit)

  status = field_of(raw, "status")
  if status == "failed" or field_of(raw, "error"):
    return FinishReason.ERROR

  details = field_of(raw, "incomplete_details")
  if status == "incomplete" or details:
    match field_of(details, "reason"):
      case "max_output_tokens" | "max_tokens":
        return FinishReason.LENGTH
      case "content_filter":
        return FinishReason.CONTENT_FILTER
      case _:
        return FinishReason.INCOMPLETE

  if field_of(raw, "truncation") is True:
    return FinishReason.LENGTH

  for item in field_of(raw, "output") or []:
    if field_of(item, "type") == "function_call":
      return FinishReason.TOOL_CALLS

  return FinishReason.STOP
