"""
Exception classes raised by the runtime.

Every error carries a context dict and builds a message with a short
suggestion for resolution. Provider failures are classified by kind so the
retry layer can decide what is worth another attempt.
"""

from enum import Enum
from typing import Optional, Dict, Any, List


class ConductorError(Exception):
  """
  Base class for runtime errors.

  Attributes:
    context: Additional context about the failure
    message: Human-readable error message
  """

  def __init__(self, summary: str, context: Optional[Dict[str, Any]] = None, message: Optional[str] = None):
    self.summary = summary
    self.context = context or {}

    if message is None:
      message = self._build_message()

    self.message = message
    super().__init__(message)

  def _build_message(self) -> str:
    """Build a helpful error message with context."""
    parts = [self.summary]

    if self.context:
      context_parts = [f"{k}: {v}" for k, v in self.context.items() if v is not None]
      if context_parts:
        parts.append(f"Context: {', '.join(context_parts)}.")

    suggestion = self._get_suggestion()
    if suggestion:
      parts.append(suggestion)

    return " ".join(parts)

  def _get_suggestion(self) -> str:
    return ""


class ProviderErrorKind(Enum):
  AUTH = "auth"
  RATE_LIMIT = "rate_limit"
  SERVER = "server"
  NETWORK = "network"
  MALFORMED = "malformed"
  INVALID_REQUEST = "invalid_request"
  UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({ProviderErrorKind.NETWORK, ProviderErrorKind.RATE_LIMIT, ProviderErrorKind.SERVER})


class ProviderError(ConductorError):
  """
  Raised when a model provider call fails.

  Example:
    try:
      response = await strategy.execute(messages, agent, context)
    except ProviderError as e:
      if e.retryable:
        ...

  When the failure interrupts a continuation, the output merged so far is kept
  in `partial`.
  """

  def __init__(
    self,
    kind: ProviderErrorKind,
    detail: str,
    provider: Optional[str] = None,
    status_code: Optional[int] = None,
    retry_after: Optional[float] = None,
    retryable: Optional[bool] = None,
    context: Optional[Dict[str, Any]] = None,
    partial=None,
  ):
    self.kind = kind
    self.detail = detail
    self.provider = provider
    self.status_code = status_code
    self.retry_after = retry_after
    self.partial = partial
    self._retryable = retryable

    ctx = context or {}
    ctx["provider"] = provider
    ctx["status_code"] = status_code
    super().__init__(f"Provider call failed ({kind.value}): {detail}.", context=ctx)

  @property
  def retryable(self) -> bool:
    if self._retryable is not None:
      return self._retryable
    return self.kind in RETRYABLE_KINDS

  def _get_suggestion(self) -> str:
    match self.kind:
      case ProviderErrorKind.AUTH:
        return "Check the API key and the provider account permissions."
      case ProviderErrorKind.RATE_LIMIT:
        return "Lower request concurrency or raise the retry backoff."
      case ProviderErrorKind.SERVER | ProviderErrorKind.NETWORK:
        return "The provider may be degraded. Retry later."
      case ProviderErrorKind.MALFORMED:
        return "The provider returned an unexpected payload. Check the model and API version."
      case ProviderErrorKind.INVALID_REQUEST:
        return "Check the model name, tool schemas and request parameters."
      case _:
        return ""


class ToolError(ConductorError):
  """Base class for failures while resolving or invoking a tool."""

  def __init__(
    self,
    summary: str,
    tool_name: Optional[str] = None,
    tool_call_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
  ):
    self.tool_name = tool_name
    self.tool_call_id = tool_call_id
    ctx = context or {}
    ctx["tool_call_id"] = tool_call_id
    super().__init__(summary, context=ctx)


class ToolNotFoundError(ToolError):
  def __init__(self, tool_name: str, available: Optional[List[str]] = None, tool_call_id: Optional[str] = None):
    self.available = available or []
    super().__init__(
      f"Tool '{tool_name}' is not available to this agent.",
      tool_name=tool_name,
      tool_call_id=tool_call_id,
      context={"available": ", ".join(self.available) or None},
    )


class ToolArgumentError(ToolError):
  def __init__(self, tool_name: str, detail: str, tool_call_id: Optional[str] = None):
    self.detail = detail
    super().__init__(
      f"Invalid arguments for tool '{tool_name}': {detail}", tool_name=tool_name, tool_call_id=tool_call_id
    )


class ToolInvocationError(ToolError):
  """Raised when the tool function itself raised. The original exception is kept as `cause`."""

  def __init__(self, tool_name: str, cause: BaseException, tool_call_id: Optional[str] = None):
    self.cause = cause
    super().__init__(
      f"{type(cause).__name__}: {cause}",
      tool_name=tool_name,
      tool_call_id=tool_call_id,
    )


class HandoffResolutionError(ConductorError):
  def __init__(self, target: str, available: Optional[List[str]] = None):
    self.target = target
    self.available = available or []
    super().__init__(
      f"Handoff target '{target}' is not a declared handoff.",
      context={"available": ", ".join(self.available) or "none"},
    )


class ContinuationMergeError(ConductorError):
  """
  Raised when continuation chunks could not be merged and the agent asked
  for failures to be raised. The best-effort result is kept in `partial`.
  """

  def __init__(self, output_format: str, chunk_count: int, detail: str, partial=None):
    self.output_format = output_format
    self.chunk_count = chunk_count
    self.detail = detail
    self.partial = partial
    super().__init__(
      f"Merging {chunk_count} continuation chunks as {output_format} failed: {detail}.",
      context={"output_format": output_format, "chunk_count": chunk_count},
    )

  def _get_suggestion(self) -> str:
    return "Use on_failure='return_partial' to keep the concatenated output."


class RunCancelledError(ConductorError):
  """
  Signals that a run was cancelled at a suspension point.

  Whatever was produced before cancellation is carried in `partial`.
  """

  def __init__(self, reason: Optional[str] = None, partial=None):
    self.reason = reason or "cancelled"
    self.partial = partial
    super().__init__(f"Run cancelled: {self.reason}.")
