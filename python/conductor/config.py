import os

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any


DEFAULT_CONTINUATION_PROMPT = "Continue exactly where you left off. Do not repeat any content you already produced."


class OutputFormat(Enum):
  CSV = "csv"
  MARKDOWN = "markdown"
  JSON = "json"
  AUTO = "auto"


class OnFailure(Enum):
  RETURN_PARTIAL = "return_partial"
  RAISE_ERROR = "raise_error"


@dataclass(frozen=True)
class RetryConfig:
  """Configuration for retrying provider calls."""

  max_retry_attempts: int = 3
  initial_seconds_between_retry_attempts: float = 5.0
  max_seconds_between_retry_attempts: float = 60.0

  def __post_init__(self):
    if self.max_retry_attempts < 0:
      raise ValueError("max_retry_attempts must be >= 0")
    if self.initial_seconds_between_retry_attempts < 0:
      raise ValueError("initial_seconds_between_retry_attempts must be >= 0")

  def backoff(self, retry_count: int, retry_after: Optional[float] = None) -> float:
    seconds = self.initial_seconds_between_retry_attempts * (2**retry_count)
    if retry_after is not None:
      seconds = max(seconds, retry_after)
    return min(seconds, self.max_seconds_between_retry_attempts)


@dataclass(frozen=True)
class ContinuationConfig:
  """
  How truncated output is continued and stitched together.

  Args:
    enabled: Continue when a provider stops on the token limit
    max_attempts: Upper bound on continuation requests for one turn
    output_format: Format used to pick a merger, or "auto" to sniff it
    on_failure: Return the concatenated output or raise when a merge fails
    continuation_prompt: User message sent to ask for the rest of the output
    json_schema: Optional schema the merged JSON is validated against
  """

  enabled: bool = True
  max_attempts: int = 10
  output_format: OutputFormat = OutputFormat.AUTO
  on_failure: OnFailure = OnFailure.RETURN_PARTIAL
  continuation_prompt: str = DEFAULT_CONTINUATION_PROMPT
  json_schema: Optional[dict] = None

  def __post_init__(self):
    if self.max_attempts < 0:
      raise ValueError("max_attempts must be >= 0")
    # accept plain strings for the enum fields
    object.__setattr__(self, "output_format", OutputFormat(self.output_format))
    object.__setattr__(self, "on_failure", OnFailure(self.on_failure))


@dataclass(frozen=True)
class RunConfig:
  """
  Settings for one run.

  `model` overrides the agent's model. `continuation` applies to agents that do
  not carry their own ContinuationConfig; None turns continuation off for them.
  """

  model: Optional[str] = None
  max_turns: int = 10
  stream: bool = False
  temperature: Optional[float] = None
  top_p: Optional[float] = None
  max_tokens: Optional[int] = None
  tool_choice: Optional[Any] = None
  max_execution_time: Optional[float] = None
  retry: RetryConfig = field(default_factory=RetryConfig)
  continuation: Optional[ContinuationConfig] = field(default_factory=ContinuationConfig)

  def __post_init__(self):
    if self.max_turns < 1:
      raise ValueError("max_turns must be >= 1")
    if self.max_execution_time is not None and self.max_execution_time <= 0:
      raise ValueError("max_execution_time must be > 0")

  def model_settings(self) -> dict:
    settings = {
      "temperature": self.temperature,
      "top_p": self.top_p,
      "max_tokens": self.max_tokens,
    }
    return {k: v for k, v in settings.items() if v is not None}

  @classmethod
  def from_env(cls, **overrides) -> "RunConfig":
    """
    Build a RunConfig from CONDUCTOR_* environment variables. Keyword
    arguments take precedence over the environment.
    """
    values: dict[str, Any] = {}
    if os.environ.get("CONDUCTOR_MODEL"):
      values["model"] = os.environ["CONDUCTOR_MODEL"]
    if os.environ.get("CONDUCTOR_MAX_TURNS"):
      values["max_turns"] = int(os.environ["CONDUCTOR_MAX_TURNS"])
    if os.environ.get("CONDUCTOR_STREAM"):
      values["stream"] = os.environ["CONDUCTOR_STREAM"].lower() in ("1", "true", "yes", "on")
    if os.environ.get("CONDUCTOR_MAX_EXECUTION_TIME"):
      values["max_execution_time"] = float(os.environ["CONDUCTOR_MAX_EXECUTION_TIME"])
    values.update(overrides)
    return cls(**values)
