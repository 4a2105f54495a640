"""
Detection of requests to hand control to another agent.

Two channels are checked, in order:

1. Tool calls. A call whose name is `handoff`, `transfer_to`, `delegate_to`,
   `switch_to`, or one of those followed by `_<target>`. The target comes from
   the `agent`, `target`, `to` or `agent_name` argument, else from the suffix.
2. Free text. Markers such as `[HANDOFF:billing]` or `{"handoff_to": "billing"}`
   and phrases such as "transferring to billing". This channel is best effort:
   an unresolvable phrase is ignored, an unresolvable marker is reported.
"""

import re

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .errors import HandoffResolutionError
from .logs.logs import get_logger
from .messages import AssistantMessage, ToolCall

if TYPE_CHECKING:
  from .agent import Agent

logger = get_logger("handoff")

HANDOFF_TOOL_PATTERNS = ("handoff", "transfer_to", "delegate_to", "switch_to")
TARGET_ARGUMENT_KEYS = ("agent", "target", "to", "agent_name")

STRUCTURED_TEXT_PATTERNS = [
  re.compile(r'"handoff_to"\s*:\s*"([^"]+)"', re.IGNORECASE),
  re.compile(r'"transfer_to"\s*:\s*"([^"]+)"', re.IGNORECASE),
  re.compile(r"\[HANDOFF:\s*([^\]]+)\]", re.IGNORECASE),
  re.compile(r"\[TRANSFER:\s*([^\]]+)\]", re.IGNORECASE),
  re.compile(r"\[AGENT:\s*([^\]]+)\]", re.IGNORECASE),
  re.compile(r"""\b(?:handoff|transfer)\(\s*["']([^"']+)["']\s*\)""", re.IGNORECASE),
]

NATURAL_TEXT_PATTERNS = [
  re.compile(r"\btransfer(?:ring)? (?:you )?to (?:the )?([\w-]+(?: agent)?)", re.IGNORECASE),
  re.compile(r"\bhand(?:ing)? ?off to (?:the )?([\w-]+(?: agent)?)", re.IGNORECASE),
  re.compile(r"\bswitching to (?:the )?([\w-]+(?: agent)?)", re.IGNORECASE),
  re.compile(r"\bforwarding to (?:the )?([\w-]+(?: agent)?)", re.IGNORECASE),
]


def slugify(name: str) -> str:
  return re.sub(r"[^a-z0-9_-]+", "_", name.strip().lower()).strip("_")


def normalize_agent_name(name: str) -> str:
  name = name.strip().strip("\"'`.,;:!")
  if name.lower().endswith(" agent"):
    name = name[: -len(" agent")]
  return name.strip()


def handoff_tool_name(target) -> str:
  return f"transfer_to_{slugify(target.name)}"


def handoff_tool_spec(target) -> dict:
  """The function spec offered to the model for handing off to `target`."""
  description = f"Hand the conversation over to the '{target.name}' agent."
  if target.instructions:
    summary = target.instructions.strip().splitlines()[0][:200]
    description += f" That agent: {summary}"
  return {
    "type": "function",
    "function": {
      "name": handoff_tool_name(target),
      "description": description,
      "parameters": {"type": "object", "properties": {}, "required": []},
    },
  }


def is_handoff_tool(name: str) -> bool:
  name = name.lower()
  return any(name == pattern or name.startswith(f"{pattern}_") for pattern in HANDOFF_TOOL_PATTERNS)


@dataclass(frozen=True)
class HandoffResult:
  handoff_occurred: bool = False
  new_agent: Optional["Agent"] = None
  target_name: Optional[str] = None
  error: Optional[str] = None
  tool_call_id: Optional[str] = None
  source: Optional[str] = None

  @property
  def failed(self) -> bool:
    return not self.handoff_occurred and self.error is not None


NO_HANDOFF = HandoffResult()


class HandoffDetector:
  """
  Stateless. One instance can serve every run.
  """

  def detect(self, message: AssistantMessage, agent: "Agent") -> HandoffResult:
    for tool_call in message.tool_calls:
      if is_handoff_tool(tool_call.function.name) and agent.find_tool(tool_call.function.name) is None:
        return self.from_tool_call(tool_call, agent)

    if message.content:
      return self.from_text(message.content, agent)

    return NO_HANDOFF

  def from_tool_call(self, tool_call: ToolCall, agent: "Agent") -> HandoffResult:
    target = target_from_tool_call(tool_call)
    if not target:
      error = f"Handoff tool '{tool_call.function.name}' was called without a target agent."
      logger.warning(error)
      return HandoffResult(error=error, tool_call_id=tool_call.id, source="tool_call")
    return self.resolve(target, agent, tool_call_id=tool_call.id, source="tool_call")

  def from_text(self, text: str, agent: "Agent") -> HandoffResult:
    for pattern in STRUCTURED_TEXT_PATTERNS:
      match = pattern.search(text)
      if match:
        return self.resolve(normalize_agent_name(match.group(1)), agent, source="text")

    for pattern in NATURAL_TEXT_PATTERNS:
      match = pattern.search(text)
      if match:
        target = normalize_agent_name(match.group(1))
        if self.find(target, agent) is not None:
          return self.resolve(target, agent, source="text")
        logger.debug(f"Ignoring handoff phrase for unknown agent '{target}'")

    return NO_HANDOFF

  def resolve(self, target: str, agent: "Agent", tool_call_id: Optional[str] = None, source=None) -> HandoffResult:
    new_agent = self.find(target, agent)
    if new_agent is None:
      error = HandoffResolutionError(target, agent.handoff_names)
      logger.warning(f"{agent.name}: {error.message}")
      return HandoffResult(target_name=target, error=error.message, tool_call_id=tool_call_id, source=source)

    logger.info(f"Handoff requested: {agent.name} -> {new_agent.name} (via {source})")
    return HandoffResult(
      handoff_occurred=True,
      new_agent=new_agent,
      target_name=new_agent.name,
      tool_call_id=tool_call_id,
      source=source,
    )

  @staticmethod
  def find(target: str, agent: "Agent") -> Optional["Agent"]:
    exact = agent.find_handoff(target)
    if exact is not None:
      return exact
    slug = slugify(target)
    for candidate in agent.handoffs:
      if slugify(candidate.name) == slug:
        return candidate
    return None


def target_from_tool_call(tool_call: ToolCall) -> Optional[str]:
  arguments = tool_call.parsed_arguments()
  for key in TARGET_ARGUMENT_KEYS:
    value = arguments.get(key)
    if isinstance(value, str) and value.strip():
      return value.strip()

  name = tool_call.function.name
  for pattern in sorted(HANDOFF_TOOL_PATTERNS, key=len, reverse=True):
    prefix = f"{pattern}_"
    if name.lower().startswith(prefix) and len(name) > len(prefix):
      suffix = name[len(prefix) :]
      # handoff_to_billing
      if suffix.lower().startswith("to_") and len(suffix) > 3:
        suffix = suffix[3:]
      return suffix
  return None
