import json

from dataclasses import dataclass, field
from enum import Enum
from typing import Union, Optional, List


class ConversationRole(Enum):
  USER = "user"
  SYSTEM = "system"
  ASSISTANT = "assistant"
  TOOL = "tool"


@dataclass
class FunctionToolCall:
  name: str
  arguments: str = field(default_factory=str)


@dataclass
class ToolCall:
  id: str
  function: FunctionToolCall
  type: str = "function"

  @property
  def name(self) -> str:
    return self.function.name

  def parsed_arguments(self) -> dict:
    """Arguments as a dict. Unparseable or non-object arguments give an empty dict."""
    if not self.function.arguments or not self.function.arguments.strip():
      return {}
    try:
      parsed = json.loads(self.function.arguments)
    except json.JSONDecodeError:
      return {}
    return parsed if isinstance(parsed, dict) else {}


@dataclass
class SystemMessage:
  content: str = ""
  role: ConversationRole = ConversationRole.SYSTEM


@dataclass
class UserMessage:
  content: str = ""
  role: ConversationRole = ConversationRole.USER


@dataclass
class AssistantMessage:
  content: str = ""
  tool_calls: List[ToolCall] = field(default_factory=list)
  role: ConversationRole = ConversationRole.ASSISTANT


@dataclass
class ToolCallResponseMessage:
  tool_call_id: str
  name: str
  content: str = ""
  is_error: bool = False
  role: ConversationRole = ConversationRole.TOOL


ConversationMessage = Union[UserMessage, SystemMessage, AssistantMessage, ToolCallResponseMessage]


def tool_call_to_dict(tool_call: ToolCall) -> dict:
  return {
    "id": tool_call.id,
    "type": tool_call.type,
    "function": {"name": tool_call.function.name, "arguments": tool_call.function.arguments},
  }


def tool_call_from_dict(data: dict) -> ToolCall:
  # both the nested chat shape and a flat {"id", "name", "arguments"} shape are accepted
  function = data.get("function") or {}
  name = function.get("name") or data.get("name") or ""
  arguments = function.get("arguments", data.get("arguments", ""))
  if not isinstance(arguments, str):
    arguments = json.dumps(arguments)
  return ToolCall(
    id=data.get("id") or data.get("call_id") or "",
    function=FunctionToolCall(name=name, arguments=arguments or ""),
    type=data.get("type") or "function",
  )


def message_to_dict(message: ConversationMessage) -> dict:
  """
  Convert a message into the chat completion wire format.
  """
  msg = {"role": message.role.value, "content": message.content}

  if isinstance(message, AssistantMessage) and message.tool_calls:
    msg["tool_calls"] = [tool_call_to_dict(tc) for tc in message.tool_calls]

  if isinstance(message, ToolCallResponseMessage):
    msg["tool_call_id"] = message.tool_call_id
    msg["name"] = message.name

  return msg


def message_from_dict(data: dict) -> ConversationMessage:
  role = ConversationRole(data.get("role", "user"))
  content = data.get("content") or ""
  if not isinstance(content, str):
    content = json.dumps(content)

  match role:
    case ConversationRole.SYSTEM:
      return SystemMessage(content)
    case ConversationRole.USER:
      return UserMessage(content)
    case ConversationRole.ASSISTANT:
      tool_calls = [tool_call_from_dict(tc) for tc in data.get("tool_calls") or []]
      return AssistantMessage(content, tool_calls=tool_calls)
    case ConversationRole.TOOL:
      return ToolCallResponseMessage(
        tool_call_id=data.get("tool_call_id", ""),
        name=data.get("name", ""),
        content=content,
        is_error=bool(data.get("is_error", False)),
      )


def as_message(value: Union[str, dict, ConversationMessage]) -> ConversationMessage:
  if isinstance(value, str):
    return UserMessage(value)
  if isinstance(value, dict):
    return message_from_dict(value)
  if isinstance(value, (UserMessage, SystemMessage, AssistantMessage, ToolCallResponseMessage)):
    return value
  raise TypeError(f"Cannot convert {type(value).__name__} to a conversation message")


def as_messages(value: Union[str, dict, ConversationMessage, List]) -> List[ConversationMessage]:
  if isinstance(value, list):
    return [as_message(v) for v in value]
  return [as_message(value)]


def last_text(messages: List[ConversationMessage]) -> Optional[str]:
  for message in reversed(messages):
    if isinstance(message, AssistantMessage) and message.content:
      return message.content
  return None
