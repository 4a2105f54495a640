import json
from typing import Any, Optional, List

from anthropic import AsyncAnthropic

from .base import StatelessProvider
from .response import field_of
from .shared_clients import get_shared_anthropic_client

DEFAULT_MAX_TOKENS = 4096

STOP_REASONS = {
  "end_turn": "stop",
  "stop_sequence": "stop",
  "max_tokens": "length",
  "tool_use": "tool_calls",
  "refusal": "content_filter",
}


def normalize_messages_for_anthropic(messages: List[dict]) -> tuple[Optional[str], List[dict]]:
  """
  Convert chat completion messages for the Anthropic messages API.

  System messages become the separate `system` parameter. Assistant tool calls
  become tool_use blocks and tool results become tool_result blocks in a user
  message; consecutive results share one message.
  """
  system_parts = []
  normalized: List[dict] = []

  for msg in messages:
    role = msg.get("role")
    content = msg.get("content") or ""

    if role == "system":
      if content:
        system_parts.append(content)
      continue

    if role == "tool":
      block = {"type": "tool_result", "tool_use_id": msg.get("tool_call_id"), "content": content}
      previous = normalized[-1] if normalized else None
      if previous and previous["role"] == "user" and isinstance(previous["content"], list):
        previous["content"].append(block)
      else:
        normalized.append({"role": "user", "content": [block]})
      continue

    if role == "assistant" and msg.get("tool_calls"):
      blocks = []
      if content:
        blocks.append({"type": "text", "text": content})
      for tc in msg["tool_calls"]:
        function = tc.get("function", {})
        arguments = function.get("arguments") or "{}"
        if isinstance(arguments, str):
          try:
            arguments = json.loads(arguments)
          except json.JSONDecodeError:
            arguments = {"input": arguments}
        blocks.append({"type": "tool_use", "id": tc.get("id"), "name": function.get("name"), "input": arguments})
      normalized.append({"role": "assistant", "content": blocks})
      continue

    normalized.append({"role": role, "content": content})

  system = "\n\n".join(system_parts) if system_parts else None
  return system, normalized


def convert_tools(tools: List[dict]) -> List[dict]:
  converted = []
  for tool in tools:
    function = tool.get("function")
    if function is None:
      converted.append(tool)
      continue
    converted.append(
      {
        "name": function.get("name"),
        "description": function.get("description", ""),
        "input_schema": function.get("parameters", {"type": "object", "properties": {}}),
      }
    )
  return converted


def convert_tool_choice(tool_choice: Any) -> Optional[dict]:
  match tool_choice:
    case None:
      return None
    case "auto":
      return {"type": "auto"}
    case "required":
      return {"type": "any"}
    case "none":
      return {"type": "none"}
    case {"function": {"name": name}}:
      return {"type": "tool", "name": name}
    case _:
      return tool_choice


def to_chat_completion(response: Any) -> dict:
  """Map an Anthropic message to the chat completion shape."""
  content_parts = []
  tool_calls = []
  for block in field_of(response, "content") or []:
    block_type = field_of(block, "type")
    if block_type == "text":
      content_parts.append(field_of(block, "text", ""))
    elif block_type == "tool_use":
      arguments = field_of(block, "input", {})
      tool_calls.append(
        {
          "id": field_of(block, "id"),
          "type": "function",
          "function": {
            "name": field_of(block, "name"),
            "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
          },
        }
      )

  usage = field_of(response, "usage")
  input_tokens = field_of(usage, "input_tokens", 0) or 0
  output_tokens = field_of(usage, "output_tokens", 0) or 0
  stop_reason = field_of(response, "stop_reason")

  return {
    "id": field_of(response, "id"),
    "model": field_of(response, "model"),
    "choices": [
      {
        "index": 0,
        "message": {
          "role": "assistant",
          "content": "\n".join(content_parts) if content_parts else None,
          "tool_calls": tool_calls or None,
        },
        "finish_reason": STOP_REASONS.get(stop_reason, stop_reason),
      }
    ],
    "usage": {
      "prompt_tokens": input_tokens,
      "completion_tokens": output_tokens,
      "total_tokens": input_tokens + output_tokens,
      "cache_read_input_tokens": field_of(usage, "cache_read_input_tokens"),
    },
  }


class AnthropicProvider(StatelessProvider):
  """
  Anthropic messages API behind the chat completion request shape.
  """

  supports_streaming = False

  def __init__(self, name: str = "anthropic", client: Optional[AsyncAnthropic] = None, throttle: bool = False):
    super().__init__(name, throttle=throttle)
    self.client = client

  def build_request(self, request: dict) -> dict:
    system, messages = normalize_messages_for_anthropic(request.get("messages", []))
    body = {
      "model": request["model"],
      "messages": messages,
      "max_tokens": request.get("max_tokens") or DEFAULT_MAX_TOKENS,
    }
    if system:
      body["system"] = system
    for key in ("temperature", "top_p"):
      if request.get(key) is not None:
        body[key] = request[key]
    if request.get("tools"):
      body["tools"] = convert_tools(request["tools"])
      tool_choice = convert_tool_choice(request.get("tool_choice"))
      if tool_choice is not None:
        body["tool_choice"] = tool_choice
    return body

  async def _send(self, request: dict) -> Any:
    client = self.client or await get_shared_anthropic_client()
    response = await client.messages.create(**self.build_request(request))
    return to_chat_completion(response)
