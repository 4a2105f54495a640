"""
Request building and response normalization per provider family.

A strategy turns the conversation into the wire request its provider expects
and turns the reply into a ProviderResponse. The strategy for a provider is
chosen once, from its declared capability.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from .errors import ProviderError, ProviderErrorKind
from .handoffs import slugify
from .logs.logs import get_logger
from .messages import (
  AssistantMessage,
  ConversationMessage,
  FunctionToolCall,
  SystemMessage,
  ToolCall,
  ToolCallResponseMessage,
  message_to_dict,
)
from .providers.base import ModelProvider, ProviderCapability
from .providers.response import (
  FinishReason,
  ProviderResponse,
  Usage,
  field_of,
  infer_finish_reason,
  tool_calls_from_raw,
)


class ProviderStrategy(ABC):
  def __init__(self, provider: ModelProvider):
    self.provider = provider
    self.logger = get_logger("strategy")

  @property
  def resumes_from_response_id(self) -> bool:
    return False

  async def execute(
    self,
    messages: List[ConversationMessage],
    agent,
    context,
    previous_response_id: Optional[str] = None,
  ) -> ProviderResponse:
    """
    Send one request for `agent` and return the normalized reply.

    :raises ProviderError: When the call fails after retries or the reply is malformed
    """
    context.cancellation.raise_if_cancelled()
    request = await self.build_request(messages, agent, context, previous_response_id)
    raw = await context.retry.call(
      self.provider,
      request,
      context.cancellation,
      on_chunk=self.chunk_listener(context) if request.get("stream") else None,
    )
    response = self.normalize(raw)
    context.record_usage(response.usage)
    self.log_finish_reason(response, agent)
    return response

  @abstractmethod
  async def build_request(self, messages, agent, context, previous_response_id: Optional[str]) -> dict: ...

  @abstractmethod
  def normalize(self, raw: Any) -> ProviderResponse: ...

  def chunk_listener(self, context):
    return None

  def resolve_model(self, agent, context) -> str:
    model = context.config.model or agent.model
    if not model:
      raise ProviderError(
        ProviderErrorKind.INVALID_REQUEST,
        f"no model configured for agent '{agent.name}'",
        provider=self.provider.name,
      )
    return model

  def log_finish_reason(self, response: ProviderResponse, agent):
    match response.finish_reason:
      case FinishReason.LENGTH:
        self.logger.debug(f"{agent.name}: output truncated at {response.usage.output_tokens} tokens")
      case FinishReason.CONTENT_FILTER:
        self.logger.warning(f"{agent.name}: output stopped by the provider content filter")
      case FinishReason.INCOMPLETE:
        self.logger.warning(f"{agent.name}: provider reported an incomplete response")
      case FinishReason.ERROR:
        self.logger.error(f"{agent.name}: provider reported a failed response")
      case _:
        pass

  def malformed(self, detail: str) -> ProviderError:
    return ProviderError(ProviderErrorKind.MALFORMED, detail, provider=self.provider.name, retryable=False)


class StandardStrategy(ProviderStrategy):
  """
  Chat completion style providers. Every request carries the full history.
  """

  async def build_request(self, messages, agent, context, previous_response_id=None) -> dict:
    body = {
      "model": self.resolve_model(agent, context),
      "messages": [message_to_dict(m) for m in messages],
    }

    tools = await agent.tool_specs()
    if tools:
      body["tools"] = tools
      if context.config.tool_choice is not None:
        body["tool_choice"] = context.config.tool_choice

    body.update(context.config.model_settings())

    if agent.response_format:
      body["response_format"] = {"type": "json_schema", "json_schema": json_schema_format(agent)}

    if context.config.stream and self.provider.supports_streaming:
      body["stream"] = True
      body["stream_options"] = {"include_usage": True}

    return body

  def chunk_listener(self, context):
    def on_chunk(chunk):
      for choice in field_of(chunk, "choices") or []:
        text = field_of(field_of(choice, "delta"), "content")
        if text:
          context.emit("text_delta", text)

    return on_chunk

  def normalize(self, raw: Any) -> ProviderResponse:
    if isinstance(raw, list):
      return self.accumulate(raw)

    choices = field_of(raw, "choices")
    if not choices:
      raise self.malformed("response has no choices")

    choice = choices[0]
    message = field_of(choice, "message")
    if message is None:
      raise self.malformed("response choice has no message")

    return ProviderResponse(
      message=AssistantMessage(
        content=text_of(field_of(message, "content")),
        tool_calls=tool_calls_from_raw(field_of(message, "tool_calls")),
      ),
      usage=Usage.from_raw(field_of(raw, "usage")),
      finish_reason=FinishReason.normalize(field_of(choice, "finish_reason")),
      response_id=field_of(raw, "id"),
      raw=raw,
    )

  def accumulate(self, chunks: list) -> ProviderResponse:
    """Fold streamed chunks into one response."""
    if not chunks:
      raise self.malformed("stream ended without any chunk")

    content_parts = []
    tool_calls: dict[int, dict] = {}
    finish_reason = None
    usage = None
    response_id = None

    for chunk in chunks:
      response_id = response_id or field_of(chunk, "id")
      if field_of(chunk, "usage"):
        usage = field_of(chunk, "usage")

      for choice in field_of(chunk, "choices") or []:
        delta = field_of(choice, "delta")
        text = field_of(delta, "content")
        if text:
          content_parts.append(text)

        for fragment in field_of(delta, "tool_calls") or []:
          index = field_of(fragment, "index") or 0
          entry = tool_calls.setdefault(index, {"id": "", "name": "", "arguments": ""})
          if field_of(fragment, "id"):
            entry["id"] = field_of(fragment, "id")
          function = field_of(fragment, "function")
          if field_of(function, "name"):
            entry["name"] = field_of(function, "name")
          if field_of(function, "arguments"):
            entry["arguments"] += field_of(function, "arguments")

        if field_of(choice, "finish_reason"):
          finish_reason = field_of(choice, "finish_reason")

    return ProviderResponse(
      message=AssistantMessage(
        content="".join(content_parts),
        tool_calls=[
          ToolCall(id=e["id"], function=FunctionToolCall(name=e["name"], arguments=e["arguments"]))
          for _, e in sorted(tool_calls.items())
        ],
      ),
      usage=Usage.from_raw(usage),
      finish_reason=FinishReason.normalize(finish_reason),
      response_id=response_id,
      raw=chunks,
    )


class StatefulStrategy(ProviderStrategy):
  """
  Responses style providers. The server keeps the conversation; a follow-up
  request sends only new input together with `previous_response_id`.
  """

  @property
  def resumes_from_response_id(self) -> bool:
    return True

  async def build_request(self, messages, agent, context, previous_response_id=None) -> dict:
    instructions = "\n\n".join(m.content for m in messages if isinstance(m, SystemMessage) and m.content)
    body = {
      "model": self.resolve_model(agent, context),
      "input": to_input_items([m for m in messages if not isinstance(m, SystemMessage)]),
    }
    if instructions:
      body["instructions"] = instructions
    if previous_response_id:
      body["previous_response_id"] = previous_response_id

    tools = await agent.tool_specs()
    if tools:
      body["tools"] = [flatten_tool(t) for t in tools]
      if context.config.tool_choice is not None:
        body["tool_choice"] = context.config.tool_choice

    settings = context.config.model_settings()
    if "max_tokens" in settings:
      body["max_output_tokens"] = settings.pop("max_tokens")
    body.update(settings)

    if agent.response_format:
      body["text"] = {"format": {"type": "json_schema", **json_schema_format(agent)}}

    return body

  def normalize(self, raw: Any) -> ProviderResponse:
    output = field_of(raw, "output")
    if output is None:
      raise self.malformed("response has no output")

    texts = []
    tool_calls = []
    for item in output:
      match field_of(item, "type"):
        case "message":
          for part in field_of(item, "content") or []:
            if field_of(part, "type") in ("output_text", "text"):
              texts.append(field_of(part, "text", "") or "")
        case "function_call":
          tool_calls.append(
            ToolCall(
              id=field_of(item, "call_id") or field_of(item, "id") or "",
              function=FunctionToolCall(
                name=field_of(item, "name", "") or "",
                arguments=field_of(item, "arguments", "") or "",
              ),
            )
          )
        case _:
          # reasoning and other item types carry no output text
          pass

    return ProviderResponse(
      message=AssistantMessage(content="".join(texts), tool_calls=tool_calls),
      usage=Usage.from_raw(field_of(raw, "usage")),
      finish_reason=infer_finish_reason(raw),
      response_id=field_of(raw, "id"),
      raw=raw,
    )


def create_strategy(provider: ModelProvider) -> ProviderStrategy:
  match provider.capability:
    case ProviderCapability.STATEFUL:
      return StatefulStrategy(provider)
    case ProviderCapability.STATELESS:
      return StandardStrategy(provider)
    case _:
      raise ValueError(f"Unsupported provider capability: {provider.capability}")


def to_input_items(messages: List[ConversationMessage]) -> List[dict]:
  items = []
  for message in messages:
    if isinstance(message, ToolCallResponseMessage):
      items.append({"type": "function_call_output", "call_id": message.tool_call_id, "output": message.content})
    elif isinstance(message, AssistantMessage):
      if message.content:
        items.append({"type": "message", "role": "assistant", "content": message.content})
      for tool_call in message.tool_calls:
        items.append(
          {
            "type": "function_call",
            "call_id": tool_call.id,
            "name": tool_call.function.name,
            "arguments": tool_call.function.arguments,
          }
        )
    else:
      items.append({"type": "message", "role": message.role.value, "content": message.content})
  return items


def flatten_tool(spec: dict) -> dict:
  function = spec.get("function")
  if function is None:
    return spec
  return {
    "type": "function",
    "name": function.get("name"),
    "description": function.get("description", ""),
    "parameters": function.get("parameters", {"type": "object", "properties": {}}),
  }


def json_schema_format(agent) -> dict:
  response_format = agent.response_format
  if "schema" in response_format:
    return {"name": response_format.get("name") or f"{slugify(agent.name)}_output", **response_format}
  return {"name": f"{slugify(agent.name)}_output", "schema": response_format}


def text_of(content: Any) -> str:
  if content is None:
    return ""
  if isinstance(content, str):
    return content
  if isinstance(content, list):
    return "".join(field_of(part, "text", "") or "" for part in content)
  return str(content)
