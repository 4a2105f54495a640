"""
Shared utilities for testing the runtime.

Mock providers replay scripted replies instead of calling a vendor, and record
every request they were sent so tests can assert on the wire shape.
"""

import json
from typing import Any, Dict, List, Optional

from conductor.cancellation import CancellationToken
from conductor.config import RetryConfig, RunConfig
from conductor.context import RunContext
from conductor.observers import NullObserver
from conductor.providers.base import StatefulProvider, StatelessProvider

NO_WAIT_RETRY = RetryConfig(max_retry_attempts=2, initial_seconds_between_retry_attempts=0.0)


def tool_call(name: str, arguments: Optional[dict] = None, id: Optional[str] = None) -> Dict[str, Any]:
  return {
    "id": id or f"call_{name}",
    "type": "function",
    "function": {"name": name, "arguments": json.dumps(arguments or {})},
  }


def chat_response(
  content: Optional[str] = "",
  tool_calls: Optional[List[dict]] = None,
  finish_reason: Optional[str] = None,
  prompt_tokens: int = 10,
  completion_tokens: int = 5,
  id: str = "chatcmpl-1",
) -> Dict[str, Any]:
  """
  A chat completion reply as a plain dict.

  Usage:
      chat_response("Hello!")
      chat_response(tool_calls=[tool_call("add", {"a": 1, "b": 2})])
      chat_response("id,name\\n1,a", finish_reason="length")
  """
  if finish_reason is None:
    finish_reason = "tool_calls" if tool_calls else "stop"
  return {
    "id": id,
    "choices": [
      {
        "index": 0,
        "message": {"role": "assistant", "content": content, "tool_calls": tool_calls},
        "finish_reason": finish_reason,
      }
    ],
    "usage": {
      "prompt_tokens": prompt_tokens,
      "completion_tokens": completion_tokens,
      "total_tokens": prompt_tokens + completion_tokens,
    },
  }


def responses_response(
  text: str = "",
  function_calls: Optional[List[dict]] = None,
  status: str = "completed",
  incomplete_reason: Optional[str] = None,
  input_tokens: int = 10,
  output_tokens: int = 5,
  id: str = "resp_1",
) -> Dict[str, Any]:
  """A responses API reply as a plain dict."""
  output = []
  if text:
    output.append({"type": "message", "role": "assistant", "content": [{"type": "output_text", "text": text}]})
  for call in function_calls or []:
    output.append({"type": "function_call", **call})
  return {
    "id": id,
    "status": status,
    "incomplete_details": {"reason": incomplete_reason} if incomplete_reason else None,
    "output": output,
    "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
  }


class _ScriptedReplies:
  def _setup_script(self, replies: Optional[List[Any]]):
    self.replies = list(replies or [])
    self.requests: List[dict] = []
    self.call_count = 0

  def _next_reply(self, request: dict) -> Any:
    self.call_count += 1
    self.requests.append(request)
    if not self.replies:
      raise AssertionError(f"{self.name} received more calls than scripted replies ({self.call_count})")
    reply = self.replies.pop(0)
    if isinstance(reply, BaseException):
      raise reply
    return reply


class MockProvider(_ScriptedReplies, StatelessProvider):
  """
  Chat completion style provider that replays scripted replies in order.

  A reply that is an exception instance is raised instead of returned. When
  the request asks for a stream, the reply is split into one chunk per
  character of content followed by a final chunk with the finish reason.
  """

  def __init__(self, replies: Optional[List[Any]] = None, name: str = "mock", supports_streaming: bool = True):
    super().__init__(name)
    self.supports_streaming = supports_streaming
    self._setup_script(replies)

  async def _send(self, request: dict) -> Any:
    reply = self._next_reply(request)
    if request.get("stream"):
      return self._stream(reply)
    return reply

  async def _stream(self, reply: dict):
    choice = reply["choices"][0]
    for character in choice["message"].get("content") or "":
      yield {"id": reply["id"], "choices": [{"index": 0, "delta": {"content": character}, "finish_reason": None}]}
    for index, call in enumerate(choice["message"].get("tool_calls") or []):
      yield {
        "id": reply["id"],
        "choices": [{"index": 0, "delta": {"tool_calls": [{"index": index, **call}]}, "finish_reason": None}],
      }
    yield {"id": reply["id"], "choices": [{"index": 0, "delta": {}, "finish_reason": choice["finish_reason"]}]}
    yield {"id": reply["id"], "choices": [], "usage": reply.get("usage")}


class MockStatefulProvider(_ScriptedReplies, StatefulProvider):
  """Responses style provider that replays scripted replies in order."""

  def __init__(self, replies: Optional[List[Any]] = None, name: str = "mock-responses"):
    super().__init__(name)
    self._setup_script(replies)

  async def _send(self, request: dict) -> Any:
    return self._next_reply(request)


class RecordingObserver(NullObserver):
  """Keeps every lifecycle event as an (event, args) tuple."""

  def __init__(self):
    self.events = []

  def run_started(self, run_id, agent_name):
    self.events.append(("run_started", (agent_name,)))

  def turn_started(self, run_id, turn, agent_name):
    self.events.append(("turn_started", (turn, agent_name)))

  def turn_completed(self, run_id, turn, agent_name, outcome):
    self.events.append(("turn_completed", (turn, agent_name, outcome)))

  def tool_invoked(self, run_id, tool_name, tool_call_id, is_error):
    self.events.append(("tool_invoked", (tool_name, tool_call_id, is_error)))

  def handoff_occurred(self, run_id, from_agent, to_agent):
    self.events.append(("handoff_occurred", (from_agent, to_agent)))

  def handoff_failed(self, run_id, from_agent, target, error):
    self.events.append(("handoff_failed", (from_agent, target, error)))

  def continuation_attempted(self, run_id, attempt, max_attempts):
    self.events.append(("continuation_attempted", (attempt, max_attempts)))

  def merge_completed(self, run_id, chunk_count, strategy, success):
    self.events.append(("merge_completed", (chunk_count, strategy, success)))

  def text_delta(self, run_id, delta):
    self.events.append(("text_delta", (delta,)))

  def run_completed(self, run_id, status, turns):
    self.events.append(("run_completed", (status, turns)))

  def named(self, event: str) -> list:
    return [args for name, args in self.events if name == event]


def create_context(
  config: Optional[RunConfig] = None,
  observer=None,
  cancellation: Optional[CancellationToken] = None,
) -> RunContext:
  return RunContext(
    config=config or RunConfig(model="mock-model", retry=NO_WAIT_RETRY),
    cancellation=cancellation or CancellationToken(),
    observer=observer or NullObserver(),
  )
