import asyncio

import pytest

from conductor import Agent
from conductor.errors import RunCancelledError
from conductor.messages import FunctionToolCall, ToolCall
from conductor.tools import Tool, ToolExecutor
from tests.mock_utils import RecordingObserver, create_context


def add(a: int, b: int) -> int:
  return a + b


def divide(a: float, b: float) -> float:
  return a / b


def echo(text: str) -> str:
  return text


async def sleepy() -> str:
  await asyncio.sleep(30)
  return "woke up"


def call(name: str, arguments: str = "{}", id: str = None) -> ToolCall:
  return ToolCall(id=id or f"call_{name}", function=FunctionToolCall(name=name, arguments=arguments))


AGENT = Agent(name="calculator", model="m", tools=[add, divide, echo])


class TestToolExecutor:
  """Every call yields exactly one result, failures included."""

  @pytest.mark.asyncio
  async def test_results_in_call_order(self):
    calls = [
      call("add", '{"a": 1, "b": 2}', "c1"),
      call("echo", '{"text": "hi"}', "c2"),
      call("add", '{"a": 10, "b": 5}', "c3"),
    ]

    results = await ToolExecutor().execute(calls, AGENT, create_context())

    assert [r.tool_call_id for r in results] == ["c1", "c2", "c3"]
    assert [r.content for r in results] == ["3", "hi", "15"]
    assert not any(r.is_error for r in results)

  @pytest.mark.asyncio
  async def test_one_failure_does_not_stop_the_rest(self):
    calls = [
      call("add", '{"a": 1, "b": 1}', "c1"),
      call("divide", '{"a": 1, "b": 0}', "c2"),
      call("echo", '{"text": "still here"}', "c3"),
    ]

    results = await ToolExecutor().execute(calls, AGENT, create_context())

    assert len(results) == 3
    assert [r.is_error for r in results] == [False, True, False]
    assert results[1].content == "Tool execution failed: ZeroDivisionError: float division by zero"
    assert results[1].name == "divide"
    assert results[2].content == "still here"

  @pytest.mark.asyncio
  async def test_unknown_tool(self):
    results = await ToolExecutor().execute([call("multiply", id="c1")], AGENT, create_context())

    assert results[0].is_error
    assert results[0].content.startswith("Tool execution failed: ToolNotFoundError: Tool 'multiply' is not available")
    assert "add, divide, echo" in results[0].content

  @pytest.mark.asyncio
  async def test_invalid_arguments(self):
    results = await ToolExecutor().execute([call("add", '{"a": 1}')], AGENT, create_context())

    assert results[0].is_error
    assert "ToolArgumentError" in results[0].content
    assert "Missing required arguments: b" in results[0].content

  @pytest.mark.asyncio
  async def test_explicit_schema_is_validated(self):
    schema = {
      "type": "object",
      "properties": {"text": {"type": "string", "maxLength": 5}},
      "required": ["text"],
    }
    agent = Agent(name="echoer", tools=[Tool(echo, parameters=schema)])

    results = await ToolExecutor().execute(
      [call("echo", '{"text": "far too long"}'), call("echo", '{"text": "ok"}')], agent, create_context()
    )

    assert results[0].is_error
    assert "text: 'far too long' is too long" in results[0].content
    assert results[1].content == "ok"

  @pytest.mark.asyncio
  async def test_observer_sees_every_invocation(self):
    observer = RecordingObserver()
    calls = [call("add", '{"a": 1, "b": 1}', "c1"), call("nope", id="c2")]

    await ToolExecutor().execute(calls, AGENT, create_context(observer=observer))

    assert observer.named("tool_invoked") == [("add", "c1", False), ("nope", "c2", True)]

  @pytest.mark.asyncio
  async def test_cancellation_before_a_call(self):
    context = create_context()

    def cancel_run() -> str:
      context.cancellation.cancel("user stop")
      return "cancelled"

    agent = Agent(name="canceller", tools=[cancel_run, add])
    calls = [call("cancel_run", id="c1"), call("add", '{"a": 1, "b": 1}', "c2")]

    with pytest.raises(RunCancelledError) as exc_info:
      await ToolExecutor().execute(calls, agent, context)

    assert exc_info.value.reason == "user stop"

  @pytest.mark.asyncio
  async def test_cancellation_interrupts_a_running_tool(self):
    context = create_context()
    agent = Agent(name="sleeper", tools=[sleepy])

    asyncio.get_running_loop().call_later(0.05, context.cancellation.cancel, "timeout")
    with pytest.raises(RunCancelledError):
      await ToolExecutor().execute([call("sleepy")], agent, context)
