import json
from typing import List

from jsonschema import Draft7Validator

from ..errors import RunCancelledError, ToolArgumentError, ToolNotFoundError
from ..logs.logs import get_logger
from ..messages import ToolCall, ToolCallResponseMessage


class ToolExecutor:
  """
  Runs the tool calls of one assistant message.

  Calls run one after another in the order the model issued them and produce
  exactly one result message each. A failing tool never aborts the run: the
  failure becomes the tool's result so the model can react to it. Only
  cancellation propagates.
  """

  def __init__(self):
    self.logger = get_logger("tool")

  async def execute(self, tool_calls: List[ToolCall], agent, context) -> List[ToolCallResponseMessage]:
    results = []
    for tool_call in tool_calls:
      context.cancellation.raise_if_cancelled()
      results.append(await self.execute_one(tool_call, agent, context))
    return results

  async def execute_one(self, tool_call: ToolCall, agent, context) -> ToolCallResponseMessage:
    name = tool_call.function.name
    arguments = tool_call.function.arguments
    self.logger.info(f"[TOOL→CALL] {name} ({tool_call.id})")
    self.logger.debug(f"[TOOL→CALL] {name} arguments: {arguments}")

    try:
      tool = agent.find_tool(name)
      if tool is None:
        raise ToolNotFoundError(name, [t.name for t in agent.tools], tool_call_id=tool_call.id)

      schema = getattr(tool, "explicit_parameters", None)
      if schema:
        validate_arguments(name, arguments, schema)

      content = await context.cancellation.guard(tool.invoke(arguments))
      result = ToolCallResponseMessage(tool_call_id=tool_call.id, name=name, content=content)
      self.logger.info(f"[TOOL←RESULT] {name} returned {len(content)} chars")
    except RunCancelledError:
      raise
    except Exception as e:
      error_type, error_message = describe_failure(e)
      self.logger.warning(f"[TOOL←ERROR] {name}: {error_type}: {error_message}")
      result = ToolCallResponseMessage(
        tool_call_id=tool_call.id,
        name=name,
        content=f"Tool execution failed: {error_type}: {error_message}",
        is_error=True,
      )

    context.emit("tool_invoked", name, tool_call.id, result.is_error)
    return result


def describe_failure(error: Exception) -> tuple[str, str]:
  # report the exception the tool function raised, not the wrapper
  cause = getattr(error, "cause", None)
  if cause is not None:
    return type(cause).__name__, str(cause)
  return type(error).__name__, str(error)


def validate_arguments(tool_name: str, arguments: str, schema: dict):
  try:
    parsed = json.loads(arguments) if arguments and arguments.strip() else {}
  except json.JSONDecodeError as e:
    raise ToolArgumentError(tool_name, f"Invalid JSON format: {e}")

  errors = sorted(Draft7Validator(schema).iter_errors(parsed), key=lambda e: list(e.path))
  if errors:
    details = "; ".join(f"{'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}" for e in errors)
    raise ToolArgumentError(tool_name, details)
