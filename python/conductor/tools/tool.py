import json
import inspect
import re

from typing import get_type_hints, Optional, get_origin, get_args, Union, Callable, Any
from functools import wraps
from docstring_parser import parse

from .protocol import InvokableTool
from ..errors import ToolArgumentError, ToolInvocationError
from ..logs.logs import get_logger, DebugContext

MAX_JSON_SIZE = 1024 * 1024

_JSON_SCHEMA_TYPES = {
  "bool": "boolean",
  "int": "integer",
  "float": "number",
  "str": "string",
  "list": "array",
  "dict": "object",
}

_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off")


class Tool(InvokableTool, DebugContext):
  """
  A Python function exposed to the model as a tool.

  The function may be sync or async. Its name, description and parameter
  schema come from the signature and docstring unless given explicitly. When
  `parameters` is given, it is also validated as JSON schema before the call.

  Example:
    def get_weather(city: str, unit: str = "celsius") -> str:
      '''Look up the current weather.

      Args:
        city: City name
      '''
      ...

    tool = Tool(get_weather)
  """

  def __init__(
    self,
    func: Callable,
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[dict] = None,
  ):
    self.logger = get_logger("tool")
    self.func = wrap(func)
    self.signature = inspect.signature(func)
    self.type_hints = _type_hints(func)
    self.name = name or func.__name__
    self.explicit_parameters = parameters

    if re.match(r"^[a-z0-9_-]+$", self.name) is None:
      raise ValueError(f"Tool name '{self.name}' may only contain [a-z0-9_-] characters")

    self._spec = {
      "type": "function",
      "function": {
        "name": self.name,
        "description": description or describe(func),
        "parameters": parameters or parameters_spec(func),
      },
    }

  async def spec(self) -> dict:
    return self._spec

  async def invoke(self, json_argument: Optional[str]) -> str:
    with self.debug(f"Invoke tool '{self.name}' with {json_argument}", f"Invoked tool '{self.name}'"):
      args = self.parse_arguments(json_argument)
      try:
        result = await self.func(**args)
      except Exception as e:
        raise ToolInvocationError(self.name, e) from e
      return result if isinstance(result, str) else _stringify(result)

  def parse_arguments(self, json_argument: Optional[str]) -> dict:
    """
    Parse the model's JSON arguments and check them against the signature.

    :raises ToolArgumentError: If the payload is too large, not a JSON object,
      misses required parameters, names unknown ones, or cannot be coerced
    """
    if json_argument is None or json_argument.strip() == "":
      args = {}
    else:
      if len(json_argument) > MAX_JSON_SIZE:
        raise ToolArgumentError(
          self.name, f"JSON argument too large: {len(json_argument):,} bytes (max: {MAX_JSON_SIZE:,})"
        )
      try:
        args = json.loads(json_argument)
      except json.JSONDecodeError as e:
        raise ToolArgumentError(self.name, f"Invalid JSON format: {e}")
      if not isinstance(args, dict):
        raise ToolArgumentError(self.name, f"JSON argument must be an object, got {type(args).__name__}")

    accepts_kwargs = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in self.signature.parameters.values())
    declared = {
      name
      for name, p in self.signature.parameters.items()
      if p.kind not in (inspect.Parameter.VAR_KEYWORD, inspect.Parameter.VAR_POSITIONAL)
    }

    extra = set(args) - declared
    if extra and not accepts_kwargs:
      raise ToolArgumentError(self.name, f"Unexpected arguments: {', '.join(sorted(extra))}")

    missing = {
      name
      for name, p in self.signature.parameters.items()
      if name in declared and p.default is inspect.Parameter.empty and name not in args
    }
    if missing:
      raise ToolArgumentError(self.name, f"Missing required arguments: {', '.join(sorted(missing))}")

    return {name: self._coerce(name, value) for name, value in args.items()}

  def _coerce(self, name: str, value: Any) -> Any:
    expected = self.type_hints.get(name)
    if expected is None:
      return value

    # Optional[X] and X | None coerce to X
    if get_origin(expected) is Union or type(expected).__name__ == "UnionType":
      expected = next((t for t in get_args(expected) if t is not type(None)), expected)

    try:
      coerced = coerce_value(value, expected)
    except (ValueError, TypeError):
      type_name = getattr(expected, "__name__", str(expected))
      raise ToolArgumentError(
        self.name,
        f"Argument '{name}' has invalid type: expected {type_name}, got {type(value).__name__} (value: {value!r})",
      )

    if type(coerced) is not type(value):
      self.logger.debug(f"Coerced argument '{name}': {value!r} -> {coerced!r}")
    return coerced


def coerce_value(value: Any, expected: Any) -> Any:
  """
  Coerce a JSON decoded value to a simple Python type. Models often send
  "3" for an int or "true" for a bool. Generic and unknown types pass through.
  """
  if value is None:
    return None

  origin = get_origin(expected)
  if origin is not None:
    if isinstance(origin, type) and not isinstance(value, origin):
      raise TypeError(f"expected {origin.__name__}")
    return value

  if expected is bool:
    if isinstance(value, bool):
      return value
    if isinstance(value, str):
      if value.lower() in _TRUE_STRINGS:
        return True
      if value.lower() in _FALSE_STRINGS:
        return False
      raise ValueError(f"Cannot coerce string '{value}' to bool")
    if isinstance(value, (int, float)):
      return bool(value)
    raise TypeError("not a bool")

  if expected is int:
    if isinstance(value, int) and not isinstance(value, bool):
      return value
    if isinstance(value, (str, float)):
      return int(value)
    raise TypeError("not an int")

  if expected is float:
    if isinstance(value, float):
      return value
    if isinstance(value, (str, int)) and not isinstance(value, bool):
      return float(value)
    raise TypeError("not a float")

  if expected is str:
    return value if isinstance(value, str) else str(value)

  if expected in (list, dict) and not isinstance(value, expected):
    raise TypeError(f"expected {expected.__name__}")

  return value


def wrap(f) -> Callable:
  @wraps(f)
  async def wrapper(**kwargs):
    r = f(**kwargs)
    if inspect.isawaitable(r):
      return await r
    return r

  return wrapper


def describe(f) -> str:
  if not f.__doc__:
    return f"Function {f.__name__}"
  parsed = parse(f.__doc__)
  parts = [p for p in (parsed.short_description, parsed.long_description) if p]
  return "\n\n".join(parts) if parts else inspect.cleandoc(f.__doc__)


def parameters_spec(f) -> dict:
  parameters = {"type": "object", "properties": {}, "required": []}

  signature = inspect.signature(f)
  type_hints = _type_hints(f)
  documented = {p.arg_name: p for p in parse(f.__doc__).params} if f.__doc__ else {}

  for p_name, p in signature.parameters.items():
    if p.kind in (inspect.Parameter.VAR_KEYWORD, inspect.Parameter.VAR_POSITIONAL):
      continue

    doc = documented.get(p_name)
    # a type named in the docstring wins over the annotation
    p_type = doc.type_name if doc and doc.type_name else _type_name(type_hints.get(p_name))
    parameters["properties"][p_name] = {
      "type": to_json_schema_type(p_type),
      "description": doc.description if doc and doc.description else f"parameter {p_name}",
    }

    if p.default is inspect.Parameter.empty:
      parameters["required"].append(p_name)

  return parameters


def to_json_schema_type(p_type: Optional[str]) -> str:
  return _JSON_SCHEMA_TYPES.get(p_type or "", "string")


def _type_name(hint: Any) -> Optional[str]:
  if hint is None:
    return None
  if get_origin(hint) is Union or type(hint).__name__ == "UnionType":
    hint = next((t for t in get_args(hint) if t is not type(None)), hint)
  origin = get_origin(hint)
  if origin is not None:
    hint = origin
  return getattr(hint, "__name__", None)


def _type_hints(f) -> dict:
  try:
    return get_type_hints(f)
  except (NameError, TypeError):
    return {}


def _stringify(result: Any) -> str:
  if isinstance(result, (dict, list)):
    try:
      return json.dumps(result)
    except (TypeError, ValueError):
      return str(result)
  return str(result)
