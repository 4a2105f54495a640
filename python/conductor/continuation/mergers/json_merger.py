import json
import re
from typing import List, Optional

from jsonschema import Draft7Validator

from .base import BaseMerger

FENCE_LINE = re.compile(r"^\s*```(?:json|JSON)?\s*$", re.MULTILINE)
TRAILING_KEY = re.compile(r'"(?:[^"\\]|\\.)*"\s*:$')
DANGLING_KEY = re.compile(r'(?<=[{,])\s*"(?:[^"\\]|\\.)*"$')


class JSONMerger(BaseMerger):
  """
  Stitches JSON fragments.

  Fragments are concatenated (a split string or number simply continues) and
  the result is parsed. If it does not parse, common defects are repaired:
  single quoted strings, raw newlines inside strings, trailing commas, a
  dangling key and unclosed brackets. Output that still does not parse fails
  the merge.

  When a JSON schema is given, the parsed document is validated against it
  and the outcome is reported in the metadata.
  """

  strategy = "json"

  def __init__(self, schema: Optional[dict] = None):
    super().__init__()
    self.schema = schema

  def merge_contents(self, contents: List[str]) -> tuple[str, dict]:
    text = strip_fences("".join(c for c in contents if c)).strip()
    if not text:
      return "", {"json_valid": False, "repaired": False}

    repaired = False
    try:
      data = json.loads(text)
    except json.JSONDecodeError:
      text = repair_json(text)
      data = json.loads(text)
      repaired = True
      self.logger.debug("Repaired merged JSON before parsing")

    details = {"json_valid": True, "repaired": repaired}
    if self.schema:
      errors = schema_errors(data, self.schema)
      details["schema_valid"] = not errors
      details["schema_errors"] = errors
      if errors:
        self.logger.warning(f"Merged JSON does not match the schema: {errors[0]}")
    return text, details

  def has_incomplete_json_structure(self, content: str) -> bool:
    text = strip_fences(content or "").strip()
    if not text:
      return False
    try:
      json.loads(text)
      return False
    except json.JSONDecodeError:
      pass
    _, stack, in_string = scan(text)
    return in_string or bool(stack) or text.endswith((",", ":"))


def strip_fences(text: str) -> str:
  return FENCE_LINE.sub("", text)


def schema_errors(data, schema: dict) -> List[str]:
  errors = sorted(Draft7Validator(schema).iter_errors(data), key=lambda e: list(e.path))
  return [f"{'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}" for e in errors]


def scan(text: str) -> tuple[List[str], List[str], bool]:
  """
  Walk `text` once, normalizing string quoting.

  Returns the rewritten characters, the closers still owed, and whether the
  text ends inside a string. Single quoted strings become double quoted, raw
  control characters inside strings are escaped, commas directly before a
  closer are dropped, and closers without an opener are skipped.
  """
  out: List[str] = []
  stack: List[str] = []
  quote = None
  escape = False

  for ch in text:
    if quote is not None:
      if escape:
        escape = False
        out.append(ch)
      elif ch == "\\":
        escape = True
        out.append(ch)
      elif ch == quote:
        quote = None
        out.append('"')
      elif ch == '"':
        out.append('\\"')
      elif ch == "\n":
        out.append("\\n")
      elif ch == "\r":
        out.append("\\r")
      elif ch == "\t":
        out.append("\\t")
      else:
        out.append(ch)
      continue

    if ch in "\"'":
      quote = ch
      out.append('"')
    elif ch in "{[":
      stack.append("}" if ch == "{" else "]")
      out.append(ch)
    elif ch in "}]":
      if not stack or stack[-1] != ch:
        continue
      stack.pop()
      _drop_trailing_comma(out)
      out.append(ch)
    else:
      out.append(ch)

  if escape:
    out.pop()
  return out, stack, quote is not None


def repair_json(text: str) -> str:
  out, stack, in_string = scan(text)
  if in_string:
    out.append('"')
  result = "".join(out).rstrip()

  while True:
    stripped = result.rstrip().rstrip(",").rstrip()
    if stripped.endswith(":"):
      stripped = TRAILING_KEY.sub("", stripped).rstrip()
    elif stack and stack[-1] == "}" and DANGLING_KEY.search(stripped):
      stripped = DANGLING_KEY.sub("", stripped).rstrip()
    if stripped == result:
      break
    result = stripped

  return result + "".join(reversed(stack))


def _drop_trailing_comma(out: List[str]):
  index = len(out) - 1
  while index >= 0 and out[index].isspace():
    index -= 1
  if index >= 0 and out[index] == ",":
    del out[index]
